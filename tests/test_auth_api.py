"""End-to-end tests for the /auth endpoints through the FastAPI app."""

import unittest
from urllib.parse import urlsplit

from app.models import User
from tests.support import PASSWORD, ApiTestCase

REGISTER_BODY = {
    "name": "John Doe",
    "email": "John.Doe@Example.com",
    "password": PASSWORD,
    "password_confirmation": PASSWORD,
    "roles": ["user"],
}


class TestRegisterEndpoint(ApiTestCase):
    def test_register_normalizes_and_sends_one_verification_mail(self) -> None:
        response = self.client.post(self.url("/auth/register"), json=REGISTER_BODY)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(
            response.json(),
            {"status": True, "message": "User registered successfully. Please verify your email."},
        )
        user = self.fetch_user("john.doe@example.com")
        self.assertIsNotNone(user)
        self.assertIsNone(user.email_verified_at)
        self.assertEqual(user.role_names, ["User"])
        self.assertEqual(len(self.mailer.sent_to("john.doe@example.com", "verify_email.html")), 1)

    def test_validation_errors_are_grouped_by_field(self) -> None:
        body = {**REGISTER_BODY, "email": "not-an-email", "password_confirmation": "different"}
        response = self.client.post(self.url("/auth/register"), json=body)
        self.assertEqual(response.status_code, 422)
        payload = response.json()
        self.assertFalse(payload["status"])
        self.assertEqual(payload["message"], "Validation failed!")
        self.assertIn("email", payload["errors"])
        self.assertEqual(
            payload["errors"]["password_confirmation"],
            ["The password field confirmation does not match."],
        )

    def test_duplicate_email(self) -> None:
        self.client.post(self.url("/auth/register"), json=REGISTER_BODY)
        response = self.client.post(
            self.url("/auth/register"), json={**REGISTER_BODY, "email": "john.doe@EXAMPLE.com"}
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["errors"], {"email": ["The email has already been taken."]})

    def test_anonymous_cannot_request_admin_role(self) -> None:
        response = self.client.post(self.url("/auth/register"), json={**REGISTER_BODY, "roles": ["admin"]})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["errors"],
            {"roles": ["Authentication is required to assign admin roles."]},
        )
        self.assertIsNone(self.fetch_user("john.doe@example.com"))

    def test_administrator_can_register_admin(self) -> None:
        self.create_user(email="root@example.com", roles=["Super Admin"])
        token = self.login("root@example.com")
        response = self.client.post(
            self.url("/auth/register"),
            json={**REGISTER_BODY, "roles": ["admin"]},
            headers=self.bearer(token),
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(self.fetch_user("john.doe@example.com").role_names, ["Admin"])

    def test_subscriber_without_user_role(self) -> None:
        response = self.client.post(
            self.url("/auth/register"), json={**REGISTER_BODY, "roles": ["subscriber"]}
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["errors"], {"roles": ["The Subscriber role requires the User role."]}
        )

    def test_mail_failure_returns_500_and_persists_nothing(self) -> None:
        self.mailer.fail = True
        response = self.client.post(self.url("/auth/register"), json=REGISTER_BODY)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["message"], "Registration failed. Please try again later.")
        self.assertIsNone(self.fetch_user("john.doe@example.com"))


class TestLoginEndpoint(ApiTestCase):
    def test_login_success_envelope(self) -> None:
        user_id = self.create_user(email="jane@example.com")
        response = self.client.post(
            self.url("/auth/login"), json={"email": "Jane@Example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["status"])
        self.assertEqual(payload["message"], "Login successful.")
        self.assertEqual(payload["data"]["token_type"], "Bearer")
        self.assertEqual(payload["data"]["user"]["id"], user_id)
        self.assertNotIn("password_hash", payload["data"]["user"])

    def test_wrong_password_and_unknown_email_look_the_same(self) -> None:
        self.create_user(email="jane@example.com")
        wrong = self.client.post(self.url("/auth/login"), json={"email": "jane@example.com", "password": "nope-nope"})
        unknown = self.client.post(self.url("/auth/login"), json={"email": "ghost@example.com", "password": PASSWORD})
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.json(), unknown.json())
        self.assertEqual(wrong.json()["message"], "Invalid credentials.")

    def test_unverified_email(self) -> None:
        self.create_user(email="jane@example.com", verified=False)
        response = self.client.post(self.url("/auth/login"), json={"email": "jane@example.com", "password": PASSWORD})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Please verify your email first.")

    def test_response_carries_request_id(self) -> None:
        response = self.client.post(self.url("/auth/login"), json={"email": "ghost@example.com", "password": PASSWORD})
        self.assertTrue(response.headers.get("X-Request-Id"))


class TestTokenEndpoints(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create_user(email="jane@example.com")
        self.token = self.login("jane@example.com")

    def test_refresh_revokes_the_old_token(self) -> None:
        response = self.client.post(self.url("/auth/refresh-token"), headers=self.bearer(self.token))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Refresh token created successfully.")
        new_token = response.json()["data"]["access_token"]

        stale = self.client.post(self.url("/auth/refresh-token"), headers=self.bearer(self.token))
        self.assertEqual(stale.status_code, 401)
        fresh = self.client.post(self.url("/auth/logout"), headers=self.bearer(new_token))
        self.assertEqual(fresh.status_code, 200)

    def test_logout_revokes_the_token(self) -> None:
        response = self.client.post(self.url("/auth/logout"), headers=self.bearer(self.token))
        self.assertEqual(response.json(), {"status": True, "message": "Logged out successfully."})
        again = self.client.post(self.url("/auth/logout"), headers=self.bearer(self.token))
        self.assertEqual(again.status_code, 401)

    def test_missing_token(self) -> None:
        response = self.client.post(self.url("/auth/logout"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"status": False, "message": "Unauthenticated."})
        self.assertEqual(response.headers.get("WWW-Authenticate"), "Bearer")

    def test_unverified_user_cannot_refresh(self) -> None:
        with self.session_factory() as session:
            user = session.query(User).filter(User.email == "jane@example.com").one()
            user.email_verified_at = None
            session.commit()
        response = self.client.post(self.url("/auth/refresh-token"), headers=self.bearer(self.token))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Your email address is not verified.")


class TestEmailVerificationEndpoints(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client.post(self.url("/auth/register"), json=REGISTER_BODY)
        url = self.mailer.sent_to("john.doe@example.com", "verify_email.html")[0]["context"]["verification_url"]
        parts = urlsplit(url)
        self.verify_path = f"{parts.path}?{parts.query}"

    def test_verify_link_then_conflict(self) -> None:
        response = self.client.post(self.verify_path)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["message"], "Email verified successfully.")
        self.assertIsNotNone(self.fetch_user("john.doe@example.com").email_verified_at)

        again = self.client.post(self.verify_path)
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["message"], "Email already verified.")

    def test_tampered_signature(self) -> None:
        response = self.client.post(self.verify_path[:-4] + "beef")
        self.assertEqual(response.status_code, 403)
        self.assertIsNone(self.fetch_user("john.doe@example.com").email_verified_at)

    def test_missing_signature(self) -> None:
        response = self.client.post(self.verify_path.split("?")[0])
        self.assertEqual(response.status_code, 403)

    def test_login_after_verification(self) -> None:
        self.client.post(self.verify_path)
        self.login("john.doe@example.com")

    def test_resend(self) -> None:
        response = self.client.post(
            self.url("/auth/resend-verification-email"), json={"email": "JOHN.DOE@example.com"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Verification link sent.")
        self.assertEqual(len(self.mailer.sent_to("john.doe@example.com", "verify_email.html")), 2)

    def test_resend_unknown_and_verified(self) -> None:
        unknown = self.client.post(
            self.url("/auth/resend-verification-email"), json={"email": "ghost@example.com"}
        )
        self.assertEqual(unknown.status_code, 404)
        self.assertEqual(unknown.json()["message"], "User not found.")

        self.client.post(self.verify_path)
        verified = self.client.post(
            self.url("/auth/resend-verification-email"), json={"email": "john.doe@example.com"}
        )
        self.assertEqual(verified.status_code, 409)


class TestPasswordResetEndpoints(ApiTestCase):
    FORGOT_MESSAGE = "If your email address exists in our system, a password reset link has been sent to it."

    def setUp(self) -> None:
        super().setUp()
        self.create_user(email="jane@example.com")

    def reset_token(self) -> str:
        url = self.mailer.sent_to("jane@example.com", "reset_password.html")[-1]["context"]["reset_url"]
        return url.split("token=")[1].split("&")[0]

    def reset(self, token: str, password: str = "newsecret", confirmation: str | None = None):
        return self.client.post(
            self.url("/auth/reset-password"),
            json={
                "token": token,
                "email": "jane@example.com",
                "password": password,
                "password_confirmation": confirmation or password,
            },
        )

    def test_forgot_then_reset_then_reuse(self) -> None:
        response = self.client.post(self.url("/auth/forgot-password"), json={"email": "jane@example.com"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], self.FORGOT_MESSAGE)

        token = self.reset_token()
        ok = self.reset(token)
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()["message"], "Your password has been reset successfully.")
        self.login("jane@example.com", "newsecret")

        reused = self.reset(token, "another1")
        self.assertEqual(reused.status_code, 403)
        self.assertEqual(reused.json()["message"], "The password reset token is invalid or has expired.")

    def test_forgot_unknown_email(self) -> None:
        response = self.client.post(self.url("/auth/forgot-password"), json={"email": "ghost@example.com"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], self.FORGOT_MESSAGE)
        self.assertEqual(self.mailer.sent, [])

    def test_forgot_is_throttled(self) -> None:
        self.client.post(self.url("/auth/forgot-password"), json={"email": "jane@example.com"})
        response = self.client.post(self.url("/auth/forgot-password"), json={"email": "jane@example.com"})
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()["message"], "Too many password reset attempts. Please try again later.")

    def test_reset_requires_confirmation(self) -> None:
        self.client.post(self.url("/auth/forgot-password"), json={"email": "jane@example.com"})
        response = self.reset(self.reset_token(), "newsecret", "mismatch")
        self.assertEqual(response.status_code, 422)

    def test_reset_with_unknown_email(self) -> None:
        response = self.client.post(
            self.url("/auth/reset-password"),
            json={
                "token": "whatever",
                "email": "ghost@example.com",
                "password": "newsecret",
                "password_confirmation": "newsecret",
            },
        )
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
