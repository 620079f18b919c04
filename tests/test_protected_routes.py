"""Role-guarded demo routes: 401 without a token, 403 without the role, 200 with it."""

from tests.support import ApiTestCase


class TestProtectedRoutes(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create_user(email="admin@example.com", roles=["Admin"])
        self.create_user(email="member@example.com", roles=["User", "Subscriber"])
        self.admin_token = self.login("admin@example.com")
        self.member_token = self.login("member@example.com")

    def test_unauthenticated(self) -> None:
        for path in ("/admin", "/user", "/subscriber"):
            with self.subTest(path=path):
                response = self.client.get(self.url(path))
                self.assertEqual(response.status_code, 401)
                self.assertEqual(response.json()["message"], "Unauthenticated.")

    def test_invalid_token(self) -> None:
        response = self.client.get(self.url("/user"), headers=self.bearer("garbage"))
        self.assertEqual(response.status_code, 401)

    def test_admin_route(self) -> None:
        allowed = self.client.get(self.url("/admin"), headers=self.bearer(self.admin_token))
        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(allowed.json()["data"]["email"], "admin@example.com")

        denied = self.client.get(self.url("/admin"), headers=self.bearer(self.member_token))
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(
            denied.json(),
            {"status": False, "message": "You do not have permission to access this resource."},
        )

    def test_member_routes(self) -> None:
        for path in ("/user", "/subscriber"):
            with self.subTest(path=path):
                response = self.client.get(self.url(path), headers=self.bearer(self.member_token))
                self.assertEqual(response.status_code, 200)
                self.assertEqual(response.json()["data"]["role_names"], ["Subscriber", "User"])
        denied = self.client.get(self.url("/user"), headers=self.bearer(self.admin_token))
        self.assertEqual(denied.status_code, 403)

    def test_revoked_token_loses_access(self) -> None:
        self.client.post(self.url("/auth/logout"), headers=self.bearer(self.member_token))
        response = self.client.get(self.url("/user"), headers=self.bearer(self.member_token))
        self.assertEqual(response.status_code, 401)
