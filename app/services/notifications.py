"""Verification and password reset notifications built on top of a Mailer."""

from urllib.parse import urlencode

from app.models import User
from app.services.mailer import Mailer
from app.services.signed_links import SignedLinkVerifier


class AuthNotifier:
    def __init__(
        self,
        mailer: Mailer,
        links: SignedLinkVerifier,
        frontend_url: str,
        reset_expire_minutes: int,
    ) -> None:
        self.mailer = mailer
        self.links = links
        self.frontend_url = frontend_url.rstrip("/")
        self.reset_expire_minutes = reset_expire_minutes

    def reset_url(self, user: User, token: str) -> str:
        return f"{self.frontend_url}/reset-password?{urlencode({'token': token, 'email': user.email})}"

    async def send_verification_email(self, user: User) -> None:
        link = self.links.build_link(user.id, user.email)
        await self.mailer.send(
            user.email,
            "Verify Email Address",
            "verify_email.html",
            {
                "user_name": user.name,
                "verification_url": self.links.url_for(link),
                "expire_minutes": int(self.links.ttl.total_seconds() // 60),
            },
        )

    async def send_password_reset_email(self, user: User, token: str) -> None:
        await self.mailer.send(
            user.email,
            "Reset Password Notification",
            "reset_password.html",
            {
                "user_name": user.name,
                "reset_url": self.reset_url(user, token),
                "expire_minutes": self.reset_expire_minutes,
            },
        )
