"""
Outbound mail.

Two transports share one interface: LogMailer writes the rendered message to
the application log (development), SmtpMailer delivers it with aiosmtplib.
Both render Jinja2 HTML templates from app/templates/email and raise
MailDeliveryError when a message cannot be handed off.
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, TemplateError

from app.core.exceptions import MailDeliveryError

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "email"

_jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=True,
)


def render_template(template_name: str, **context: Any) -> str:
    try:
        return _jinja_env.get_template(template_name).render(**context)
    except TemplateError as e:
        raise MailDeliveryError(f"Could not render {template_name}: {e}") from e


class Mailer(Protocol):
    async def send(self, to_email: str, subject: str, template: str, context: dict[str, Any]) -> None:
        ...


class LogMailer:
    """Logs the message instead of delivering it."""

    async def send(self, to_email: str, subject: str, template: str, context: dict[str, Any]) -> None:
        html = render_template(template, **context)
        logger.info("Mail to %s: %s\n%s", to_email, subject, html)


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout

    async def send(self, to_email: str, subject: str, template: str, context: dict[str, Any]) -> None:
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_address}>"
        message["To"] = to_email
        message["Subject"] = subject
        message.attach(MIMEText(render_template(template, **context), "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP delivery to {to_email} failed: {e}") from e
        logger.info("Email sent to %s: %s", to_email, subject)


def build_mailer(settings: "Settings") -> Mailer:
    if settings.MAIL_DRIVER == "smtp":
        return SmtpMailer(
            host=settings.MAIL_HOST,
            port=settings.MAIL_PORT,
            username=settings.MAIL_USERNAME,
            password=settings.MAIL_PASSWORD.get_secret_value() if settings.MAIL_PASSWORD else None,
            from_address=settings.MAIL_FROM_ADDRESS,
            from_name=settings.MAIL_FROM_NAME,
            use_tls=settings.MAIL_USE_TLS,
            timeout=settings.MAIL_TIMEOUT_SEC,
        )
    return LogMailer()
