"""
Notifier
Adapter pattern for outbound mail (dev logging vs production SMTP).
Delivery is best-effort: failures are logged and never reach the caller.
"""
import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    """Email message structure"""
    to: str
    subject: str
    body: str
    from_address: Optional[str] = None


class EmailProvider(ABC):
    """
    Abstract email provider interface

    Implementations:
    - DevEmailProvider: Logs emails to console (development)
    - SMTPEmailProvider: Sends via SMTP (production)
    """

    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        """Send an email, raising on failure"""


class DevEmailProvider(EmailProvider):
    """Development email provider - logs emails instead of sending"""

    def send(self, message: EmailMessage) -> None:
        logger.info(
            f"EMAIL (dev mode, not sent) to={message.to} "
            f"from={message.from_address or 'noreply@example.com'} subject={message.subject!r}\n"
            f"{message.body}"
        )


class SMTPEmailProvider(EmailProvider):
    """SMTP email provider for production (STARTTLS)"""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: str,
        timeout: float = 20.0
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        msg = MIMEText(message.body, 'plain')
        msg['Subject'] = message.subject
        msg['From'] = message.from_address or self.from_address
        msg['To'] = message.to

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.starttls()
            server.login(self.user, self.password)
            server.send_message(msg)


class Notifier:
    """Fire-and-forget mail delivery on top of a provider"""

    def __init__(self, provider: EmailProvider, sender: Optional[str] = None):
        self.provider = provider
        self.sender = sender

    def send_mail(self, to: str, subject: str, body: str) -> bool:
        return self.deliver(EmailMessage(to=to, subject=subject, body=body))

    def deliver(self, message: EmailMessage) -> bool:
        """Send a message. Returns False instead of raising when delivery fails."""
        if message.from_address is None:
            message.from_address = self.sender
        try:
            self.provider.send(message)
        except Exception as e:
            logger.error(f"Failed to send email to {message.to}: {e}", exc_info=True)
            return False
        logger.info(f"Email sent to {message.to}: {message.subject}")
        return True


def create_notifier(config) -> Notifier:
    """Use SMTP when it is configured, the dev logger otherwise"""
    if config.smtp_enabled:
        logger.info(f"Email provider: SMTP ({config.SMTP_HOST}:{config.SMTP_PORT})")
        provider = SMTPEmailProvider(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            user=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            from_address=config.SENDER_EMAIL,
            timeout=config.SMTP_TIMEOUT,
        )
    else:
        logger.info("Email provider: DevEmailProvider (logs to console only)")
        provider = DevEmailProvider()
    return Notifier(provider, sender=config.SENDER_EMAIL)


def _link(frontend_url: str, page: str, token: str, email: str) -> str:
    return f"{frontend_url}/{page}?{urlencode({'token': token, 'email': email})}"


def verification_email(frontend_url: str, email: str, token: str) -> EmailMessage:
    verify_url = _link(frontend_url, "verifyAccount", token, email)
    body = (
        "Welcome to this website!\n\n"
        f"Your account has been created with email id: {email}.\n\n"
        f"Kindly click on the URL below to verify your account:\n{verify_url}\n\n"
        "Please note: This link will expire in 15 minutes. If it expires, "
        "you'll need to request a new verification link.\n"
    )
    return EmailMessage(to=email, subject="Welcome to this website", body=body)


def password_reset_email(frontend_url: str, email: str, token: str) -> EmailMessage:
    reset_url = _link(frontend_url, "verifyReset", token, email)
    body = (
        "We received a request to reset your password for your account "
        f"linked with email: {email}.\n"
        f"Your link for resetting your password is: {reset_url}\n"
        "This link will expire in 15 minutes. If you did not request this, "
        "please ignore this email.\n"
        "For security reasons, do not share this link with anyone.\n"
    )
    return EmailMessage(to=email, subject="Password Reset Link", body=body)
