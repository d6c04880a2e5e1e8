"""
Tests for outbound mail: providers, best-effort delivery and message content
"""
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

from account_auth.config import Config
from account_auth.notifications import (
    DevEmailProvider,
    EmailMessage,
    Notifier,
    SMTPEmailProvider,
    create_notifier,
    password_reset_email,
    verification_email,
)


class TestNotifier:
    """Test best-effort delivery"""

    def test_deliver_fills_sender(self, mail_provider):
        notifier = Notifier(mail_provider, sender="noreply@example.com")
        assert notifier.send_mail("al@x.com", "Hi", "body") is True

        message = mail_provider.sent[0]
        assert message.to == "al@x.com"
        assert message.from_address == "noreply@example.com"

    def test_explicit_sender_is_kept(self, mail_provider):
        notifier = Notifier(mail_provider, sender="noreply@example.com")
        notifier.deliver(EmailMessage(to="al@x.com", subject="Hi", body="b", from_address="ops@example.com"))
        assert mail_provider.sent[0].from_address == "ops@example.com"

    def test_failure_is_swallowed(self, mail_provider, caplog):
        mail_provider.fail = True
        notifier = Notifier(mail_provider)

        assert notifier.send_mail("al@x.com", "Hi", "body") is False
        assert "Failed to send email to al@x.com" in caplog.text


class TestProviders:
    """Test the dev and SMTP providers"""

    def test_dev_provider_logs_message(self, caplog):
        caplog.set_level("INFO", logger="account_auth.notifications")
        DevEmailProvider().send(EmailMessage(to="al@x.com", subject="Hello", body="link here"))
        assert "al@x.com" in caplog.text
        assert "link here" in caplog.text

    @patch("account_auth.notifications.smtplib.SMTP")
    def test_smtp_provider_sends_over_starttls(self, mock_smtp):
        server = MagicMock()
        mock_smtp.return_value.__enter__.return_value = server

        provider = SMTPEmailProvider(
            host="smtp.example.com",
            port=587,
            user="user",
            password="secret",
            from_address="noreply@example.com",
            timeout=5,
        )
        provider.send(EmailMessage(to="al@x.com", subject="Hello", body="Body"))

        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=5)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "secret")
        sent = server.send_message.call_args[0][0]
        assert sent["To"] == "al@x.com"
        assert sent["From"] == "noreply@example.com"
        assert sent["Subject"] == "Hello"

    @patch("account_auth.notifications.smtplib.SMTP")
    def test_smtp_failure_is_reported_by_notifier(self, mock_smtp):
        mock_smtp.side_effect = OSError("connection refused")
        provider = SMTPEmailProvider("smtp.example.com", 587, "user", "secret", "noreply@example.com")

        assert Notifier(provider).send_mail("al@x.com", "Hello", "Body") is False


class TestCreateNotifier:
    """Test provider selection from configuration"""

    def test_dev_provider_without_smtp(self, config):
        notifier = create_notifier(config)
        assert isinstance(notifier.provider, DevEmailProvider)

    def test_smtp_provider_when_configured(self, env, monkeypatch):
        monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
        monkeypatch.setenv("SMTP_USER", "user")
        monkeypatch.setenv("SMTP_PASSWORD", "secret")
        monkeypatch.setenv("SENDER_EMAIL", "auth@example.com")

        notifier = create_notifier(Config())
        assert isinstance(notifier.provider, SMTPEmailProvider)
        assert notifier.provider.host == "smtp.example.com"
        assert notifier.sender == "auth@example.com"


class TestMessages:
    """Test verification and reset message content"""

    def test_verification_email(self):
        message = verification_email("http://localhost:5173", "al+1@x.com", "tok-123")
        assert message.to == "al+1@x.com"
        assert message.subject == "Welcome to this website"
        assert "15 minutes" in message.body

        link = next(word for word in message.body.split() if word.startswith("http"))
        url = urlparse(link)
        assert url.path == "/verifyAccount"
        assert parse_qs(url.query) == {"token": ["tok-123"], "email": ["al+1@x.com"]}

    def test_password_reset_email(self):
        message = password_reset_email("https://app.example.com", "al@x.com", "tok-456")
        assert message.subject == "Password Reset Link"

        link = next(word for word in message.body.split() if word.startswith("http"))
        url = urlparse(link)
        assert url.netloc == "app.example.com"
        assert url.path == "/verifyReset"
        assert parse_qs(url.query) == {"token": ["tok-456"], "email": ["al@x.com"]}
