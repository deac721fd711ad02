"""
Unit tests for mail adapters.

Tests verify the console and SMTP transports implement MailTransport and
that the Jinja2 renderer resolves templates and subjects per locale.
"""

import logging
import smtplib
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest
from jinja2 import TemplateNotFound

from src.adapters.mail.console import ConsoleMailTransport
from src.adapters.mail.smtp import SmtpMailTransport
from src.adapters.mail.templates import JinjaTemplateRenderer
from src.domain.accounts import NotificationKind
from src.domain.ports import MailMessage, MailTransport


def make_message(**overrides) -> MailMessage:
    values = {
        "recipient": "user@example.com",
        "subject": "Account activation",
        "body": "<p>http://accounts.test/activate?key=abc</p>",
    }
    values.update(overrides)
    return MailMessage(**values)


def write_catalog(locales_dir, locale: str, messages: dict[str, str]) -> None:
    lc_messages = locales_dir / locale / "LC_MESSAGES"
    lc_messages.mkdir(parents=True)
    entries = "".join(f'\nmsgid "{key}"\nmsgstr "{value}"\n' for key, value in messages.items())
    (lc_messages / "messages.po").write_text(
        'msgid ""\nmsgstr ""\n"Content-Type: text/plain; charset=utf-8\\n"\n' + entries,
        encoding="utf-8",
    )


class TestConsoleMailTransport:
    """Tests for the console transport."""

    def test_no_explicit_inheritance(self) -> None:
        """ConsoleMailTransport uses structural subtyping, not inheritance."""
        assert ConsoleMailTransport.__bases__ == (object,)

        def accepts_transport(t: MailTransport) -> None:
            pass

        accepts_transport(ConsoleMailTransport())

    def test_send_logs_message(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            result = ConsoleMailTransport().send(make_message())

        assert result is True
        assert len(caplog.records) == 1
        assert caplog.records[0].levelno == logging.INFO
        assert "[MAIL] To: user@example.com Subject: Account activation" in caplog.text
        assert "activate?key=abc" in caplog.text

    def test_concurrent_logging_is_thread_safe(self, caplog: pytest.LogCaptureFixture) -> None:
        """Multiple concurrent sends each produce one complete record."""
        transport = ConsoleMailTransport()

        with caplog.at_level(logging.INFO), ThreadPoolExecutor(max_workers=5) as executor:
            futures = [
                executor.submit(transport.send, make_message(recipient=f"user{i}@example.com"))
                for i in range(10)
            ]
            for f in futures:
                f.result()

        assert len(caplog.records) == 10
        for record in caplog.records:
            assert "[MAIL] To:" in record.getMessage()
            assert "Subject:" in record.getMessage()


class TestSmtpMailTransport:
    """Tests for the SMTP transport with smtplib mocked out."""

    def make_transport(self, **overrides) -> SmtpMailTransport:
        values = {
            "host": "smtp.example.com",
            "port": 587,
            "sender": "accounts@example.com",
            "username": "mailer",
            "password": "secret",
        }
        values.update(overrides)
        return SmtpMailTransport(**values)

    def test_build_sets_headers_and_html_body(self) -> None:
        email = self.make_transport().build(make_message())

        assert email["From"] == "accounts@example.com"
        assert email["To"] == "user@example.com"
        assert email["Subject"] == "Account activation"
        assert email.get_content_type() == "text/html"

    def test_build_plain_text(self) -> None:
        email = self.make_transport().build(make_message(html=False, body="plain"))
        assert email.get_content_type() == "text/plain"

    def test_send_uses_starttls_and_login(self) -> None:
        with patch("src.adapters.mail.smtp.smtplib.SMTP") as smtp_cls:
            conn = MagicMock()
            smtp_cls.return_value.__enter__.return_value = conn

            assert self.make_transport().send(make_message()) is True

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
        conn.starttls.assert_called_once()
        conn.login.assert_called_once_with("mailer", "secret")
        conn.send_message.assert_called_once()

    def test_send_without_credentials_skips_login(self) -> None:
        with patch("src.adapters.mail.smtp.smtplib.SMTP") as smtp_cls:
            conn = MagicMock()
            smtp_cls.return_value.__enter__.return_value = conn

            self.make_transport(username=None, password=None, starttls=False).send(make_message())

        conn.starttls.assert_not_called()
        conn.login.assert_not_called()

    @pytest.mark.parametrize(
        "error", [smtplib.SMTPRecipientsRefused({}), ConnectionRefusedError("refused")]
    )
    def test_send_failure_returns_false(self, error: Exception, caplog: pytest.LogCaptureFixture) -> None:
        with patch("src.adapters.mail.smtp.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.__enter__.return_value.send_message.side_effect = error

            with caplog.at_level(logging.ERROR):
                assert self.make_transport().send(make_message()) is False

        assert "SMTP delivery to user@example.com failed" in caplog.text


class TestJinjaTemplateRenderer:
    """Tests for template and subject resolution."""

    def test_renders_variables(self) -> None:
        body = JinjaTemplateRenderer().render(
            NotificationKind.ACTIVATION,
            "en",
            {"user": MagicMock(first_name="Ann", login="ann"), "base_url": "http://x", "key": "K1"},
        )
        assert "Dear Ann" in body
        assert "http://x/activate?key=K1" in body

    def test_falls_back_to_login_without_first_name(self) -> None:
        body = JinjaTemplateRenderer().render(
            NotificationKind.PASSWORD_RESET,
            "en",
            {"user": MagicMock(first_name=None, login="ann"), "base_url": "http://x", "key": "K1"},
        )
        assert "Dear ann" in body

    @pytest.mark.parametrize(
        ("kind", "locale", "subject"),
        [
            (NotificationKind.ACTIVATION, "en", "Account activation"),
            (NotificationKind.PASSWORD_RESET, "en", "Password reset"),
            (NotificationKind.CREATION, "en", "Your account has been created"),
            (NotificationKind.PASSWORD_RESET, "ru", "Сброс пароля"),
            (NotificationKind.ACTIVATION, "de", "Account activation"),
        ],
    )
    def test_subjects(self, kind: NotificationKind, locale: str, subject: str) -> None:
        assert JinjaTemplateRenderer().subject(kind, locale) == subject

    def test_custom_templates_dir(self, tmp_path) -> None:
        (tmp_path / "en").mkdir()
        (tmp_path / "en" / "activation_email.html").write_text("Hi {{ user.login }} {{ key }}")

        renderer = JinjaTemplateRenderer(templates_dir=tmp_path)
        body = renderer.render(
            NotificationKind.ACTIVATION, "ru", {"user": MagicMock(login="bob"), "key": "K2"}
        )
        assert body == "Hi bob K2"

    def test_subjects_read_from_locale_catalogs(self, tmp_path) -> None:
        write_catalog(tmp_path, "en", {"email.activation.title": "Activate now"})
        write_catalog(tmp_path, "fr", {"email.activation.title": "Activez votre compte"})

        renderer = JinjaTemplateRenderer(locales_dir=tmp_path)

        assert renderer.subject(NotificationKind.ACTIVATION, "fr") == "Activez votre compte"
        assert renderer.subject(NotificationKind.ACTIVATION, "en") == "Activate now"

    def test_message_missing_from_locale_uses_default_catalog(self, tmp_path) -> None:
        write_catalog(tmp_path, "en", {"email.reset.title": "Reset"})
        write_catalog(tmp_path, "fr", {"email.activation.title": "Activez votre compte"})

        renderer = JinjaTemplateRenderer(locales_dir=tmp_path)

        assert renderer.subject(NotificationKind.PASSWORD_RESET, "fr") == "Reset"

    def test_missing_default_catalog_returns_message_key(
        self, tmp_path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            renderer = JinjaTemplateRenderer(locales_dir=tmp_path)

        assert renderer.subject(NotificationKind.CREATION, "en") == "email.creation.title"
        assert "No message catalog for default locale en" in caplog.text

    def test_missing_template_raises(self, tmp_path) -> None:
        """Rendering errors surface to the gateway, which logs them."""
        renderer = JinjaTemplateRenderer(templates_dir=tmp_path)
        with pytest.raises(TemplateNotFound):
            renderer.render(NotificationKind.ACTIVATION, "en", {})
