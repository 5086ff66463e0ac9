"""Tests for the SMTP mail dispatcher."""

import smtplib
from email.message import EmailMessage
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from src.core.config import MailConfig
from src.core.errors import CredentialsMissingError, DispatchError
from src.mail.dispatcher import MailDispatcher, body_to_html


def _client(status: int = 200, content: bytes = b"%PDF-1.4") -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=content)

    return httpx.Client(transport=httpx.MockTransport(handler))


def _sent_message(mock_smtp_cls: MagicMock) -> EmailMessage:
    smtp = mock_smtp_cls.return_value.__enter__.return_value
    return smtp.send_message.call_args.args[0]


def _attachments(message: EmailMessage) -> list[EmailMessage]:
    return list(message.iter_attachments())


class TestBodyToHtml:
    def test_line_breaks(self) -> None:
        assert body_to_html("Hi,\n\nThanks") == "Hi,<br><br>Thanks"

    def test_crlf(self) -> None:
        assert body_to_html("a\r\nb") == "a<br>b"

    def test_escapes_markup(self) -> None:
        assert body_to_html("<b>x</b>") == "&lt;b&gt;x&lt;/b&gt;"


class TestCredentials:
    def test_missing(self) -> None:
        dispatcher = MailDispatcher(MailConfig())
        with (
            patch.dict("os.environ", {}, clear=True),
            pytest.raises(CredentialsMissingError, match="GMAIL_USER"),
        ):
            dispatcher.send("hr@acme.io", "S", "B")

    def test_missing_is_dispatch_error(self) -> None:
        dispatcher = MailDispatcher(MailConfig())
        with (
            patch.dict("os.environ", {"GMAIL_USER": "me@gmail.com"}, clear=True),
            pytest.raises(DispatchError),
        ):
            dispatcher.send("hr@acme.io", "S", "B")

    def test_env_fallback(self) -> None:
        dispatcher = MailDispatcher(MailConfig())
        env = {"GMAIL_USER": "me@gmail.com", "GMAIL_APP_PASSWORD": "secret"}
        with (
            patch.dict("os.environ", env, clear=True),
            patch("smtplib.SMTP_SSL") as mock_ssl,
        ):
            dispatcher.send("hr@acme.io", "S", "B")
        smtp = mock_ssl.return_value.__enter__.return_value
        smtp.login.assert_called_once_with("me@gmail.com", "secret")

    def test_override_wins(self) -> None:
        dispatcher = MailDispatcher(MailConfig())
        env = {"GMAIL_USER": "env@gmail.com", "GMAIL_APP_PASSWORD": "env"}
        with (
            patch.dict("os.environ", env, clear=True),
            patch("smtplib.SMTP_SSL") as mock_ssl,
        ):
            dispatcher.send("hr@acme.io", "S", "B", user="me@x.io", password="pw")
        smtp = mock_ssl.return_value.__enter__.return_value
        smtp.login.assert_called_once_with("me@x.io", "pw")
        assert _sent_message(mock_ssl)["From"] == "me@x.io"


class TestSend:
    def test_message_shape(self) -> None:
        dispatcher = MailDispatcher(MailConfig())
        with patch("smtplib.SMTP_SSL") as mock_ssl:
            message_id = dispatcher.send(
                "hr@acme.io", "Application", "Hello\nWorld", user="me@x.io", password="pw",
            )

        mock_ssl.assert_called_once()
        assert mock_ssl.call_args.args == ("smtp.gmail.com", 465)
        message = _sent_message(mock_ssl)
        assert message["To"] == "hr@acme.io"
        assert message["Subject"] == "Application"
        assert message["Message-ID"] == message_id
        assert message_id.endswith("@x.io>")
        plain = message.get_body(preferencelist=("plain",))
        html_part = message.get_body(preferencelist=("html",))
        assert plain is not None and plain.get_content().strip() == "Hello\nWorld"
        assert html_part is not None and "Hello<br>World" in html_part.get_content()

    def test_starttls_when_ssl_disabled(self) -> None:
        dispatcher = MailDispatcher(MailConfig(smtp_host="smtp.example.com", smtp_port=587, use_ssl=False))
        with patch("smtplib.SMTP") as mock_smtp:
            dispatcher.send("hr@acme.io", "S", "B", user="me@x.io", password="pw")
        smtp = mock_smtp.return_value.__enter__.return_value
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("me@x.io", "pw")
        smtp.send_message.assert_called_once()

    def test_smtp_failure(self) -> None:
        dispatcher = MailDispatcher(MailConfig())
        with patch("smtplib.SMTP_SSL") as mock_ssl:
            smtp = mock_ssl.return_value.__enter__.return_value
            smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
            with pytest.raises(DispatchError, match="Failed to send email"):
                dispatcher.send("hr@acme.io", "S", "B", user="me@x.io", password="pw")


class TestAttachments:
    def test_url_attachment(self) -> None:
        dispatcher = MailDispatcher(MailConfig(), client=_client(content=b"%PDF-data"))
        with patch("smtplib.SMTP_SSL") as mock_ssl:
            dispatcher.send(
                "hr@acme.io", "S", "B",
                attachment_path="https://cdn.example.com/files/jane%20resume.pdf",
                user="me@x.io", password="pw",
            )
        attachments = _attachments(_sent_message(mock_ssl))
        assert len(attachments) == 1
        assert attachments[0].get_filename() == "jane resume.pdf"
        assert attachments[0].get_content_type() == "application/pdf"
        assert attachments[0].get_content() == b"%PDF-data"

    def test_url_download_failure_sends_without_attachment(self) -> None:
        dispatcher = MailDispatcher(MailConfig(), client=_client(status=500))
        with patch("smtplib.SMTP_SSL") as mock_ssl:
            dispatcher.send(
                "hr@acme.io", "S", "B",
                attachment_path="https://cdn.example.com/resume.pdf",
                user="me@x.io", password="pw",
            )
        message = _sent_message(mock_ssl)
        assert _attachments(message) == []

    def test_local_attachment(self, tmp_path: Path) -> None:
        resume = tmp_path / "resume.txt"
        resume.write_text("Jane Doe")
        dispatcher = MailDispatcher(MailConfig())
        with patch("smtplib.SMTP_SSL") as mock_ssl:
            dispatcher.send(
                "hr@acme.io", "S", "B", attachment_path=str(resume),
                user="me@x.io", password="pw",
            )
        attachments = _attachments(_sent_message(mock_ssl))
        assert [a.get_filename() for a in attachments] == ["resume.txt"]

    def test_local_attachment_missing(self, tmp_path: Path) -> None:
        dispatcher = MailDispatcher(MailConfig())
        with (
            patch("smtplib.SMTP_SSL") as mock_ssl,
            pytest.raises(DispatchError, match="Cannot read attachment"),
        ):
            dispatcher.send(
                "hr@acme.io", "S", "B", attachment_path=str(tmp_path / "gone.pdf"),
                user="me@x.io", password="pw",
            )
        mock_ssl.assert_not_called()
