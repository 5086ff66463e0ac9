"""Send generated emails through an SMTP relay (Gmail by default)."""

import html
import logging
import mimetypes
import os
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

import httpx

from src.core.config import MailConfig
from src.core.errors import CredentialsMissingError, DispatchError
from src.resume.resolver import is_url, normalize_local_path

logger = logging.getLogger(__name__)

USER_ENV_VAR = "GMAIL_USER"
PASSWORD_ENV_VAR = "GMAIL_APP_PASSWORD"
_DEFAULT_FILENAME = "resume.pdf"


def body_to_html(body: str) -> str:
    """Render a plain-text body as HTML, turning newlines into <br>."""
    return html.escape(body).replace("\r\n", "\n").replace("\n", "<br>")


def _attachment_filename(path: str) -> str:
    if is_url(path):
        name = PurePosixPath(unquote(urlparse(path).path)).name
    else:
        name = normalize_local_path(path).name
    return name or _DEFAULT_FILENAME


class MailDispatcher:
    """Builds and sends one email per call.

    Args:
        config: SMTP relay settings.
        client: httpx client used to download URL attachments.
        timeout_sec: Download timeout when no client is given.
    """

    def __init__(
        self,
        config: MailConfig,
        client: httpx.Client | None = None,
        timeout_sec: float = 30.0,
    ) -> None:
        self._config = config
        self._client = client
        self._timeout_sec = timeout_sec

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        attachment_path: str | None = None,
        *,
        user: str | None = None,
        password: str | None = None,
    ) -> str:
        """Send the email and return its Message-ID.

        Raises:
            CredentialsMissingError: If no relay credentials are available.
            DispatchError: If the relay rejects the message or a local
                attachment cannot be read.
        """
        sender = user or os.environ.get(USER_ENV_VAR)
        secret = password or os.environ.get(PASSWORD_ENV_VAR)
        if not sender or not secret:
            msg = f"Mail credentials are not configured ({USER_ENV_VAR}/{PASSWORD_ENV_VAR})"
            raise CredentialsMissingError(msg)

        message = EmailMessage()
        message["From"] = sender
        message["To"] = to
        message["Subject"] = subject
        message_id = make_msgid(domain=sender.rpartition("@")[2] or None)
        message["Message-ID"] = message_id
        message.set_content(body)
        message.add_alternative(body_to_html(body), subtype="html")

        if attachment_path:
            self._attach(message, attachment_path)

        self._deliver(message, sender, secret)
        logger.info("Email sent to %s: %s", to, message_id)
        return message_id

    def _attach(self, message: EmailMessage, path: str) -> None:
        filename = _attachment_filename(path)
        if is_url(path):
            logger.info("Attaching resume from URL: %s", path)
            try:
                data = self._download(path)
            except httpx.HTTPError as e:
                logger.warning("Failed to attach resume from URL %s: %s", path, e)
                return
        else:
            local = normalize_local_path(path)
            try:
                data = local.read_bytes()
            except OSError as e:
                msg = f"Cannot read attachment {local}: {e}"
                raise DispatchError(msg) from e

        ctype, _ = mimetypes.guess_type(filename)
        maintype, _, subtype = (ctype or "application/octet-stream").partition("/")
        message.add_attachment(data, maintype=maintype, subtype=subtype, filename=filename)

    def _download(self, url: str) -> bytes:
        if self._client is not None:
            response = self._client.get(url, follow_redirects=True)
        else:
            with httpx.Client(timeout=self._timeout_sec, follow_redirects=True) as client:
                response = client.get(url)
        response.raise_for_status()
        return response.content

    def _deliver(self, message: EmailMessage, user: str, password: str) -> None:
        cfg = self._config
        try:
            if cfg.use_ssl:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(
                    cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_sec, context=context
                ) as smtp:
                    smtp.login(user, password)
                    smtp.send_message(message)
            else:
                with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_sec) as smtp:
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.login(user, password)
                    smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            msg = f"Failed to send email via {cfg.smtp_host}: {e}"
            raise DispatchError(msg) from e
