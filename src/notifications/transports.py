"""Push and email transports.

Push transports return a bool and never raise: push is fire-and-forget.
Email transports raise ``TransientTransportError`` or
``PermanentTransportError`` so the delivery queue can decide between
retrying and failing a record. Retry policy lives only in the queue.
"""

import asyncio
import inspect
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any

import httpx

logger = logging.getLogger(__name__)

LocalNotificationHandler = Callable[
    [str, str, str, dict[str, Any]], Awaitable[None] | None
]

# Client errors worth retrying; every 5xx is retried as well
RETRYABLE_CLIENT_STATUS_CODES = frozenset({408, 425, 429})


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_CLIENT_STATUS_CODES


class TransportError(Exception):
    """Base class for email transport failures."""


class TransientTransportError(TransportError):
    """The send may succeed if retried later (network, 4xx SMTP, 5xx HTTP)."""


class PermanentTransportError(TransportError):
    """Retrying will not help (rejected recipient, auth failure, bad request)."""


# ── Push ────────────────────────────────────────────────


class PushTransport(ABC):
    """Delivers a short notification to a user's device(s)."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel label used in logs and metrics (e.g. 'local', 'push')."""

    @abstractmethod
    async def send_push(
        self,
        target: str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Deliver a notification.

        Args:
            target: Device or user identifier.
            title: Notification title.
            body: Notification body.
            data: Extra payload for the client.

        Returns:
            True if delivery succeeded, False otherwise.
        """


class LocalNotificationTransport(PushTransport):
    """Immediate foreground display through a registered callback.

    The handler receives ``(target, title, body, data)`` and may be sync or
    async. Without a handler nothing is displayed and sends report failure.
    """

    def __init__(self, handler: LocalNotificationHandler | None = None) -> None:
        self._handler = handler

    @property
    def name(self) -> str:
        return "local"

    def register(self, handler: LocalNotificationHandler) -> None:
        self._handler = handler

    async def send_push(
        self,
        target: str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        if self._handler is None:
            logger.debug("No local notification handler registered; dropping %r", title)
            return False
        try:
            result = self._handler(target, title, body, data or {})
            if inspect.isawaitable(result):
                await result
            return True
        except Exception as e:
            logger.warning("Local notification handler failed for %s: %s", target, e)
            return False


class WebPushTransport(PushTransport):
    """Server-mediated push through the backend's push endpoint.

    The backend holds the user's push subscriptions and fans the message
    out to every registered device, so delivery works even when the client
    process is not running.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        icon: str = "/favicon.ico",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/api/pushnotification/send"
        self._timeout = timeout
        self._icon = icon
        self._client = client

    @property
    def name(self) -> str:
        return "push"

    async def send_push(
        self,
        target: str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        payload = {
            "userId": target,
            "title": title,
            "body": body,
            "icon": self._icon,
            "data": data or {},
        }
        try:
            if self._client is not None:
                resp = await self._client.post(self._url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._url, json=payload)
        except httpx.TimeoutException:
            logger.warning("Push to %s timed out", target)
            return False
        except httpx.HTTPError as e:
            logger.warning("Push to %s failed: %s", target, e)
            return False

        if resp.is_success:
            return True
        logger.warning("Push endpoint returned %d for %s", resp.status_code, target)
        return False


# ── Email ───────────────────────────────────────────────


class EmailTransport(ABC):
    """Sends one rendered email."""

    @abstractmethod
    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> None:
        """Send an email.

        Raises:
            TransientTransportError: Worth retrying later.
            PermanentTransportError: Will never succeed as-is.
        """

    async def close(self) -> None:
        """Release held resources (no-op by default)."""


class SmtpEmailTransport(EmailTransport):
    """SMTP delivery with smtplib, run in a worker thread.

    Port 465 uses implicit SSL; other ports use STARTTLS when ``use_tls``.
    SMTP 5xx replies and refused sender or credentials are permanent.
    A refused recipient is transient only when every refusal code is 4xx.
    4xx replies, disconnects, and socket errors are transient.
    """

    def __init__(
        self,
        smtp_server: str,
        smtp_port: int = 587,
        smtp_username: str | None = None,
        smtp_password: str | None = None,
        from_address: str | None = None,
        from_name: str = "Weather App",
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username or from_address
        self.smtp_password = smtp_password
        self.from_address = from_address or f"alerts@{smtp_server}"
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout

    def _build_message(
        self, to: str, subject: str, html_body: str, text_body: str | None,
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = to
        if text_body:
            msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _send_sync(self, to: str, msg: MIMEMultipart) -> None:
        if self.smtp_port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(
                self.smtp_server, self.smtp_port, timeout=self.timeout, context=context,
            ) as server:
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.from_address, [to], msg.as_string())
        else:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.from_address, [to], msg.as_string())

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> None:
        msg = self._build_message(to, subject, html_body, text_body)
        try:
            await asyncio.to_thread(self._send_sync, to, msg)
        except smtplib.SMTPRecipientsRefused as e:
            codes = [code for code, _ in e.recipients.values()]
            if codes and all(400 <= code < 500 for code in codes):
                raise TransientTransportError(
                    f"SMTP deferred recipient {to}: {e.recipients}"
                ) from e
            raise PermanentTransportError(f"SMTP rejected message to {to}: {e}") from e
        except (
            smtplib.SMTPSenderRefused,
            smtplib.SMTPAuthenticationError,
            smtplib.SMTPNotSupportedError,
        ) as e:
            raise PermanentTransportError(f"SMTP rejected message to {to}: {e}") from e
        except smtplib.SMTPConnectError as e:
            raise TransientTransportError(f"SMTP connect failed: {e}") from e
        except smtplib.SMTPResponseException as e:
            if e.smtp_code >= 500:
                raise PermanentTransportError(
                    f"SMTP {e.smtp_code}: {e.smtp_error!r}"
                ) from e
            raise TransientTransportError(f"SMTP {e.smtp_code}: {e.smtp_error!r}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise TransientTransportError(f"SMTP send failed: {e}") from e

        logger.info("Email sent to %s via %s:%d", to, self.smtp_server, self.smtp_port)


class HttpEmailTransport(EmailTransport):
    """Hands the rendered email to the notifications API over HTTP.

    408, 425, 429 and any 5xx response, and network errors, are transient;
    any other non-success status is permanent.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/api/notifications/email"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> None:
        payload = {"toEmail": to, "subject": subject, "htmlBody": html_body}
        if text_body:
            payload["textBody"] = text_body
        try:
            resp = await self._client.post(self._url, json=payload)
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"Email API timed out for {to}") from e
        except httpx.HTTPError as e:
            raise TransientTransportError(f"Email API request failed: {e}") from e

        if resp.is_success:
            logger.info("Email for %s accepted by API", to)
            return
        detail = resp.text[:200]
        if is_retryable_status(resp.status_code):
            raise TransientTransportError(f"Email API returned {resp.status_code}: {detail}")
        raise PermanentTransportError(f"Email API returned {resp.status_code}: {detail}")

    async def close(self) -> None:
        await self._client.aclose()
