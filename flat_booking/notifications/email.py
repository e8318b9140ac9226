"""
Outgoing email delivery.

Two interchangeable mailers implement ``send(message)``: Resend over HTTP
(preferred) and plain SMTP. Which one is used is decided once, from the
settings, by ``build_mailer``.
"""

from __future__ import annotations

import base64
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any, Optional, Protocol

import requests
import structlog

from flat_booking.config import Settings
from flat_booking.errors import EmailDeliveryError
from flat_booking.network.client import send_request

logger = structlog.get_logger(__name__)

RESEND_URL = "https://api.resend.com/emails"


@dataclass
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"

    @property
    def base64_content(self) -> str:
        return base64.b64encode(self.content).decode("ascii")


@dataclass
class OutgoingEmail:
    to: list[str]
    subject: str
    text: str
    html: Optional[str] = None
    attachments: list[Attachment] = field(default_factory=list)


class Mailer(Protocol):
    def send(self, message: OutgoingEmail) -> dict[str, Any]:
        """Deliver a message; raise EmailDeliveryError on failure."""
        ...


class ResendMailer:
    """Delivers through the Resend HTTP API."""

    def __init__(self, api_key: str, sender: str, timeout: float = 10) -> None:
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

    def send(self, message: OutgoingEmail) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "from": self.sender,
            "to": message.to,
            "subject": message.subject,
            "text": message.text,
        }
        if message.html:
            payload["html"] = message.html
        if message.attachments:
            payload["attachments"] = [
                {
                    "filename": a.filename,
                    "content": a.base64_content,
                    "content_type": a.mime_type,
                }
                for a in message.attachments
            ]

        try:
            res = send_request(
                "POST",
                RESEND_URL,
                provider="resend",
                endpoint="emails",
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        except requests.RequestException as e:
            raise EmailDeliveryError("Resend request failed", detail=str(e)) from e

        if not res.ok:
            raise EmailDeliveryError(
                "Resend rejected the message", detail=res.text, status_code=res.status_code
            )
        try:
            result: dict[str, Any] = res.json()
        except ValueError:
            # 2xx means accepted; the body only carries the message id
            logger.warning("resend_response_unparseable", status_code=res.status_code)
            result = {}
        logger.info("email_sent", provider="resend", to=message.to, email_id=result.get("id"))
        return result


class SmtpMailer:
    """Delivers through an SMTP relay (fallback when no Resend key is configured)."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        secure: bool = False,
        timeout: float = 20,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.secure = secure
        self.timeout = timeout

    def build_message(self, message: OutgoingEmail) -> EmailMessage:
        mime = EmailMessage()
        mime["From"] = self.sender
        mime["To"] = ", ".join(message.to)
        mime["Subject"] = message.subject
        mime.set_content(message.text)
        if message.html:
            mime.add_alternative(message.html, subtype="html")
        for attachment in message.attachments:
            maintype, _, subtype = attachment.mime_type.partition("/")
            mime.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return mime

    def send(self, message: OutgoingEmail) -> dict[str, Any]:
        mime = self.build_message(message)
        try:
            if self.secure:
                server: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            with server:
                if not self.secure:
                    server.ehlo()
                    if server.has_extn("starttls"):
                        server.starttls()
                        server.ehlo()
                server.login(self.username, self.password)
                server.send_message(mime)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError("SMTP delivery failed", detail=str(e)) from e

        logger.info("email_sent", provider="smtp", to=message.to)
        return {"ok": True, "message_id": mime.get("Message-ID")}


def build_mailer(settings: Settings) -> Optional[Mailer]:
    """
    Select the email provider from configuration.

    Returns:
        Optional[Mailer]: ResendMailer if RESEND_API_KEY and EMAIL_FROM are set,
                          else SmtpMailer if every SMTP_* value is set, else None
    """
    if settings.resend_api_key and settings.email_from:
        return ResendMailer(settings.resend_api_key, settings.email_from)
    if (
        settings.smtp_host
        and settings.smtp_user
        and settings.smtp_pass
        and settings.smtp_from
    ):
        return SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_pass,
            sender=settings.smtp_from,
            secure=settings.smtp_secure,
        )
    return None
