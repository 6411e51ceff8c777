"""
Mail Transport Infrastructure
=============================

Outbound SMTP client. One instance is built during application startup,
verified once, and injected into the notification dispatcher; the SMTP
connection is reused across sends.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr
from typing import Dict, Optional

import aiosmtplib

from autoresponder.config import Settings
from autoresponder.core import DeliveryException
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class OutgoingEmail:
    """A rendered message ready for the transport."""
    to: str
    subject: str
    text: str
    html: Optional[str] = None
    to_name: Optional[str] = None
    from_email: Optional[str] = None
    from_name: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def to_message(self, default_from: str, default_from_name: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name or default_from_name, self.from_email or default_from))
        message["To"] = formataddr((self.to_name, self.to)) if self.to_name else self.to
        message["Subject"] = self.subject
        for name, value in self.headers.items():
            message[name] = value
        message.set_content(self.text)
        if self.html:
            message.add_alternative(self.html, subtype="html")
        return message


class IMailClient(ABC):
    """Interface for outbound mail."""

    @abstractmethod
    async def send(self, email: OutgoingEmail) -> None:
        """Deliver one message or raise DeliveryException."""

    async def verify(self) -> bool:
        """Check the transport is reachable."""
        return True

    async def close(self) -> None:
        """Release the transport connection."""


class SMTPMailClient(IMailClient):
    """
    aiosmtplib-backed SMTP client.

    Sends are serialised over a single connection; a dropped connection is
    re-opened on the next send.
    """

    def __init__(self, settings: Settings):
        self._from_email = settings.from_email
        self._from_name = settings.from_name
        self._smtp = aiosmtplib.SMTP(
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.http_timeout_seconds * 2,
        )
        self._lock = asyncio.Lock()
        self._verified = False

    async def _ensure_connected(self) -> None:
        if not self._smtp.is_connected:
            await self._smtp.connect()

    async def verify(self) -> bool:
        """Open the connection once at startup."""
        try:
            async with self._lock:
                await self._ensure_connected()
            self._verified = True
            logger.info("SMTP transport verified")
        except (aiosmtplib.SMTPException, OSError) as e:
            self._verified = False
            logger.warning("SMTP transport verification failed", extra={"error": str(e)})
        return self._verified

    async def send(self, email: OutgoingEmail) -> None:
        message = email.to_message(self._from_email, self._from_name)
        try:
            async with self._lock:
                await self._ensure_connected()
                await self._smtp.send_message(message)
        except (aiosmtplib.SMTPException, OSError) as e:
            raise DeliveryException("email", str(e), {"to": email.to})

        logger.info("Email sent", extra={"to": email.to, "subject": email.subject})

    async def close(self) -> None:
        if self._smtp.is_connected:
            try:
                await self._smtp.quit()
            except aiosmtplib.SMTPException as e:
                logger.warning("SMTP quit failed", extra={"error": str(e)})


__all__ = [
    "OutgoingEmail",
    "IMailClient",
    "SMTPMailClient",
]
