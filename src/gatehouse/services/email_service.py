# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Email dispatch and the verification email.

Dispatchers never raise for delivery problems: they return a ``SendResult``
with ``error`` set, and the caller decides what that means.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from datetime import timedelta
from email.message import EmailMessage
from email.utils import make_msgid
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from gatehouse.logging_utils import KEEP_VERIFY_LINK

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"
VERIFICATION_SUBJECT = "Verify your email address"


@dataclass(frozen=True)
class SendResult:
    message_id: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class EmailContent:
    subject: str
    text: str
    html: str


class EmailDispatcher(Protocol):
    async def send(self, to: str, subject: str, text: str, html: str) -> SendResult: ...


class SmtpEmailDispatcher:
    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        user: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self._password = password
        self.sender = sender or user or f"noreply@{host}"
        self.use_tls = use_tls
        self.timeout = timeout

    def _build(self, to: str, subject: str, text: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg["Message-ID"] = make_msgid(domain="gatehouse")
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.user:
                server.login(self.user, self._password)
            server.send_message(msg)

    async def send(self, to: str, subject: str, text: str, html: str) -> SendResult:
        msg = self._build(to, subject, text, html)
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to, e)
            return SendResult(error=str(e) or e.__class__.__name__)
        logger.info("Email sent to %s: %s", to, subject)
        return SendResult(message_id=str(msg["Message-ID"]))


class LoggingEmailDispatcher:
    """Development dispatcher: nothing leaves the process.

    The plain-text body (verification link included) is logged at INFO so a
    local registration can still be completed. Never wired in production.
    """

    async def send(self, to: str, subject: str, text: str, html: str) -> SendResult:
        logger.warning("Email not configured - not sending '%s' to %s", subject, to)
        logger.info("Email body for %s:\n%s", to, text, extra={KEEP_VERIFY_LINK: True})
        return SendResult(message_id=make_msgid(domain="gatehouse"))


class UnconfiguredEmailDispatcher:
    """Production stand-in when no SMTP host is set: every send fails."""

    reason = "email transport not configured"

    async def send(self, to: str, subject: str, text: str, html: str) -> SendResult:
        logger.error("Cannot send '%s' to %s: %s", subject, to, self.reason)
        return SendResult(error=self.reason)


class VerificationEmailRenderer:
    def __init__(self, site_url: str, *, templates_dir: Path = TEMPLATES_DIR) -> None:
        self.site_url = (site_url or "").rstrip("/")
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html.j2", "html", "xml"]),
            undefined=StrictUndefined,
        )

    def verify_url(self, token: str) -> str:
        return f"{self.site_url}/auth/verify-email/{quote(token, safe='')}"

    def render(self, token: str, *, ttl: timedelta, username: str = "") -> EmailContent:
        ctx = {
            "verify_url": self.verify_url(token),
            "username": username,
            "ttl_minutes": int(ttl.total_seconds() // 60),
        }
        return EmailContent(
            subject=VERIFICATION_SUBJECT,
            text=self._env.get_template("verification.txt.j2").render(**ctx),
            html=self._env.get_template("verification.html.j2").render(**ctx),
        )
