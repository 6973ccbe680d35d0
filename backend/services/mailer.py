"""Outbound mail for verification and password-reset links."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from typing import Protocol

import aiosmtplib

from core import Settings

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465
STARTTLS_PORT = 587


class Mailer(Protocol):
    async def send(self, recipient: str, subject: str, html: str) -> None: ...


class SmtpMailer:
    def __init__(
        self,
        *,
        hostname: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.hostname = hostname
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings) -> "SmtpMailer":
        return cls(
            hostname=config.smtp_host,
            port=config.smtp_port,
            sender=config.mail_from,
            username=config.smtp_username,
            password=config.smtp_password,
            timeout=config.smtp_timeout_seconds,
        )

    def build_message(self, recipient: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, recipient: str, subject: str, html: str) -> None:
        message = self.build_message(recipient, subject, html)
        await aiosmtplib.send(
            message,
            hostname=self.hostname,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.port == IMPLICIT_TLS_PORT,
            start_tls=True if self.port == STARTTLS_PORT else None,
            timeout=self.timeout,
        )
        logger.info("Sent mail", extra={"recipient": recipient, "subject": subject})


def verification_mail(link: str, expires_minutes: int) -> tuple[str, str]:
    return (
        "Verify Mail",
        "<h1>Verify your mail</h1>"
        "<p>Click on the following link to verify your mail:</p>"
        f'<a href="{link}">{link}</a>'
        f"<p>The link will expire in {expires_minutes} minutes.</p>",
    )


def password_reset_mail(link: str, expires_minutes: int) -> tuple[str, str]:
    return (
        "Reset Password",
        "<h1>Reset Your Password</h1>"
        "<p>Click on the following link to reset your password:</p>"
        f'<a href="{link}">{link}</a>'
        f"<p>The link will expire in {expires_minutes} minutes.</p>"
        "<p>If you didn't request a password reset, please ignore this email.</p>",
    )
