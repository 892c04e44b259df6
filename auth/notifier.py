"""
auth/notifier.py -- Fire-and-forget email delivery.

Notifier.dispatch() starts the send as a detached asyncio task and returns at
once. The caller never awaits it: a slow or failing mail server must not delay
or fail a sign-up. A done-callback logs any exception and drops the task from
the pending set; nothing is re-raised into request handling.

The pending set keeps a strong reference to every in-flight task (the event
loop only holds weak ones). drain() awaits whatever is still in flight and is
called from the application lifespan on shutdown.

Mailers:
  SmtpMailer -- smtplib in the default thread pool executor, STARTTLS on 587,
                implicit TLS on 465.
  LogMailer  -- used when no SMTP host is configured. Logs the message instead
                of sending it, which is what local development wants.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from html import escape
from typing import Protocol

from core.config import Settings

logger = logging.getLogger("accounts.notifier")


class Mailer(Protocol):
    async def send(self, recipient: str, subject: str, html: str) -> None: ...


class SmtpMailer:
    def __init__(self, settings: Settings) -> None:
        self.host = settings.mailer_host
        self.port = settings.mailer_port
        self.username = settings.mailer_email
        self.password = settings.mailer_password
        self.sender = settings.mailer_sender_name or settings.mailer_email

    async def send(self, recipient: str, subject: str, html: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = recipient
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send_sync, msg)
        logger.info("Email sent to %s: %s", recipient, subject)

    def _send_sync(self, msg: EmailMessage) -> None:
        """Synchronous SMTP conversation (runs in the thread pool)."""
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port)
        else:
            server = smtplib.SMTP(self.host, self.port)
        with server:
            if self.port != 465:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)


class LogMailer:
    async def send(self, recipient: str, subject: str, html: str) -> None:
        logger.warning("Mailer not configured. Email for %s not sent: %s", recipient, subject)
        logger.debug("Undelivered email body for %s:\n%s", recipient, html)


def build_mailer(settings: Settings) -> Mailer:
    if settings.mailer_configured:
        return SmtpMailer(settings)
    return LogMailer()


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class Notifier:
    def __init__(self, mailer: Mailer, app_name: str = "Stack Seek") -> None:
        self.mailer = mailer
        self.app_name = app_name
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, recipient: str, subject: str, html: str) -> asyncio.Task:
        """Start sending in the background and return without waiting.

        Must be called from inside a running event loop.
        """
        task = asyncio.create_task(self.mailer.send(recipient, subject, html))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Email task cancelled before completion")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error sending email: %s", exc, exc_info=exc)

    def send_otp(self, recipient: str, first_name: str, otp_code: str, valid_minutes: int) -> asyncio.Task:
        """Dispatch the one-time-password email."""
        html = render_otp_email(first_name, otp_code, valid_minutes, self.app_name)
        return self.dispatch(recipient, "One Time Password", html)

    async def drain(self) -> None:
        """Wait for every in-flight email. Failures are already logged by _on_done."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


def render_otp_email(first_name: str, otp_code: str, valid_minutes: int, app_name: str) -> str:
    year = datetime.now(timezone.utc).year
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>One Time Password</title>
</head>
<body style="font-family: Arial, sans-serif; background-color: #f8f9fa; color: #333;">
    <div style="max-width: 600px; margin: 20px auto; background: #ffffff; border-radius: 8px;">
        <div style="background-color: #007bff; color: white; text-align: center; padding: 20px; font-size: 24px;">
            Your OTP code.
        </div>
        <div style="padding: 20px; line-height: 1.6;">
            <p>Hi, {escape(first_name)}! Use the following OTP code to complete your verification:</p>
            <h2>{otp_code}</h2>
            <p>This code is valid for {valid_minutes} minutes. Please do not share it with anyone.</p>
        </div>
        <div style="text-align: center; padding: 15px; font-size: 12px; color: #666; background-color: #f1f1f1;">
            <p>If you didn't request this code, please ignore this email.</p>
            <p>&copy; {year} {escape(app_name)}. All rights reserved.</p>
        </div>
    </div>
</body>
</html>
"""
