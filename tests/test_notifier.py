"""
tests/test_notifier.py -- Unit tests for auth/notifier.py.

Coverage:
  - dispatch returns immediately, drain waits for in-flight sends
  - failures are logged and never raised
  - OTP email rendering escapes user input
  - build_mailer picks SMTP only when host and account are configured
"""

from __future__ import annotations

import asyncio
import logging

from auth.notifier import LogMailer, Notifier, SmtpMailer, build_mailer, render_otp_email
from conftest import RecordingMailer, _make_settings


class _SlowMailer:
    def __init__(self) -> None:
        self.sent: list[str] = []

    async def send(self, recipient: str, subject: str, html: str) -> None:
        await asyncio.sleep(0.05)
        self.sent.append(recipient)


class TestNotifier:
    def test_dispatch_does_not_wait(self) -> None:
        mailer = _SlowMailer()
        notifier = Notifier(mailer)

        async def _scenario():
            notifier.dispatch("a@example.com", "Subject", "<p>hi</p>")
            in_flight = notifier.pending
            sent_before_drain = list(mailer.sent)
            await notifier.drain()
            return in_flight, sent_before_drain

        in_flight, sent_before_drain = asyncio.run(_scenario())
        assert in_flight == 1
        assert sent_before_drain == []
        assert mailer.sent == ["a@example.com"]
        assert notifier.pending == 0

    def test_failure_is_logged_not_raised(self, caplog) -> None:
        notifier = Notifier(RecordingMailer(fail=True))

        async def _scenario():
            notifier.send_otp("a@example.com", "Ada", "123456", 10)
            await notifier.drain()

        with caplog.at_level(logging.ERROR, logger="accounts.notifier"):
            asyncio.run(_scenario())
        assert "Error sending email" in caplog.text
        assert notifier.pending == 0

    def test_send_otp_subject_and_body(self) -> None:
        mailer = RecordingMailer()
        notifier = Notifier(mailer, "Stack Seek")

        async def _scenario():
            notifier.send_otp("a@example.com", "Ada", "042042", 10)
            await notifier.drain()

        asyncio.run(_scenario())
        recipient, subject, html = mailer.sent[0]
        assert (recipient, subject) == ("a@example.com", "One Time Password")
        assert "042042" in html
        assert "Stack Seek" in html


class TestRendering:
    def test_first_name_is_escaped(self) -> None:
        html = render_otp_email("<script>x</script>", "123456", 10, "Stack Seek")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_validity_window_shown(self) -> None:
        assert "valid for 10 minutes" in render_otp_email("Ada", "123456", 10, "Stack Seek")


class TestBuildMailer:
    def test_log_mailer_without_host(self) -> None:
        assert isinstance(build_mailer(_make_settings()), LogMailer)

    def test_smtp_mailer_when_configured(self) -> None:
        settings = _make_settings(mailer_host="smtp.example.com", mailer_email="noreply@example.com")
        mailer = build_mailer(settings)
        assert isinstance(mailer, SmtpMailer)
        assert mailer.sender == "noreply@example.com"
