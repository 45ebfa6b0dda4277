"""Unit tests for invitation emails."""

from __future__ import annotations

import json

import httpx
import pytest

from bandportal.exceptions import EmailDeliveryError
from bandportal.notifications.email import InviteMailer, get_invite_mailer, render_invite_email


@pytest.mark.unit
class TestRenderInviteEmail:
    def test_subject_and_body(self) -> None:
        subject, html = render_invite_email("Blue Devils", "https://x.test/accept?token=t", 7)
        assert subject == "You're invited to join Blue Devils!"
        assert "https://x.test/accept?token=t" in html
        assert "7 days" in html

    def test_band_name_is_escaped(self) -> None:
        _, html = render_invite_email("<script>", "https://x.test", 7)
        assert "<script>" not in html
        assert "&lt;script&gt;" in html


@pytest.mark.unit
class TestInviteMailer:
    async def test_posts_to_resend(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "email_1"})

        mailer = InviteMailer(
            api_key="re_key",
            sender="Portal <noreply@example.com>",
            ttl_days=3,
            transport=httpx.MockTransport(handler),
        )
        await mailer.send_invite("new@example.com", "Cadets", "https://x.test/accept?token=t")

        assert len(seen) == 1
        request = seen[0]
        assert request.url == "https://api.resend.com/emails"
        assert request.headers["authorization"] == "Bearer re_key"
        body = json.loads(request.content)
        assert body["to"] == ["new@example.com"]
        assert body["from"] == "Portal <noreply@example.com>"
        assert "Cadets" in body["subject"]
        assert "3 days" in body["html"]

    async def test_error_status_raises(self) -> None:
        mailer = InviteMailer(
            api_key="re_key",
            sender="x@example.com",
            transport=httpx.MockTransport(lambda request: httpx.Response(422)),
        )
        with pytest.raises(EmailDeliveryError):
            await mailer.send_invite("new@example.com", "Cadets", "https://x.test")

    async def test_without_key_skips(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        mailer = InviteMailer(
            api_key=None, sender="x@example.com", transport=httpx.MockTransport(handler)
        )
        await mailer.send_invite("new@example.com", "Cadets", "https://x.test")

    def test_factory_reads_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from bandportal.config.settings import get_settings

        monkeypatch.setenv("INVITE_TTL_DAYS", "10")
        get_settings.cache_clear()
        mailer = get_invite_mailer()
        assert mailer._ttl_days == 10
