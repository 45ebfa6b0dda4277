"""Invitation emails sent through the Resend HTTP API."""

from __future__ import annotations

from html import escape

import httpx
import structlog

from bandportal.config.settings import get_settings
from bandportal.exceptions import EmailDeliveryError

logger = structlog.get_logger(__name__)

_RESEND_URL = "https://api.resend.com/emails"
_TIMEOUT_SECONDS = 10.0


def render_invite_email(band_name: str, invite_link: str, ttl_days: int) -> tuple[str, str]:
    """Return (subject, html) for an invitation."""
    subject = f"You're invited to join {band_name}!"
    html = (
        f"<p>You have been invited to join <b>{escape(band_name)}</b> on Dojo Band Portal.</p>"
        f'<p><a href="{escape(invite_link, quote=True)}">Click here to accept your invite</a></p>'
        f"<p>This invite will expire in {ttl_days} days.</p>"
    )
    return subject, html


class InviteMailer:
    """Sends invitation emails. Without an API key, emails are logged and skipped."""

    def __init__(
        self,
        api_key: str | None,
        sender: str,
        ttl_days: int = 7,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._ttl_days = ttl_days
        self._transport = transport

    async def send_invite(self, to: str, band_name: str, invite_link: str) -> None:
        subject, html = render_invite_email(band_name, invite_link, self._ttl_days)
        if not self._api_key:
            logger.info("invite_email_skipped", to=to, band=band_name)
            return

        try:
            async with httpx.AsyncClient(
                timeout=_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                resp = await client.post(
                    _RESEND_URL,
                    json={"from": self._sender, "to": [to], "subject": subject, "html": html},
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("invite_email_failed", to=to, error=str(exc))
            raise EmailDeliveryError(f"Failed to send invite email to {to}") from exc

        logger.info("invite_email_sent", to=to)


def get_invite_mailer() -> InviteMailer:
    settings = get_settings()
    return InviteMailer(
        api_key=settings.resend_api_key,
        sender=settings.email_from,
        ttl_days=settings.invite_ttl_days,
    )
