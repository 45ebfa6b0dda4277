"""FastAPI dependency providers for repositories and outbound clients.

Tests swap these out through ``app.dependency_overrides``.
"""

from __future__ import annotations

from collections.abc import Callable

from bandportal.billing.stripe_client import StripeClient, get_stripe_client
from bandportal.notifications.email import InviteMailer, get_invite_mailer
from bandportal.storage.database import get_engine
from bandportal.storage.repositories.bands import BandRepository
from bandportal.storage.repositories.content import ContentRepository
from bandportal.storage.repositories.invitations import InvitationRepository


def get_band_repo() -> BandRepository:
    return BandRepository(get_engine())


def get_invitation_repo() -> InvitationRepository:
    return InvitationRepository(get_engine())


def get_content_repo() -> ContentRepository:
    return ContentRepository(get_engine())


def get_stripe_provider() -> Callable[[], StripeClient]:
    """Return a factory so Stripe is only required by routes that call it."""
    return get_stripe_client


def get_mailer() -> InviteMailer:
    return get_invite_mailer()
