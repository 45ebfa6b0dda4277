"""Roster assembly for access evaluation.

Pending invitations hold a seat: each unclaimed invite is counted as a
provisional ``member`` so that inviting people can push a band over its
limit before anyone accepts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from bandportal.access.policy import BandSnapshot, Membership
from bandportal.types import MemberRole

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from bandportal.models.database import Band, BandMember, Invitation
    from bandportal.storage.repositories.bands import BandRepository
    from bandportal.storage.repositories.invitations import InvitationRepository

VIRTUAL_MEMBER_PREFIX = "invite-"


def snapshot_from_band(band: Band) -> BandSnapshot:
    return BandSnapshot(
        id=band.id,
        member_limit=band.member_limit,
        subscription_status=band.subscription_status,
        current_period_end=band.current_period_end,
    )


def build_roster(
    members: Iterable[BandMember],
    pending_invitations: Iterable[Invitation],
) -> list[Membership]:
    roster = [Membership(user_id=m.user_id, role=m.role) for m in members]
    unclaimed = [inv for inv in pending_invitations if not inv.claimed]
    roster.extend(
        Membership(user_id=f"{VIRTUAL_MEMBER_PREFIX}{i}", role=MemberRole.MEMBER)
        for i in range(len(unclaimed))
    )
    return roster


async def load_snapshot(
    band_repo: BandRepository,
    invitation_repo: InvitationRepository,
    band_id: str,
    now: datetime | None = None,
) -> tuple[BandSnapshot, list[Membership]] | None:
    """Fetch everything the policy needs for one band, or None if it does not exist.

    ``now`` is a naive UTC datetime used to skip expired invitations.
    """
    band = await band_repo.get(band_id)
    if band is None:
        return None
    members = await band_repo.list_members(band_id)
    pending = await invitation_repo.list_pending(band_id, now=now)
    return snapshot_from_band(band), build_roster(members, pending)
