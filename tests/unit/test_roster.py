"""Unit tests for roster assembly and snapshot loading."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from bandportal.access.roster import (
    VIRTUAL_MEMBER_PREFIX,
    build_roster,
    load_snapshot,
    snapshot_from_band,
)
from bandportal.models.database import Band, BandMember, Invitation, _utc_now
from bandportal.storage.repositories.bands import BandRepository
from bandportal.storage.repositories.invitations import InvitationRepository
from bandportal.types import MemberRole

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.mark.unit
class TestBuildRoster:
    def test_members_then_virtual_invites(self) -> None:
        members = [
            BandMember(band_id="b1", user_id="u1", role="admin"),
            BandMember(band_id="b1", user_id="u2", role="member"),
        ]
        invites = [
            Invitation(band_id="b1", email="a@example.com", token="t1", role="admin"),
            Invitation(band_id="b1", email="b@example.com", token="t2"),
        ]
        roster = build_roster(members, invites)
        assert [m.user_id for m in roster] == [
            "u1",
            "u2",
            f"{VIRTUAL_MEMBER_PREFIX}0",
            f"{VIRTUAL_MEMBER_PREFIX}1",
        ]
        # Pending invites always count as plain members, whatever role they will grant
        assert roster[2].role == MemberRole.MEMBER

    def test_claimed_invites_are_skipped(self) -> None:
        invites = [
            Invitation(band_id="b1", email="a@example.com", token="t1", claimed=True),
            Invitation(band_id="b1", email="b@example.com", token="t2"),
        ]
        roster = build_roster([], invites)
        assert len(roster) == 1

    def test_empty(self) -> None:
        assert build_roster([], []) == []

    def test_snapshot_from_band(self) -> None:
        end = _utc_now()
        band = Band(
            id="b1",
            name="Drumline",
            member_limit=20,
            subscription_status="active",
            current_period_end=end,
        )
        snapshot = snapshot_from_band(band)
        assert snapshot.id == "b1"
        assert snapshot.member_limit == 20
        assert snapshot.subscription_status == "active"
        assert snapshot.current_period_end == end


@pytest.mark.unit
class TestLoadSnapshot:
    async def test_missing_band(self, async_engine: AsyncEngine) -> None:
        result = await load_snapshot(
            BandRepository(async_engine), InvitationRepository(async_engine), "nope"
        )
        assert result is None

    async def test_counts_live_invites_only(self, async_engine: AsyncEngine) -> None:
        band_repo = BandRepository(async_engine)
        invitation_repo = InvitationRepository(async_engine)
        band = await band_repo.create("Brass", creator_user_id="admin-1")
        now = _utc_now()
        await invitation_repo.create(
            band.id, "live@example.com", token="live", expires_at=now + timedelta(days=3)
        )
        await invitation_repo.create(band.id, "forever@example.com", token="forever")
        await invitation_repo.create(
            band.id, "stale@example.com", token="stale", expires_at=now - timedelta(days=1)
        )

        loaded = await load_snapshot(band_repo, invitation_repo, band.id)
        assert loaded is not None
        snapshot, roster = loaded
        assert snapshot.id == band.id
        assert len(roster) == 3
        assert roster[0].user_id == "admin-1"
        assert roster[0].role == MemberRole.ADMIN
