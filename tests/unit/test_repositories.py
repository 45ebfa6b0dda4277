"""Unit tests for band, invitation and content repositories."""

from __future__ import annotations

from datetime import datetime, timedelta
from importlib.metadata import version
from typing import TYPE_CHECKING

import pytest

from bandportal.exceptions import InvitationError
from bandportal.models.database import _utc_now
from bandportal.storage.repositories.bands import BandRepository
from bandportal.storage.repositories.content import ContentRepository
from bandportal.storage.repositories.invitations import InvitationRepository
from bandportal.types import InvitationStatus, MemberRole

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.mark.unit
class TestBandRepository:
    async def test_create_makes_creator_admin(self, async_engine: AsyncEngine) -> None:
        repo = BandRepository(async_engine)
        band = await repo.create("Crossmen", creator_user_id="u1", creator_email="u1@example.com")
        assert band.member_limit == 0
        assert band.subscription_status == ""

        member = await repo.get_member(band.id, "u1")
        assert member is not None
        assert member.role == MemberRole.ADMIN
        assert await repo.count_admins(band.id) == 1

    async def test_list_for_user(self, async_engine: AsyncEngine) -> None:
        repo = BandRepository(async_engine)
        await repo.create("One", creator_user_id="u1")
        await repo.create("Two", creator_user_id="u1")
        await repo.create("Other", creator_user_id="u2")
        bands = await repo.list_for_user("u1")
        pairs = sorted((band.name, role) for band, role in bands)
        assert pairs == [("One", "admin"), ("Two", "admin")]

    async def test_update_subscription(self, async_engine: AsyncEngine) -> None:
        repo = BandRepository(async_engine)
        band = await repo.create("Vanguard", creator_user_id="u1")
        end = _utc_now() + timedelta(days=365)
        updated = await repo.update_subscription(
            band.id, subscription_status="active", member_limit=20, current_period_end=end
        )
        assert updated is not None
        assert updated.member_limit == 20
        assert updated.subscription_status == "active"
        assert updated.current_period_end == end
        assert updated.updated_at >= band.updated_at

    async def test_update_subscription_rejects_other_fields(
        self, async_engine: AsyncEngine
    ) -> None:
        repo = BandRepository(async_engine)
        band = await repo.create("Vanguard", creator_user_id="u1")
        with pytest.raises(ValueError, match="name"):
            await repo.update_subscription(band.id, name="Renamed")

    async def test_update_missing_band(self, async_engine: AsyncEngine) -> None:
        repo = BandRepository(async_engine)
        assert await repo.update_subscription("nope", subscription_status="active") is None

    async def test_find_member_by_email_ignores_case(self, async_engine: AsyncEngine) -> None:
        repo = BandRepository(async_engine)
        band = await repo.create("Cadets", creator_user_id="u1", creator_email="Lead@Example.com")
        assert await repo.find_member_by_email(band.id, "lead@example.com") is not None
        assert await repo.find_member_by_email(band.id, "other@example.com") is None

    async def test_remove_member(self, async_engine: AsyncEngine) -> None:
        repo = BandRepository(async_engine)
        band = await repo.create("Cadets", creator_user_id="u1")
        assert await repo.remove_member(band.id, "u1") is True
        assert await repo.remove_member(band.id, "u1") is False
        assert await repo.list_members(band.id) == []

    async def test_naive_utc_timestamps_round_trip(self, async_engine: AsyncEngine) -> None:
        # Stored timestamps are naive UTC; the pinned sqlmodel must accept them on write
        installed = tuple(int(part) for part in version("sqlmodel").split(".")[:3])
        assert installed < (0, 0, 30)

        repo = BandRepository(async_engine)
        band = await repo.create("Blue Devils", creator_user_id="u1")
        assert band.created_at.tzinfo is None
        end = datetime(2030, 1, 1, 12, 0)
        updated = await repo.update_subscription(band.id, current_period_end=end)
        assert updated is not None
        fetched = await repo.get(band.id)
        assert fetched is not None
        assert fetched.current_period_end == end


@pytest.mark.unit
class TestInvitationRepository:
    async def test_accept_adds_member_and_marks_used(self, async_engine: AsyncEngine) -> None:
        bands = BandRepository(async_engine)
        invitations = InvitationRepository(async_engine)
        band = await bands.create("Bluecoats", creator_user_id="admin")
        invite = await invitations.create(band.id, "new@example.com", token="tok", role="admin")

        member = await invitations.accept(invite.id, user_id="u2", email="new@example.com")
        assert member.band_id == band.id
        assert member.role == "admin"

        stored = await invitations.get(invite.id)
        assert stored is not None
        assert stored.status == InvitationStatus.USED
        assert stored.claimed is True
        assert stored.used_at is not None
        assert await invitations.list_pending(band.id) == []

    async def test_accept_twice_fails(self, async_engine: AsyncEngine) -> None:
        bands = BandRepository(async_engine)
        invitations = InvitationRepository(async_engine)
        band = await bands.create("Bluecoats", creator_user_id="admin")
        invite = await invitations.create(band.id, "new@example.com", token="tok")
        await invitations.accept(invite.id, user_id="u2", email="new@example.com")
        with pytest.raises(InvitationError, match="no longer pending"):
            await invitations.accept(invite.id, user_id="u2", email="new@example.com")

    async def test_accept_existing_member_fails(self, async_engine: AsyncEngine) -> None:
        bands = BandRepository(async_engine)
        invitations = InvitationRepository(async_engine)
        band = await bands.create("Bluecoats", creator_user_id="admin")
        invite = await invitations.create(band.id, "admin@example.com", token="tok")
        with pytest.raises(InvitationError, match="Already a member"):
            await invitations.accept(invite.id, user_id="admin", email="admin@example.com")
        stored = await invitations.get(invite.id)
        assert stored is not None
        assert stored.status == InvitationStatus.PENDING

    async def test_list_pending_skips_expired(self, async_engine: AsyncEngine) -> None:
        bands = BandRepository(async_engine)
        invitations = InvitationRepository(async_engine)
        band = await bands.create("Bluecoats", creator_user_id="admin")
        now = _utc_now()
        await invitations.create(band.id, "a@example.com", "t1", expires_at=now + timedelta(1))
        await invitations.create(band.id, "b@example.com", "t2", expires_at=now - timedelta(1))
        pending = await invitations.list_pending(band.id)
        assert [inv.email for inv in pending] == ["a@example.com"]

    async def test_find_pending_for_email(self, async_engine: AsyncEngine) -> None:
        bands = BandRepository(async_engine)
        invitations = InvitationRepository(async_engine)
        band = await bands.create("Bluecoats", creator_user_id="admin")
        await invitations.create(band.id, "Mixed@Example.com", "t1")
        assert await invitations.find_pending_for_email(band.id, "mixed@example.com") is not None
        assert await invitations.find_pending_for_email(band.id, "x@example.com") is None

    async def test_delete(self, async_engine: AsyncEngine) -> None:
        bands = BandRepository(async_engine)
        invitations = InvitationRepository(async_engine)
        band = await bands.create("Bluecoats", creator_user_id="admin")
        invite = await invitations.create(band.id, "a@example.com", "t1")
        assert await invitations.delete(invite.id) is True
        assert await invitations.get_by_token("t1") is None
        assert await invitations.delete(invite.id) is False


@pytest.mark.unit
class TestContentRepository:
    async def test_band_lesson_joins_library(self, async_engine: AsyncEngine) -> None:
        band = await BandRepository(async_engine).create("Crown", creator_user_id="admin")
        repo = ContentRepository(async_engine)
        lesson = await repo.create_lesson("Warmups", band_id=band.id)
        await repo.create_lesson("Public basics", is_public=True)

        assert [item.id for item in await repo.list_band_lessons(band.id)] == [lesson.id]
        assert [item.title for item in await repo.list_public_lessons()] == ["Public basics"]

    async def test_public_lessons_skip_band_library(self, async_engine: AsyncEngine) -> None:
        band = await BandRepository(async_engine).create("Crown", creator_user_id="admin")
        repo = ContentRepository(async_engine)
        in_library = await repo.create_lesson("Filed", is_public=True)
        await repo.create_lesson("Unfiled", is_public=True)
        folder = await repo.create_folder(band.id, "Week 1")
        await repo.add_lesson_to_folder(band.id, folder.id, in_library.id)

        lessons = await repo.list_public_lessons(exclude_band_id=band.id)
        assert [item.title for item in lessons] == ["Unfiled"]
        assert len(await repo.list_public_lessons()) == 2

    async def test_folder_lessons(self, async_engine: AsyncEngine) -> None:
        band = await BandRepository(async_engine).create("Crown", creator_user_id="admin")
        repo = ContentRepository(async_engine)
        folder = await repo.create_folder(band.id, "Week 1")
        public = await repo.create_lesson("Public basics", is_public=True)

        await repo.add_lesson_to_folder(band.id, folder.id, public.id)
        await repo.add_lesson_to_folder(band.id, folder.id, public.id)
        lessons = await repo.list_folder_lessons(band.id, folder.id)
        assert [item.id for item in lessons] == [public.id]
        # Filing a lesson also adds it to the band library
        assert [item.id for item in await repo.list_band_lessons(band.id)] == [public.id]

        assert await repo.remove_lesson_from_folder(folder.id, public.id) is True
        assert await repo.list_folder_lessons(band.id, folder.id) == []
        assert await repo.remove_lesson_from_folder(folder.id, public.id) is False

    async def test_folder_is_scoped_to_band(self, async_engine: AsyncEngine) -> None:
        bands = BandRepository(async_engine)
        mine = await bands.create("Mine", creator_user_id="admin")
        theirs = await bands.create("Theirs", creator_user_id="admin")
        repo = ContentRepository(async_engine)
        folder = await repo.create_folder(mine.id, "Week 1")

        assert await repo.get_folder(theirs.id, folder.id) is None
        assert await repo.delete_folder(theirs.id, folder.id) is False
        assert await repo.delete_folder(mine.id, folder.id) is True
        assert await repo.list_folders(mine.id) == []
