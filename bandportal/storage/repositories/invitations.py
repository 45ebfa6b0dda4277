"""Invitation repository using SQLModel + AsyncSession."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bandportal.exceptions import InvitationError
from bandportal.models.database import BandMember, Invitation, _utc_now
from bandportal.types import InvitationStatus

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class InvitationRepository:
    """Pending and claimed band invitations."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(
        self,
        band_id: str,
        email: str,
        token: str,
        role: str = "member",
        expires_at: datetime | None = None,
    ) -> Invitation:
        async with AsyncSession(self._engine) as session:
            invitation = Invitation(
                band_id=band_id,
                email=email,
                role=role,
                token=token,
                status=InvitationStatus.PENDING.value,
                expires_at=expires_at,
            )
            session.add(invitation)
            await session.commit()
            await session.refresh(invitation)
        logger.info("invitation_created", invitation_id=invitation.id, band_id=band_id)
        return invitation

    async def get(self, invitation_id: str) -> Invitation | None:
        async with AsyncSession(self._engine) as session:
            return await session.get(Invitation, invitation_id)

    async def get_by_token(self, token: str) -> Invitation | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(Invitation).where(col(Invitation.token) == token)
            result = await session.execute(stmt)
            return result.scalars().first()

    async def list_pending(self, band_id: str, now: datetime | None = None) -> list[Invitation]:
        """Return invitations that can still be claimed.

        ``now`` is a naive UTC datetime; invitations without an expiry never lapse.
        """
        now = now or _utc_now()
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Invitation)
                .where(
                    col(Invitation.band_id) == band_id,
                    col(Invitation.status) == InvitationStatus.PENDING.value,
                    col(Invitation.claimed).is_(False),
                    or_(
                        col(Invitation.expires_at).is_(None),
                        col(Invitation.expires_at) > now,
                    ),
                )
                .order_by(col(Invitation.created_at))
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_pending_for_email(self, band_id: str, email: str) -> Invitation | None:
        pending = await self.list_pending(band_id)
        wanted = email.lower()
        for invitation in pending:
            if invitation.email.lower() == wanted:
                return invitation
        return None

    async def delete(self, invitation_id: str) -> bool:
        async with AsyncSession(self._engine) as session:
            invitation = await session.get(Invitation, invitation_id)
            if not invitation:
                return False
            await session.delete(invitation)
            await session.commit()
        logger.info("invitation_deleted", invitation_id=invitation_id)
        return True

    async def accept(self, invitation_id: str, user_id: str, email: str) -> BandMember:
        """Claim an invitation: add the membership and mark the invite used.

        Both writes happen in one transaction. Raises InvitationError when the
        invitation is gone, no longer pending, or the user is already a member.
        """
        async with AsyncSession(self._engine) as session:
            invitation = await session.get(Invitation, invitation_id)
            if not invitation or invitation.status != InvitationStatus.PENDING.value:
                msg = "Invitation is no longer pending"
                raise InvitationError(msg)

            existing = await session.execute(
                select(func.count())
                .select_from(BandMember)
                .where(
                    col(BandMember.band_id) == invitation.band_id,
                    col(BandMember.user_id) == user_id,
                )
            )
            if existing.scalar_one():
                msg = "Already a member of this band"
                raise InvitationError(msg)

            member = BandMember(
                band_id=invitation.band_id,
                user_id=user_id,
                email=email,
                role=invitation.role,
            )
            invitation.status = InvitationStatus.USED.value
            invitation.claimed = True
            invitation.used_at = _utc_now()
            session.add(member)
            session.add(invitation)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                msg = "Already a member of this band"
                raise InvitationError(msg) from exc
            await session.refresh(member)

        logger.info(
            "invitation_accepted",
            invitation_id=invitation_id,
            band_id=member.band_id,
            user_id=user_id,
        )
        return member
