"""Band and membership repository using SQLModel + AsyncSession."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bandportal.models.database import Band, BandMember, _utc_now
from bandportal.types import MemberRole

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

# Columns the billing webhook is allowed to write.
_SUBSCRIPTION_FIELDS = frozenset(
    {
        "member_limit",
        "subscription_status",
        "current_period_end",
        "stripe_customer_id",
        "stripe_subscription_id",
        "stripe_product_id",
    }
)


class BandRepository:
    """Bands and their member rosters."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, name: str, creator_user_id: str, creator_email: str = "") -> Band:
        """Create a band and make its creator the first admin."""
        async with AsyncSession(self._engine) as session:
            band = Band(name=name)
            session.add(band)
            await session.flush()
            session.add(
                BandMember(
                    band_id=band.id,
                    user_id=creator_user_id,
                    email=creator_email,
                    role=MemberRole.ADMIN.value,
                )
            )
            await session.commit()
            await session.refresh(band)
        logger.info("band_created", band_id=band.id, creator=creator_user_id)
        return band

    async def get(self, band_id: str) -> Band | None:
        async with AsyncSession(self._engine) as session:
            return await session.get(Band, band_id)

    async def list_for_user(self, user_id: str) -> list[tuple[Band, str]]:
        """Return (band, role) pairs for every band the user belongs to."""
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Band, BandMember.role)
                .join(BandMember, col(BandMember.band_id) == col(Band.id))
                .where(col(BandMember.user_id) == user_id)
                .order_by(col(Band.created_at))
            )
            result = await session.execute(stmt)
            return [(band, role) for band, role in result.all()]

    async def update_subscription(self, band_id: str, **fields: Any) -> Band | None:
        """Write billing fields onto a band. Unknown keys are rejected."""
        unknown = set(fields) - _SUBSCRIPTION_FIELDS
        if unknown:
            msg = f"Not a subscription field: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        async with AsyncSession(self._engine) as session:
            band = await session.get(Band, band_id)
            if not band:
                return None
            for key, value in fields.items():
                setattr(band, key, value)
            band.updated_at = _utc_now()
            session.add(band)
            await session.commit()
            await session.refresh(band)
        logger.info("band_subscription_updated", band_id=band_id, fields=sorted(fields))
        return band

    # --- Members ---

    async def get_member(self, band_id: str, user_id: str) -> BandMember | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(BandMember).where(
                col(BandMember.band_id) == band_id,
                col(BandMember.user_id) == user_id,
            )
            result = await session.execute(stmt)
            return result.scalars().first()

    async def list_members(self, band_id: str) -> list[BandMember]:
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(BandMember)
                .where(col(BandMember.band_id) == band_id)
                .order_by(col(BandMember.created_at))
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_member_by_email(self, band_id: str, email: str) -> BandMember | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(BandMember).where(
                col(BandMember.band_id) == band_id,
                func.lower(col(BandMember.email)) == email.lower(),
            )
            result = await session.execute(stmt)
            return result.scalars().first()

    async def count_admins(self, band_id: str) -> int:
        async with AsyncSession(self._engine) as session:
            stmt = select(func.count()).select_from(BandMember).where(
                col(BandMember.band_id) == band_id,
                col(BandMember.role) == MemberRole.ADMIN.value,
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def remove_member(self, band_id: str, user_id: str) -> bool:
        async with AsyncSession(self._engine) as session:
            stmt = select(BandMember).where(
                col(BandMember.band_id) == band_id,
                col(BandMember.user_id) == user_id,
            )
            result = await session.execute(stmt)
            member = result.scalars().first()
            if not member:
                return False
            await session.delete(member)
            await session.commit()
        logger.info("band_member_removed", band_id=band_id, user_id=user_id)
        return True
