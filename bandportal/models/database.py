"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Bands and membership
# ---------------------------------------------------------------------------


class Band(SQLModel, table=True):
    __tablename__ = "bands"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str
    member_limit: int = Field(default=0)  # 0 = unlimited
    subscription_status: str = Field(default="")  # active | cancelled | past_due | ...
    current_period_end: datetime | None = None
    stripe_customer_id: str | None = Field(default=None, index=True)
    stripe_subscription_id: str | None = Field(default=None, index=True)
    stripe_product_id: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class BandMember(SQLModel, table=True):
    __tablename__ = "band_members"
    __table_args__ = (UniqueConstraint("band_id", "user_id"),)

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    band_id: str = Field(foreign_key="bands.id", index=True)
    user_id: str = Field(index=True)  # auth provider subject
    email: str = ""
    role: str = Field(default="member")  # admin | member
    created_at: datetime = Field(default_factory=_utc_now)


class Invitation(SQLModel, table=True):
    __tablename__ = "invitations"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    band_id: str = Field(foreign_key="bands.id", index=True)
    email: str = Field(index=True)
    role: str = Field(default="member")
    token: str = Field(unique=True, index=True)
    status: str = Field(default="pending")  # pending | used | revoked
    claimed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_utc_now)
    expires_at: datetime | None = None
    used_at: datetime | None = None


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class Lesson(SQLModel, table=True):
    __tablename__ = "lessons"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    title: str
    body: str = ""
    is_public: bool = Field(default=False, index=True)
    band_id: str | None = Field(default=None, foreign_key="bands.id", index=True)
    created_at: datetime = Field(default_factory=_utc_now)


class Folder(SQLModel, table=True):
    __tablename__ = "folders"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    band_id: str = Field(foreign_key="bands.id", index=True)
    name: str
    created_at: datetime = Field(default_factory=_utc_now)


class FolderLesson(SQLModel, table=True):
    __tablename__ = "folder_lessons"

    folder_id: str = Field(foreign_key="folders.id", primary_key=True)
    lesson_id: str = Field(foreign_key="lessons.id", primary_key=True)


class BandLesson(SQLModel, table=True):
    __tablename__ = "band_lessons"

    band_id: str = Field(foreign_key="bands.id", primary_key=True)
    lesson_id: str = Field(foreign_key="lessons.id", primary_key=True)
