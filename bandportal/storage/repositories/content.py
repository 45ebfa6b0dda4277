"""Lesson and folder repository using SQLModel + AsyncSession."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlmodel import col, delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bandportal.models.database import BandLesson, Folder, FolderLesson, Lesson

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class ContentRepository:
    """Lessons, band lesson libraries and folders.

    A band's library is the set of lessons linked through ``band_lessons``.
    Folders only organize lessons; a lesson is shown in a folder when it is
    linked to the folder *and* to the folder's band.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    # --- Lessons ---

    async def create_lesson(
        self,
        title: str,
        body: str = "",
        is_public: bool = False,
        band_id: str | None = None,
    ) -> Lesson:
        async with AsyncSession(self._engine) as session:
            lesson = Lesson(title=title, body=body, is_public=is_public, band_id=band_id)
            session.add(lesson)
            await session.flush()
            if band_id:
                session.add(BandLesson(band_id=band_id, lesson_id=lesson.id))
            await session.commit()
            await session.refresh(lesson)
        logger.info("lesson_created", lesson_id=lesson.id, band_id=band_id)
        return lesson

    async def get_lesson(self, lesson_id: str) -> Lesson | None:
        async with AsyncSession(self._engine) as session:
            return await session.get(Lesson, lesson_id)

    async def list_public_lessons(self, exclude_band_id: str | None = None) -> list[Lesson]:
        """Public lessons, optionally leaving out those already in a band's library."""
        async with AsyncSession(self._engine) as session:
            stmt = select(Lesson).where(col(Lesson.is_public).is_(True))
            if exclude_band_id:
                in_library = select(BandLesson.lesson_id).where(
                    col(BandLesson.band_id) == exclude_band_id
                )
                stmt = stmt.where(col(Lesson.id).not_in(in_library))
            stmt = stmt.order_by(col(Lesson.created_at))
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_band_lessons(self, band_id: str) -> list[Lesson]:
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Lesson)
                .join(BandLesson, col(BandLesson.lesson_id) == col(Lesson.id))
                .where(col(BandLesson.band_id) == band_id)
                .order_by(col(Lesson.created_at))
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # --- Folders ---

    async def create_folder(self, band_id: str, name: str) -> Folder:
        async with AsyncSession(self._engine) as session:
            folder = Folder(band_id=band_id, name=name)
            session.add(folder)
            await session.commit()
            await session.refresh(folder)
        logger.info("folder_created", folder_id=folder.id, band_id=band_id)
        return folder

    async def get_folder(self, band_id: str, folder_id: str) -> Folder | None:
        async with AsyncSession(self._engine) as session:
            folder = await session.get(Folder, folder_id)
            if folder and folder.band_id == band_id:
                return folder
            return None

    async def list_folders(self, band_id: str) -> list[Folder]:
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Folder)
                .where(col(Folder.band_id) == band_id)
                .order_by(col(Folder.created_at))
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def delete_folder(self, band_id: str, folder_id: str) -> bool:
        """Delete a folder and its lesson links. Lessons themselves are kept."""
        async with AsyncSession(self._engine) as session:
            folder = await session.get(Folder, folder_id)
            if not folder or folder.band_id != band_id:
                return False
            await session.execute(
                delete(FolderLesson).where(col(FolderLesson.folder_id) == folder_id)
            )
            await session.delete(folder)
            await session.commit()
        logger.info("folder_deleted", folder_id=folder_id, band_id=band_id)
        return True

    async def list_folder_lessons(self, band_id: str, folder_id: str) -> list[Lesson]:
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(Lesson)
                .join(FolderLesson, col(FolderLesson.lesson_id) == col(Lesson.id))
                .join(BandLesson, col(BandLesson.lesson_id) == col(Lesson.id))
                .where(
                    col(FolderLesson.folder_id) == folder_id,
                    col(BandLesson.band_id) == band_id,
                )
                .order_by(col(Lesson.created_at))
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def add_lesson_to_folder(self, band_id: str, folder_id: str, lesson_id: str) -> None:
        """Link a lesson into the band library and the folder (idempotent)."""
        async with AsyncSession(self._engine) as session:
            if await session.get(BandLesson, (band_id, lesson_id)) is None:
                session.add(BandLesson(band_id=band_id, lesson_id=lesson_id))
            if await session.get(FolderLesson, (folder_id, lesson_id)) is None:
                session.add(FolderLesson(folder_id=folder_id, lesson_id=lesson_id))
            await session.commit()
        logger.info(
            "folder_lesson_added", band_id=band_id, folder_id=folder_id, lesson_id=lesson_id
        )

    async def remove_lesson_from_folder(self, folder_id: str, lesson_id: str) -> bool:
        """Unlink a lesson from a folder; the band library link stays."""
        async with AsyncSession(self._engine) as session:
            link = await session.get(FolderLesson, (folder_id, lesson_id))
            if not link:
                return False
            await session.delete(link)
            await session.commit()
        logger.info("folder_lesson_removed", folder_id=folder_id, lesson_id=lesson_id)
        return True
