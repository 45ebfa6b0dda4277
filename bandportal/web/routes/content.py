"""Lesson library and folder API routes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from bandportal.models.database import Folder, Lesson
from bandportal.storage.repositories.bands import BandRepository
from bandportal.storage.repositories.content import ContentRepository
from bandportal.storage.repositories.invitations import InvitationRepository
from bandportal.web.auth.rbac import (
    ensure_not_restricted,
    evaluate_band_access,
    require_band_access,
    require_band_admin,
    require_user,
)
from bandportal.web.auth.supabase import AuthClaims
from bandportal.web.band_context import BandContext
from bandportal.web.dependencies import get_band_repo, get_content_repo, get_invitation_repo

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["content"])


class CreateLessonRequest(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    body: str = ""
    is_public: bool = False


class LessonResponse(BaseModel):
    id: str
    title: str
    body: str = ""
    is_public: bool
    band_id: str | None = None
    created_at: datetime


class CreateFolderRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class FolderResponse(BaseModel):
    id: str
    band_id: str
    name: str
    created_at: datetime


class AddFolderLessonRequest(BaseModel):
    lesson_id: str


def _lesson_to_dict(lesson: Lesson) -> dict[str, Any]:
    return {
        "id": lesson.id,
        "title": lesson.title,
        "body": lesson.body,
        "is_public": lesson.is_public,
        "band_id": lesson.band_id,
        "created_at": lesson.created_at,
    }


def _folder_to_dict(folder: Folder) -> dict[str, Any]:
    return {
        "id": folder.id,
        "band_id": folder.band_id,
        "name": folder.name,
        "created_at": folder.created_at,
    }


# ---------------------------------------------------------------------------
# Lessons
# ---------------------------------------------------------------------------


@router.get("/api/lessons/public", response_model=list[LessonResponse])
async def list_public_lessons(
    exclude_band: str | None = None,
    user: AuthClaims = Depends(require_user),
    content_repo: ContentRepository = Depends(get_content_repo),
    band_repo: BandRepository = Depends(get_band_repo),
) -> list[dict[str, Any]]:
    """Browse public lessons; ``exclude_band`` hides those already in that band's library."""
    if exclude_band and not await band_repo.get_member(exclude_band, user.sub):
        raise HTTPException(status_code=403, detail="Not a member of this band")
    lessons = await content_repo.list_public_lessons(exclude_band_id=exclude_band)
    return [_lesson_to_dict(lesson) for lesson in lessons]


@router.get("/api/lessons/{lesson_id}", response_model=LessonResponse)
async def get_lesson(
    lesson_id: str,
    user: AuthClaims = Depends(require_user),
    content_repo: ContentRepository = Depends(get_content_repo),
    band_repo: BandRepository = Depends(get_band_repo),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
) -> dict[str, Any]:
    """Public lessons are open to every user; private ones go through the owning band's gate."""
    lesson = await content_repo.get_lesson(lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    if lesson.is_public:
        return _lesson_to_dict(lesson)

    member = await band_repo.get_member(lesson.band_id, user.sub) if lesson.band_id else None
    if not member:
        # Hide private lessons from non-members entirely
        raise HTTPException(status_code=404, detail="Lesson not found")

    ctx = BandContext(band_id=member.band_id, user_id=user.sub, email=user.email, role=member.role)
    ensure_not_restricted(await evaluate_band_access(ctx, band_repo, invitation_repo))
    return _lesson_to_dict(lesson)


@router.get("/api/bands/{band_id}/lessons", response_model=list[LessonResponse])
async def list_band_lessons(
    ctx: BandContext = Depends(require_band_access),
    content_repo: ContentRepository = Depends(get_content_repo),
) -> list[dict[str, Any]]:
    return [_lesson_to_dict(lesson) for lesson in await content_repo.list_band_lessons(ctx.band_id)]


@router.post("/api/bands/{band_id}/lessons", status_code=201, response_model=LessonResponse)
async def create_band_lesson(
    body: CreateLessonRequest,
    ctx: BandContext = Depends(require_band_admin),
    content_repo: ContentRepository = Depends(get_content_repo),
) -> dict[str, Any]:
    lesson = await content_repo.create_lesson(
        title=body.title, body=body.body, is_public=body.is_public, band_id=ctx.band_id
    )
    return _lesson_to_dict(lesson)


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------


@router.get("/api/bands/{band_id}/folders", response_model=list[FolderResponse])
async def list_folders(
    ctx: BandContext = Depends(require_band_access),
    content_repo: ContentRepository = Depends(get_content_repo),
) -> list[dict[str, Any]]:
    return [_folder_to_dict(folder) for folder in await content_repo.list_folders(ctx.band_id)]


@router.post("/api/bands/{band_id}/folders", status_code=201, response_model=FolderResponse)
async def create_folder(
    body: CreateFolderRequest,
    ctx: BandContext = Depends(require_band_admin),
    content_repo: ContentRepository = Depends(get_content_repo),
) -> dict[str, Any]:
    folder = await content_repo.create_folder(ctx.band_id, body.name.strip())
    return _folder_to_dict(folder)


@router.delete("/api/bands/{band_id}/folders/{folder_id}")
async def delete_folder(
    folder_id: str,
    ctx: BandContext = Depends(require_band_admin),
    content_repo: ContentRepository = Depends(get_content_repo),
) -> Response:
    if not await content_repo.delete_folder(ctx.band_id, folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    return Response(status_code=204)


@router.get(
    "/api/bands/{band_id}/folders/{folder_id}/lessons",
    response_model=list[LessonResponse],
)
async def list_folder_lessons(
    folder_id: str,
    ctx: BandContext = Depends(require_band_access),
    content_repo: ContentRepository = Depends(get_content_repo),
) -> list[dict[str, Any]]:
    if not await content_repo.get_folder(ctx.band_id, folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    lessons = await content_repo.list_folder_lessons(ctx.band_id, folder_id)
    return [_lesson_to_dict(lesson) for lesson in lessons]


@router.post("/api/bands/{band_id}/folders/{folder_id}/lessons", status_code=204)
async def add_folder_lesson(
    folder_id: str,
    body: AddFolderLessonRequest,
    ctx: BandContext = Depends(require_band_admin),
    content_repo: ContentRepository = Depends(get_content_repo),
) -> Response:
    if not await content_repo.get_folder(ctx.band_id, folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    lesson = await content_repo.get_lesson(body.lesson_id)
    # Bands may file public lessons or their own private ones
    if not lesson or not (lesson.is_public or lesson.band_id == ctx.band_id):
        raise HTTPException(status_code=404, detail="Lesson not found")

    await content_repo.add_lesson_to_folder(ctx.band_id, folder_id, lesson.id)
    return Response(status_code=204)


@router.delete("/api/bands/{band_id}/folders/{folder_id}/lessons/{lesson_id}")
async def remove_folder_lesson(
    folder_id: str,
    lesson_id: str,
    ctx: BandContext = Depends(require_band_admin),
    content_repo: ContentRepository = Depends(get_content_repo),
) -> Response:
    if not await content_repo.get_folder(ctx.band_id, folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    if not await content_repo.remove_lesson_from_folder(folder_id, lesson_id):
        raise HTTPException(status_code=404, detail="Lesson not in folder")
    return Response(status_code=204)
