"""Band and membership API routes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from bandportal.access.policy import reason_message
from bandportal.access.roster import build_roster
from bandportal.models.database import Band
from bandportal.storage.repositories.bands import BandRepository
from bandportal.storage.repositories.invitations import InvitationRepository
from bandportal.web.auth.rbac import (
    evaluate_band_access,
    get_band_context,
    require_band_access,
    require_band_admin,
    require_user,
)
from bandportal.web.auth.supabase import AuthClaims
from bandportal.web.band_context import BandContext
from bandportal.web.dependencies import get_band_repo, get_invitation_repo

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/bands", tags=["bands"])


class CreateBandRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class BandResponse(BaseModel):
    id: str
    name: str
    member_limit: int
    subscription_status: str
    current_period_end: datetime | None = None
    role: str | None = None
    show_admin_alert: bool = False
    access_message: str | None = None


class AccessResponse(BaseModel):
    is_restricted: bool
    restriction_reason: str | None
    show_admin_alert: bool
    can_access: bool
    message: str | None = None


class MemberResponse(BaseModel):
    user_id: str
    email: str
    role: str
    created_at: datetime


class PendingInvitationResponse(BaseModel):
    id: str
    email: str
    role: str
    created_at: datetime
    expires_at: datetime | None = None


class RosterResponse(BaseModel):
    members: list[MemberResponse]
    pending_invitations: list[PendingInvitationResponse]
    member_limit: int
    seats_used: int


def _band_to_dict(band: Band, role: str | None = None) -> dict[str, Any]:
    return {
        "id": band.id,
        "name": band.name,
        "member_limit": band.member_limit,
        "subscription_status": band.subscription_status,
        "current_period_end": band.current_period_end,
        "role": role,
    }


@router.post("", status_code=201, response_model=BandResponse)
async def create_band(
    body: CreateBandRequest,
    user: AuthClaims = Depends(require_user),
    band_repo: BandRepository = Depends(get_band_repo),
) -> dict[str, Any]:
    band = await band_repo.create(
        name=body.name.strip(), creator_user_id=user.sub, creator_email=user.email
    )
    return _band_to_dict(band, role="admin")


@router.get("", response_model=list[BandResponse])
async def list_bands(
    user: AuthClaims = Depends(require_user),
    band_repo: BandRepository = Depends(get_band_repo),
) -> list[dict[str, Any]]:
    return [_band_to_dict(band, role) for band, role in await band_repo.list_for_user(user.sub)]


@router.get("/{band_id}", response_model=BandResponse)
async def get_band(
    ctx: BandContext = Depends(require_band_access),
    band_repo: BandRepository = Depends(get_band_repo),
) -> dict[str, Any]:
    band = await band_repo.get(ctx.band_id)
    if not band:
        raise HTTPException(status_code=404, detail="Band not found")
    data = _band_to_dict(band, ctx.role)
    if ctx.access is not None:
        data["show_admin_alert"] = ctx.access.show_admin_alert
        data["access_message"] = reason_message(ctx.access.restriction_reason)
    return data


@router.get("/{band_id}/access", response_model=AccessResponse)
async def get_band_access(
    ctx: BandContext = Depends(get_band_context),
    band_repo: BandRepository = Depends(get_band_repo),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
) -> dict[str, Any]:
    """Report the caller's access state without blocking, for banners and guards."""
    result = await evaluate_band_access(ctx, band_repo, invitation_repo)
    data = result.to_dict()
    data["message"] = reason_message(result.restriction_reason)
    return data


@router.get("/{band_id}/members", response_model=RosterResponse)
async def list_members(
    ctx: BandContext = Depends(require_band_admin),
    band_repo: BandRepository = Depends(get_band_repo),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
) -> dict[str, Any]:
    band = await band_repo.get(ctx.band_id)
    if not band:
        raise HTTPException(status_code=404, detail="Band not found")
    members = await band_repo.list_members(ctx.band_id)
    pending = await invitation_repo.list_pending(ctx.band_id)
    return {
        "members": [
            {"user_id": m.user_id, "email": m.email, "role": m.role, "created_at": m.created_at}
            for m in members
        ],
        "pending_invitations": [
            {
                "id": inv.id,
                "email": inv.email,
                "role": inv.role,
                "created_at": inv.created_at,
                "expires_at": inv.expires_at,
            }
            for inv in pending
        ],
        "member_limit": band.member_limit,
        "seats_used": len(build_roster(members, pending)),
    }


@router.delete("/{band_id}/members/{user_id}")
async def remove_member(
    user_id: str,
    ctx: BandContext = Depends(require_band_admin),
    band_repo: BandRepository = Depends(get_band_repo),
) -> Response:
    member = await band_repo.get_member(ctx.band_id, user_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    if member.role == "admin" and await band_repo.count_admins(ctx.band_id) <= 1:
        raise HTTPException(status_code=409, detail="Cannot remove the last admin")

    await band_repo.remove_member(ctx.band_id, user_id)
    logger.info("member_removed", band_id=ctx.band_id, user_id=user_id, by=ctx.user_id)
    return Response(status_code=204)
