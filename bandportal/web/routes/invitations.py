"""Band invitation API routes: invite, resend, revoke, look up and accept."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, EmailStr

from bandportal.config.settings import get_settings
from bandportal.exceptions import EmailDeliveryError, InvitationError
from bandportal.models.database import Invitation, _utc_now
from bandportal.notifications.email import InviteMailer
from bandportal.storage.repositories.bands import BandRepository
from bandportal.storage.repositories.invitations import InvitationRepository
from bandportal.types import InvitationStatus, MemberRole
from bandportal.web.auth.rbac import require_band_admin, require_user
from bandportal.web.auth.supabase import AuthClaims
from bandportal.web.band_context import BandContext
from bandportal.web.dependencies import get_band_repo, get_invitation_repo, get_mailer

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["invitations"])


class CreateInvitationRequest(BaseModel):
    email: EmailStr
    role: MemberRole = MemberRole.MEMBER


class InvitationCreatedResponse(BaseModel):
    id: str
    email: str
    role: str
    invite_link: str
    expires_at: datetime | None = None


class InvitationResponse(BaseModel):
    id: str
    band_id: str
    band_name: str | None = None
    email: str
    role: str
    status: str
    expires_at: datetime | None = None


class AcceptedResponse(BaseModel):
    band_id: str
    role: str


def invite_link_for(token: str) -> str:
    settings = get_settings()
    return f"{settings.site_url.rstrip('/')}/accept-invite?token={token}"


async def _require_invitation_admin(
    invitation_id: str,
    user: AuthClaims,
    invitation_repo: InvitationRepository,
    band_repo: BandRepository,
) -> Invitation:
    invitation = await invitation_repo.get(invitation_id)
    if not invitation:
        raise HTTPException(status_code=404, detail="Invite not found")
    member = await band_repo.get_member(invitation.band_id, user.sub)
    if not member or member.role != MemberRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return invitation


def _ensure_claimable(invitation: Invitation) -> None:
    if invitation.status != InvitationStatus.PENDING or invitation.claimed:
        raise HTTPException(
            status_code=410, detail="This invite has already been used or revoked."
        )
    if invitation.expires_at is not None and invitation.expires_at <= _utc_now():
        raise HTTPException(status_code=410, detail="This invite has expired.")


@router.post(
    "/api/bands/{band_id}/invitations",
    status_code=201,
    response_model=InvitationCreatedResponse,
)
async def create_invitation(
    body: CreateInvitationRequest,
    ctx: BandContext = Depends(require_band_admin),
    band_repo: BandRepository = Depends(get_band_repo),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
    mailer: InviteMailer = Depends(get_mailer),
) -> dict[str, Any]:
    email = str(body.email).lower()
    if await band_repo.find_member_by_email(ctx.band_id, email):
        raise HTTPException(status_code=409, detail="Already a member of this band")
    if await invitation_repo.find_pending_for_email(ctx.band_id, email):
        raise HTTPException(status_code=409, detail="An invite is already pending for this email")

    band = await band_repo.get(ctx.band_id)
    if not band:
        raise HTTPException(status_code=404, detail="Band not found")

    settings = get_settings()
    invitation = await invitation_repo.create(
        band_id=ctx.band_id,
        email=email,
        role=body.role.value,
        token=secrets.token_urlsafe(32),
        expires_at=_utc_now() + timedelta(days=settings.invite_ttl_days),
    )
    link = invite_link_for(invitation.token)
    try:
        await mailer.send_invite(to=email, band_name=band.name, invite_link=link)
    except EmailDeliveryError as exc:
        # Invitation stays; the admin can resend from the dashboard
        raise HTTPException(status_code=502, detail="Failed to send invite email.") from exc

    logger.info("member_invited", band_id=ctx.band_id, invitation_id=invitation.id, by=ctx.user_id)
    return {
        "id": invitation.id,
        "email": invitation.email,
        "role": invitation.role,
        "invite_link": link,
        "expires_at": invitation.expires_at,
    }


@router.post("/api/invitations/{invitation_id}/resend")
async def resend_invitation(
    invitation_id: str,
    user: AuthClaims = Depends(require_user),
    band_repo: BandRepository = Depends(get_band_repo),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
    mailer: InviteMailer = Depends(get_mailer),
) -> dict[str, bool]:
    invitation = await _require_invitation_admin(invitation_id, user, invitation_repo, band_repo)
    if invitation.claimed:
        raise HTTPException(status_code=400, detail="Invite already claimed")

    band = await band_repo.get(invitation.band_id)
    try:
        await mailer.send_invite(
            to=invitation.email,
            band_name=band.name if band else "a band",
            invite_link=invite_link_for(invitation.token),
        )
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=502, detail="Failed to resend invite email.") from exc
    return {"success": True}


@router.delete("/api/invitations/{invitation_id}")
async def revoke_invitation(
    invitation_id: str,
    user: AuthClaims = Depends(require_user),
    band_repo: BandRepository = Depends(get_band_repo),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
) -> Response:
    invitation = await _require_invitation_admin(invitation_id, user, invitation_repo, band_repo)
    await invitation_repo.delete(invitation.id)
    logger.info("invitation_revoked", invitation_id=invitation.id, by=user.sub)
    return Response(status_code=204)


@router.get("/api/invitations/by-token/{token}", response_model=InvitationResponse)
async def get_invitation_by_token(
    token: str,
    band_repo: BandRepository = Depends(get_band_repo),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
) -> dict[str, Any]:
    """Validate an invite link before the invitee signs in."""
    invitation = await invitation_repo.get_by_token(token)
    if not invitation:
        raise HTTPException(status_code=404, detail="Invalid or expired invite token.")
    _ensure_claimable(invitation)
    band = await band_repo.get(invitation.band_id)
    return {
        "id": invitation.id,
        "band_id": invitation.band_id,
        "band_name": band.name if band else None,
        "email": invitation.email,
        "role": invitation.role,
        "status": invitation.status,
        "expires_at": invitation.expires_at,
    }


@router.post("/api/invitations/by-token/{token}/accept", response_model=AcceptedResponse)
async def accept_invitation(
    token: str,
    user: AuthClaims = Depends(require_user),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
) -> dict[str, str]:
    invitation = await invitation_repo.get_by_token(token)
    if not invitation:
        raise HTTPException(status_code=404, detail="Invalid or expired invite token.")
    _ensure_claimable(invitation)
    if user.email.lower() != invitation.email.lower():
        raise HTTPException(
            status_code=403, detail="You must log in with the invited email address."
        )

    try:
        member = await invitation_repo.accept(invitation.id, user_id=user.sub, email=user.email)
    except InvitationError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"band_id": member.band_id, "role": member.role}
