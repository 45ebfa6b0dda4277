"""Authentication and band-scoped access dependencies."""

from __future__ import annotations

from dataclasses import replace

import jwt
import structlog
from fastapi import Depends, HTTPException, Request

from bandportal.access.policy import CallerContext, PolicyResult, evaluate, reason_message
from bandportal.access.roster import load_snapshot
from bandportal.exceptions import ConfigError
from bandportal.storage.repositories.bands import BandRepository
from bandportal.storage.repositories.invitations import InvitationRepository
from bandportal.web.auth.supabase import AuthClaims, verify_access_token
from bandportal.web.band_context import BandContext
from bandportal.web.dependencies import get_band_repo, get_invitation_repo

logger = structlog.get_logger(__name__)


async def require_user(request: Request) -> AuthClaims:
    """Resolve the authenticated user from the Bearer access token."""
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")

    token = auth_header[7:]
    try:
        return verify_access_token(token)
    except ConfigError as exc:
        logger.error("auth_not_configured", error=str(exc))
        raise HTTPException(status_code=500, detail="Authentication not configured") from exc
    except jwt.PyJWTError as exc:
        logger.warning("access_token_invalid", error=str(exc))
        raise HTTPException(status_code=401, detail="Invalid token") from exc


async def get_band_context(
    band_id: str,
    user: AuthClaims = Depends(require_user),
    band_repo: BandRepository = Depends(get_band_repo),
) -> BandContext:
    """Resolve the caller's membership in the band named by the path."""
    band = await band_repo.get(band_id)
    if not band:
        raise HTTPException(status_code=404, detail="Band not found")

    member = await band_repo.get_member(band_id, user.sub)
    if not member:
        raise HTTPException(status_code=403, detail="Not a member of this band")

    return BandContext(band_id=band_id, user_id=user.sub, email=user.email, role=member.role)


async def require_band_admin(
    ctx: BandContext = Depends(get_band_context),
) -> BandContext:
    """Require admin role in the band."""
    if not ctx.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return ctx


async def evaluate_band_access(
    ctx: BandContext,
    band_repo: BandRepository,
    invitation_repo: InvitationRepository,
) -> PolicyResult:
    """Run the restriction policy for the caller against a fresh band snapshot."""
    loaded = await load_snapshot(band_repo, invitation_repo, ctx.band_id)
    if loaded is None:
        raise HTTPException(status_code=404, detail="Band not found")
    snapshot, roster = loaded

    result = evaluate(CallerContext(user_id=ctx.user_id), snapshot, roster)
    if result.restriction_reason:
        logger.info(
            "band_access_restricted",
            band_id=ctx.band_id,
            user_id=ctx.user_id,
            reason=result.restriction_reason.value,
            blocked=result.is_restricted,
            seats=len(roster),
            member_limit=snapshot.member_limit,
        )
    return result


def ensure_not_restricted(result: PolicyResult) -> None:
    if result.is_restricted:
        raise HTTPException(
            status_code=403,
            detail=reason_message(result.restriction_reason) or "Access restricted",
        )


async def require_band_access(
    ctx: BandContext = Depends(get_band_context),
    band_repo: BandRepository = Depends(get_band_repo),
    invitation_repo: InvitationRepository = Depends(get_invitation_repo),
) -> BandContext:
    """Gate band content: 403 with the restriction message when the caller is locked out."""
    result = await evaluate_band_access(ctx, band_repo, invitation_repo)
    ensure_not_restricted(result)
    return replace(ctx, access=result)
