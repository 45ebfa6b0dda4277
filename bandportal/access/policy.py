"""Band access restriction policy.

Decides whether a caller is locked out of a band's content, based on the
band's member count against its plan limit and on subscription expiry.
The functions here are pure: callers fetch the snapshot and pass it in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from bandportal.types import SUBSCRIPTION_ACTIVE, MemberRole, RestrictionReason

if TYPE_CHECKING:
    from collections.abc import Sequence

_REASON_MESSAGES: dict[RestrictionReason, str] = {
    RestrictionReason.OVER_MEMBER_LIMIT: (
        "Your band has more members than allowed for your current subscription tier. "
        "Please remove members to restore access for everyone."
    ),
    RestrictionReason.SUBSCRIPTION_EXPIRED: (
        "Your band subscription has expired. "
        "Please renew your subscription to restore access."
    ),
}


@dataclass(frozen=True, slots=True)
class BandSnapshot:
    """Subscription fields of a band as read at evaluation time."""

    id: str
    member_limit: int | None = 0  # 0 or None means unlimited
    subscription_status: str | None = ""
    current_period_end: datetime | None = None


@dataclass(frozen=True, slots=True)
class Membership:
    user_id: str
    role: MemberRole | str = MemberRole.MEMBER


@dataclass(frozen=True, slots=True)
class CallerContext:
    user_id: str


@dataclass(frozen=True, slots=True)
class PolicyResult:
    """Outcome of an access evaluation.

    ``can_access`` always equals ``not is_restricted``.
    """

    is_restricted: bool
    restriction_reason: RestrictionReason | None
    show_admin_alert: bool
    can_access: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "is_restricted": self.is_restricted,
            "restriction_reason": (
                self.restriction_reason.value if self.restriction_reason else None
            ),
            "show_admin_alert": self.show_admin_alert,
            "can_access": self.can_access,
        }


_UNRESTRICTED = PolicyResult(
    is_restricted=False,
    restriction_reason=None,
    show_admin_alert=False,
    can_access=True,
)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so DB values compare with aware clocks."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _caller_is_admin(caller: CallerContext, memberships: Sequence[Membership]) -> bool:
    for membership in memberships:
        if membership.user_id == caller.user_id:
            return membership.role == MemberRole.ADMIN
    return False


def _restricted(reason: RestrictionReason, is_admin: bool) -> PolicyResult:
    return PolicyResult(
        is_restricted=not is_admin,
        restriction_reason=reason,
        show_admin_alert=True,
        can_access=is_admin,
    )


def evaluate(
    caller: CallerContext,
    band: BandSnapshot,
    memberships: Sequence[Membership],
    now: datetime | None = None,
) -> PolicyResult:
    """Classify the caller's access to a band.

    Rules are checked in order and the first match wins, so a band that is
    both over its limit and expired reports ``over_member_limit`` only.
    Admins are never restricted but still get ``show_admin_alert``.
    """
    if now is None:
        now = datetime.now(UTC)
    is_admin = _caller_is_admin(caller, memberships)

    limit = band.member_limit or 0
    if limit > 0 and len(memberships) > limit:
        return _restricted(RestrictionReason.OVER_MEMBER_LIMIT, is_admin)

    period_end = band.current_period_end
    if (
        band.subscription_status != SUBSCRIPTION_ACTIVE
        and period_end is not None
        and _as_utc(now) > _as_utc(period_end)
    ):
        return _restricted(RestrictionReason.SUBSCRIPTION_EXPIRED, is_admin)

    return _UNRESTRICTED


def reason_message(reason: RestrictionReason | str | None) -> str | None:
    """Return the user-facing sentence for a restriction reason."""
    if reason is None:
        return None
    try:
        return _REASON_MESSAGES[RestrictionReason(reason)]
    except ValueError:
        return None
