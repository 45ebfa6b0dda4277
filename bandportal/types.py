"""Enums and type aliases for the band portal."""

from enum import StrEnum


class MemberRole(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class RestrictionReason(StrEnum):
    OVER_MEMBER_LIMIT = "over_member_limit"
    SUBSCRIPTION_EXPIRED = "subscription_expired"


class InvitationStatus(StrEnum):
    PENDING = "pending"
    USED = "used"
    REVOKED = "revoked"


# Only this literal subscription status counts as paid and current.
SUBSCRIPTION_ACTIVE = "active"
SUBSCRIPTION_CANCELLED = "cancelled"
