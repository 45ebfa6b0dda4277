"""Band context for band-scoped request handling."""

from __future__ import annotations

from dataclasses import dataclass, field

from bandportal.access.policy import PolicyResult
from bandportal.types import MemberRole


@dataclass(frozen=True, slots=True)
class BandContext:
    """Immutable caller-in-band context carried through each request."""

    band_id: str
    user_id: str
    email: str
    role: str  # admin | member
    access: PolicyResult | None = field(default=None, compare=False)

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN
