from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from .enums import Role
from .exceptions import AuthorizationError, ValidationError


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller for one request.

    Supplied by the authentication layer and passed explicitly to every
    service call. ``room_ids`` holds the caller's active room assignments
    (only meaningful for hostesses).
    """

    user_id: int
    role: Role
    stadium_id: Optional[int] = None
    room_ids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    @property
    def is_hostess(self) -> bool:
        return self.role == Role.HOSTESS

    def resolve_stadium(self, requested: Optional[int] = None) -> int:
        """Return the tenant this call operates on."""
        if self.is_super_admin:
            if requested is None:
                raise ValidationError("stadium_id is required for super admin operations")
            return int(requested)

        if self.stadium_id is None:
            raise AuthorizationError("User is not bound to a stadium")
        if requested is not None and int(requested) != int(self.stadium_id):
            raise AuthorizationError("Access denied to another stadium")
        return int(self.stadium_id)

    def can_access_room(self, room_id: int) -> bool:
        if not self.is_hostess:
            return True
        return int(room_id) in self.room_ids
