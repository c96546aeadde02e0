"""Presence derivation.

A guest's presence is a pure function of the ledger: the access type of the
row with the highest id (ids are unique and monotonic, so there are no ties
and timestamps are never consulted).
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, Optional

from ..core.enums import AccessType, PresenceStatus
from ..core.exceptions import InvalidTransitionError
from .model import AccessEvent, PresenceSnapshot
from .repository import AccessRepository

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    (PresenceStatus.NEVER_ACCESSED, AccessType.ENTRY): PresenceStatus.CHECKED_IN,
    (PresenceStatus.CHECKED_IN, AccessType.EXIT): PresenceStatus.CHECKED_OUT,
    (PresenceStatus.CHECKED_OUT, AccessType.ENTRY): PresenceStatus.CHECKED_IN,
}

_REJECTIONS = {
    AccessType.ENTRY: "Guest is already checked in",
    AccessType.EXIT: "Guest is not currently checked in",
}


def status_of(event: Optional[AccessEvent]) -> PresenceStatus:
    if event is None:
        return PresenceStatus.NEVER_ACCESSED
    if event.access_type == AccessType.ENTRY:
        return PresenceStatus.CHECKED_IN
    return PresenceStatus.CHECKED_OUT


def latest_event(events: Iterable[AccessEvent]) -> Optional[AccessEvent]:
    return max(events, key=lambda e: e.access_id, default=None)


def resolve_presence(events: Iterable[AccessEvent]) -> PresenceStatus:
    return status_of(latest_event(events))


def next_status(current: PresenceStatus, access_type: AccessType) -> PresenceStatus:
    """Apply one ledger row to a presence state, rejecting invalid transitions."""
    try:
        return _TRANSITIONS[(current, access_type)]
    except KeyError:
        raise InvalidTransitionError(_REJECTIONS[access_type]) from None


class PresenceResolver:
    def __init__(self, accesses: AccessRepository):
        self._accesses = accesses

    def current_status(self, guest_id: int) -> PresenceSnapshot:
        latest = self._accesses.latest_for_guests([int(guest_id)]).get(int(guest_id))
        return PresenceSnapshot(guest_id=int(guest_id), status=status_of(latest), last_event=latest)

    def bulk_status(self, guest_ids: Iterable[int]) -> Dict[int, PresenceSnapshot]:
        """Presence for many guests with one batched ledger lookup."""
        ids = list(dict.fromkeys(int(g) for g in guest_ids))
        if not ids:
            return {}

        latest = self._accesses.latest_for_guests(ids)
        return {
            gid: PresenceSnapshot(guest_id=gid, status=status_of(latest.get(gid)), last_event=latest.get(gid))
            for gid in ids
        }

    def room_occupants(self, room_id: int, *, stadium_id: Optional[int] = None) -> FrozenSet[int]:
        # The room recorded on the entry row wins over the guest's current room.
        occupants = frozenset(
            int(g) for g in self._accesses.room_occupant_ids(int(room_id), stadium_id=stadium_id)
        )
        logger.debug("Room %s has %d occupants (stadium_id=%s)", room_id, len(occupants), stadium_id)
        return occupants
