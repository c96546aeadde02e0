"""Occupancy counters.

Read-only projections recomputed on every call from the guest table, the
presence resolver and the access ledger; nothing is cached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

from ..access.model import AccessStats
from ..access.presence import PresenceResolver
from ..access.repository import AccessRepository
from ..common.datetime_utils import as_date
from ..core.enums import VipLevel
from ..core.exceptions import DomainError, ValidationError
from ..guests.repository import GuestRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomStats:
    room_id: int
    total: int
    checked_in: int
    not_checked_in: int
    hostess_assigned: int
    by_vip_tier: Dict[VipLevel, int]

    @property
    def check_in_percentage(self) -> float:
        if not self.total:
            return 0.0
        return round(self.checked_in * 100.0 / self.total, 1)


@dataclass(frozen=True)
class EventStats:
    event_id: int
    total_guests: int
    by_vip_tier: Dict[VipLevel, int]
    checked_in_count: int
    rooms_in_use: int


def _empty_tiers() -> Dict[VipLevel, int]:
    return {level: 0 for level in VipLevel}


class OccupancyStatsService:
    def __init__(self, guests: GuestRepository, presence: PresenceResolver, accesses: AccessRepository):
        self._guests = guests
        self._presence = presence
        self._accesses = accesses

    def room_stats(self, room_id: int, event_id: Optional[int] = None, *, stadium_id: Optional[int] = None) -> RoomStats:
        guests = self._guests.list_for_room(int(room_id), event_id=event_id, stadium_id=stadium_id)
        statuses = self._presence.bulk_status(g.guest_id for g in guests)

        tiers = _empty_tiers()
        for g in guests:
            tiers[g.vip_level] += 1
        checked_in = sum(1 for s in statuses.values() if s.is_checked_in)

        return RoomStats(
            room_id=int(room_id),
            total=len(guests),
            checked_in=checked_in,
            not_checked_in=len(guests) - checked_in,
            hostess_assigned=self._guests.count_assigned_hostesses(int(room_id), stadium_id=stadium_id),
            by_vip_tier=tiers,
        )

    def event_stats(self, event_id: int, *, stadium_id: Optional[int] = None) -> EventStats:
        guests = self._guests.list_for_event(int(event_id), stadium_id=stadium_id)
        statuses = self._presence.bulk_status(g.guest_id for g in guests)

        tiers = _empty_tiers()
        for g in guests:
            tiers[g.vip_level] += 1

        return EventStats(
            event_id=int(event_id),
            total_guests=len(guests),
            by_vip_tier=tiers,
            checked_in_count=sum(1 for s in statuses.values() if s.is_checked_in),
            rooms_in_use=len({g.room_id for g in guests}),
        )

    def access_stats(
        self, stadium_id: int, room_id: Optional[int] = None, on_date: Optional[date] = None
    ) -> AccessStats:
        """Check-in/check-out activity of a stadium from the ledger."""
        try:
            day = as_date(on_date) if on_date is not None else None
        except (TypeError, ValueError):
            raise ValidationError("date must be an ISO date (YYYY-MM-DD)") from None

        try:
            return self._accesses.access_stats(
                int(stadium_id),
                room_id=int(room_id) if room_id is not None else None,
                on_date=day,
            )
        except DomainError as e:
            logger.error(
                "Failed to get check-in stats (stadium_id=%s, room_id=%s, error=%s)", stadium_id, room_id, e
            )
            raise
