from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Tuple

from ..core.enums import AccessType, DeviceType, PresenceStatus
from ..guests.model import Guest


@dataclass(frozen=True)
class AccessEvent:
    """Immutable ledger row. Ids grow monotonically with every append."""

    access_id: int
    guest_id: int
    hostess_id: int
    stadium_id: int
    room_id: int
    event_id: int
    access_type: AccessType
    access_time: datetime
    device_type: DeviceType = DeviceType.WEB
    companions: int = 0
    notes: Optional[str] = None


@dataclass(frozen=True)
class PresenceSnapshot:
    """Current presence of a guest plus the ledger row it was derived from."""

    guest_id: int
    status: PresenceStatus
    last_event: Optional[AccessEvent] = None

    @property
    def is_checked_in(self) -> bool:
        return self.status == PresenceStatus.CHECKED_IN

    @property
    def last_access_type(self) -> Optional[AccessType]:
        return self.last_event.access_type if self.last_event else None

    @property
    def last_access_time(self) -> Optional[datetime]:
        return self.last_event.access_time if self.last_event else None

    @property
    def last_hostess_id(self) -> Optional[int]:
        return self.last_event.hostess_id if self.last_event else None

    @property
    def last_room_id(self) -> Optional[int]:
        return self.last_event.room_id if self.last_event else None


@dataclass(frozen=True)
class CheckinResult:
    access_id: int
    guest_id: int
    guest_name: str
    room_name: Optional[str]
    table_number: Optional[str]
    checkin_time: datetime
    previous_status: PresenceStatus
    companions: int = 0
    notes: Optional[str] = None


@dataclass(frozen=True)
class CheckoutResult:
    access_id: int
    guest_id: int
    guest_name: str
    room_name: Optional[str]
    checkout_time: datetime
    checkin_time: datetime
    duration_minutes: int
    notes: Optional[str] = None


@dataclass(frozen=True)
class AccessSummary:
    """Access history of a guest with visit statistics.

    ``events`` holds the newest rows only; the totals cover every row.
    """

    guest: Guest
    events: Tuple[AccessEvent, ...]
    current_status: PresenceStatus
    total_visits: int
    total_duration_minutes: int


@dataclass(frozen=True)
class AccessStats:
    """Ledger activity counters for one stadium, optionally one room and one day."""

    stadium_id: int
    room_id: Optional[int]
    on_date: Optional[date]
    total_checkins: int
    total_checkouts: int
    unique_guests: int
    active_hostesses: int
