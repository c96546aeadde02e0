from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..common.datetime_utils import Stopwatch
from ..core.constants import DEFAULT_HISTORY_LIMIT, WRITE_SLOW_MS
from ..core.enums import AccessType, DeviceType, PresenceStatus
from ..core.exceptions import ValidationError
from .model import AccessEvent
from .presence import next_status, status_of
from .repository import AccessRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """A new ledger row and the row that was latest when it was validated."""

    event: AccessEvent
    previous: Optional[AccessEvent]

    @property
    def previous_status(self) -> PresenceStatus:
        return status_of(self.previous)


class AccessLedger:
    """Append-only store of guest entry/exit rows."""

    def __init__(self, accesses: AccessRepository, *, slow_write_ms: float = WRITE_SLOW_MS):
        self._accesses = accesses
        self._slow_write_ms = float(slow_write_ms)

    def append(
        self,
        *,
        guest_id: int,
        hostess_id: int,
        stadium_id: int,
        room_id: int,
        event_id: int,
        access_type: AccessType,
        device_type: DeviceType = DeviceType.WEB,
    ) -> AccessEvent:
        return self.transition(
            guest_id=guest_id,
            hostess_id=hostess_id,
            stadium_id=stadium_id,
            room_id=room_id,
            event_id=event_id,
            access_type=access_type,
            device_type=device_type,
        ).event

    def transition(
        self,
        *,
        guest_id: int,
        hostess_id: int,
        stadium_id: int,
        room_id: int,
        event_id: int,
        access_type: AccessType,
        device_type: DeviceType = DeviceType.WEB,
        companions: int = 0,
        notes: Optional[str] = None,
    ) -> Transition:
        access_type = AccessType(access_type)
        device_type = DeviceType(device_type)
        watch = Stopwatch()
        seen: Dict[str, Optional[AccessEvent]] = {}

        def check(latest: Optional[AccessEvent]) -> None:
            next_status(status_of(latest), access_type)
            seen["previous"] = latest

        event = self._accesses.append_checked(
            guest_id=int(guest_id),
            hostess_id=int(hostess_id),
            stadium_id=int(stadium_id),
            room_id=int(room_id),
            event_id=int(event_id),
            access_type=access_type,
            device_type=device_type,
            companions=int(companions),
            notes=notes,
            check=check,
        )

        if watch.elapsed_ms > self._slow_write_ms:
            logger.warning(
                "Slow ledger append: %.2fms (guest_id=%s, type=%s, access_id=%s)",
                watch.elapsed_ms,
                guest_id,
                access_type.value,
                event.access_id,
            )
        return Transition(event=event, previous=seen.get("previous"))

    def history(
        self, guest_id: int, *, stadium_id: Optional[int] = None, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> Tuple[AccessEvent, ...]:
        if int(limit) < 1:
            raise ValidationError("limit must be a positive integer")
        rows = self._accesses.history(int(guest_id), stadium_id=stadium_id, limit=int(limit))
        return tuple(sorted(rows, key=lambda e: e.access_id, reverse=True))

    def all_events(self, guest_id: int, *, stadium_id: Optional[int] = None) -> Tuple[AccessEvent, ...]:
        """Every row of one guest, highest id first."""
        rows = self._accesses.history(int(guest_id), stadium_id=stadium_id, limit=None)
        return tuple(sorted(rows, key=lambda e: e.access_id, reverse=True))
