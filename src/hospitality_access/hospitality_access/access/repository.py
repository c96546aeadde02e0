from __future__ import annotations

from datetime import date
from typing import Callable, Mapping, Optional, Protocol, Sequence

from ..core.enums import AccessType, DeviceType
from .model import AccessEvent, AccessStats

TransitionCheck = Callable[[Optional[AccessEvent]], None]


class AccessRepository(Protocol):
    """Sole writer of the ``guest_accesses`` ledger."""

    def append_checked(
        self,
        *,
        guest_id: int,
        hostess_id: int,
        stadium_id: int,
        room_id: int,
        event_id: int,
        access_type: AccessType,
        device_type: DeviceType,
        companions: int = 0,
        notes: Optional[str] = None,
        check: TransitionCheck,
    ) -> AccessEvent:
        """Append one row after ``check`` accepted the guest's latest row.

        Reading the latest row, running ``check`` and inserting happen as one
        atomic unit per guest. Raises ``NotFoundError`` when the guest is
        inactive or outside ``stadium_id``; whatever ``check`` raises aborts
        the append.
        """

        raise NotImplementedError

    def history(
        self, guest_id: int, *, stadium_id: Optional[int] = None, limit: Optional[int]
    ) -> Sequence[AccessEvent]:
        """Rows of one guest, highest id first; ``limit=None`` returns every row."""

        raise NotImplementedError

    def latest_for_guests(self, guest_ids: Sequence[int]) -> Mapping[int, AccessEvent]:
        """Row with the maximum id per guest; guests without rows are absent."""

        raise NotImplementedError

    def room_occupant_ids(self, room_id: int, *, stadium_id: Optional[int] = None) -> Sequence[int]:
        """Guests whose latest row is an entry recorded in ``room_id``."""

        raise NotImplementedError

    def access_stats(
        self, stadium_id: int, *, room_id: Optional[int] = None, on_date: Optional[date] = None
    ) -> AccessStats:
        """Entry/exit counters of one stadium, optionally for one room's guests and one day."""

        raise NotImplementedError
