from __future__ import annotations

from typing import FrozenSet, Iterable, Optional, Protocol, Sequence

from ..search.model import SearchCriteria
from .model import Guest, GuestSuggestion


class GuestRepository(Protocol):
    def get_active(self, guest_id: int, stadium_id: Optional[int] = None) -> Optional[Guest]:
        raise NotImplementedError

    def search(self, criteria: SearchCriteria) -> Sequence[Guest]:
        """Active guests matching ``criteria``, ordered by last/first name."""

        raise NotImplementedError

    def suggest(
        self,
        prefix: str,
        *,
        stadium_id: int,
        room_ids: Optional[Iterable[int]] = None,
        limit: int,
    ) -> Sequence[GuestSuggestion]:
        raise NotImplementedError

    def assigned_room_ids(self, user_id: int) -> FrozenSet[int]:
        """Rooms with an active assignment for the user."""

        raise NotImplementedError

    def list_for_room(
        self, room_id: int, *, event_id: Optional[int] = None, stadium_id: Optional[int] = None
    ) -> Sequence[Guest]:
        raise NotImplementedError

    def list_for_event(self, event_id: int, *, stadium_id: Optional[int] = None) -> Sequence[Guest]:
        raise NotImplementedError

    def count_assigned_hostesses(self, room_id: int, *, stadium_id: Optional[int] = None) -> int:
        raise NotImplementedError
