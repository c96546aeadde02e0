from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple

from ..access.model import PresenceSnapshot
from ..core.constants import DEFAULT_SEARCH_LIMIT
from ..core.enums import AccessStatusFilter, VipLevel
from ..guests.model import Guest


@dataclass(frozen=True)
class SearchFilters:
    """Raw search input as received from the caller."""

    stadium_id: Optional[int] = None
    room_ids: Optional[Iterable[int]] = None
    event_id: Optional[int] = None
    query: Optional[str] = None
    access_status: Optional[str] = None
    vip_level: Optional[str] = None
    limit: Optional[int] = DEFAULT_SEARCH_LIMIT
    offset: Optional[int] = 0


@dataclass(frozen=True)
class SearchCriteria:
    """Validated filters handed to the repository."""

    stadium_id: Optional[int] = None
    room_ids: Optional[FrozenSet[int]] = None
    event_id: Optional[int] = None
    tokens: Tuple[str, ...] = ()
    access_status: Optional[AccessStatusFilter] = None
    vip_level: Optional[VipLevel] = None
    limit: int = DEFAULT_SEARCH_LIMIT
    offset: int = 0


@dataclass(frozen=True)
class GuestWithStatus:
    guest: Guest
    presence: PresenceSnapshot


@dataclass(frozen=True)
class SearchResult:
    """One page of search results.

    ``has_more`` is true when the page is full. At an exact boundary (the
    last page holds exactly ``limit`` rows) it is true although nothing
    follows; callers confirm by requesting the next page.
    """

    results: Tuple[GuestWithStatus, ...]
    total_found: int
    execution_time_ms: float
    has_more: bool

    @classmethod
    def empty(cls, execution_time_ms: float = 0.0) -> "SearchResult":
        return cls(results=(), total_found=0, execution_time_ms=execution_time_ms, has_more=False)
