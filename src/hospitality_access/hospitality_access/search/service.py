from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, Optional, Tuple

from ..access.presence import PresenceResolver
from ..common.datetime_utils import Stopwatch
from ..common.validators import parse_enum, require_max_length
from ..core.constants import (
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SUGGEST_LIMIT,
    MAX_QUERY_LENGTH,
    MAX_SEARCH_LIMIT,
    MAX_SUGGEST_LIMIT,
    MIN_TOKEN_LENGTH,
    SEARCH_SLOW_MS,
)
from ..core.context import RequestContext
from ..core.enums import AccessStatusFilter, VipLevel
from ..core.exceptions import DomainError, ValidationError
from ..guests.model import GuestSuggestion
from ..guests.repository import GuestRepository
from .model import GuestWithStatus, SearchCriteria, SearchFilters, SearchResult

logger = logging.getLogger(__name__)


def tokenize(query: Optional[str]) -> Tuple[str, ...]:
    """Whitespace tokens long enough to be selective; shorter ones are ignored."""
    if not query:
        return ()
    return tuple(t for t in query.split() if len(t) >= MIN_TOKEN_LENGTH)


def _optional_id(value, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer") from None


def _room_id_set(room_ids) -> FrozenSet[int]:
    try:
        return frozenset(int(r) for r in room_ids)
    except (TypeError, ValueError):
        raise ValidationError("room_ids must be integers") from None


def normalize_filters(filters: SearchFilters) -> SearchCriteria:
    try:
        limit = DEFAULT_SEARCH_LIMIT if filters.limit is None else int(filters.limit)
        offset = 0 if filters.offset is None else int(filters.offset)
    except (TypeError, ValueError):
        raise ValidationError("limit and offset must be integers") from None
    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    if offset < 0:
        raise ValidationError("offset cannot be negative")

    query = require_max_length(filters.query, "Search query", MAX_QUERY_LENGTH)

    room_ids = None
    if filters.room_ids is not None:
        room_ids = _room_id_set(filters.room_ids)

    return SearchCriteria(
        stadium_id=_optional_id(filters.stadium_id, "stadium_id"),
        room_ids=room_ids,
        event_id=_optional_id(filters.event_id, "event_id"),
        tokens=tokenize(query),
        access_status=parse_enum(AccessStatusFilter, filters.access_status, "access_status"),
        vip_level=parse_enum(VipLevel, filters.vip_level, "vip_level"),
        limit=min(limit, MAX_SEARCH_LIMIT),
        offset=offset,
    )


class GuestSearchService:
    """Filtered, paginated guest search joined with current presence."""

    def __init__(
        self,
        guests: GuestRepository,
        presence: PresenceResolver,
        *,
        slow_search_ms: float = SEARCH_SLOW_MS,
    ):
        self._guests = guests
        self._presence = presence
        self._slow_search_ms = float(slow_search_ms)

    def search(self, filters: SearchFilters) -> SearchResult:
        watch = Stopwatch()
        criteria = normalize_filters(filters)

        try:
            guests = list(self._guests.search(criteria))
            statuses = self._presence.bulk_status(g.guest_id for g in guests)
        except DomainError as e:
            logger.error(
                "Guest search failed (stadium_id=%s, error=%s)", criteria.stadium_id, e
            )
            raise

        results = tuple(GuestWithStatus(guest=g, presence=statuses[g.guest_id]) for g in guests)
        elapsed = watch.elapsed_ms

        logger.debug("Guest search completed in %.2fms, found %d results", elapsed, len(results))
        if elapsed > self._slow_search_ms:
            logger.warning(
                "Slow guest search: %.2fms (threshold %.0fms) criteria=%s",
                elapsed,
                self._slow_search_ms,
                criteria,
            )

        return SearchResult(
            results=results,
            total_found=len(results),
            execution_time_ms=elapsed,
            has_more=len(results) == criteria.limit,
        )

    def search_for(self, context: RequestContext, filters: SearchFilters) -> SearchResult:
        """Search within the caller's tenant and, for hostesses, assigned rooms."""
        stadium_id = filters.stadium_id
        if not context.is_super_admin:
            stadium_id = context.resolve_stadium(filters.stadium_id)

        room_ids = filters.room_ids
        if context.is_hostess:
            if not context.room_ids:
                return SearchResult.empty()
            if room_ids is None:
                room_ids = context.room_ids
            else:
                room_ids = _room_id_set(room_ids) & context.room_ids

        return self.search(
            SearchFilters(
                stadium_id=stadium_id,
                room_ids=room_ids,
                event_id=filters.event_id,
                query=filters.query,
                access_status=filters.access_status,
                vip_level=filters.vip_level,
                limit=filters.limit,
                offset=filters.offset,
            )
        )

    def quick_suggest(
        self,
        prefix: str,
        stadium_id: int,
        room_ids: Optional[Iterable[int]] = None,
        limit: int = DEFAULT_SUGGEST_LIMIT,
    ) -> Tuple[GuestSuggestion, ...]:
        watch = Stopwatch()
        prefix = (prefix or "").strip()
        if len(prefix) < MIN_TOKEN_LENGTH:
            raise ValidationError(f"Query too short (minimum {MIN_TOKEN_LENGTH} characters)")
        require_max_length(prefix, "Search query", MAX_QUERY_LENGTH)
        limit = max(1, min(int(limit), MAX_SUGGEST_LIMIT))

        suggestions = tuple(
            self._guests.suggest(prefix, stadium_id=int(stadium_id), room_ids=room_ids, limit=limit)
        )
        if watch.elapsed_ms > self._slow_search_ms:
            logger.warning("Slow quick suggest: %.2fms (prefix=%r, stadium_id=%s)", watch.elapsed_ms, prefix, stadium_id)
        return suggestions
