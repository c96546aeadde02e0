"""SQL composition for guest search.

Kept free of I/O so the generated statements can be checked without a
database.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Tuple

from ..core.enums import AccessStatusFilter
from ..database.mysql_base import escape_like, in_clause
from .model import SearchCriteria

GUEST_COLUMNS = """
    g.id, g.stadium_id, g.event_id, g.room_id,
    g.first_name, g.last_name, g.company_name,
    g.table_number, g.seat_number, g.vip_level,
    g.contact_email, g.contact_phone, g.notes, g.is_active,
    hr.name AS room_name, e.name AS event_name, e.event_date
"""

# Latest ledger row per guest; MAX(id) is served by idx_access_guest_latest.
LATEST_ACCESS_JOIN = """
    LEFT JOIN (
        SELECT ga.guest_id, ga.access_type
        FROM guest_accesses ga
        JOIN (
            SELECT guest_id, MAX(id) AS max_id
            FROM guest_accesses
            {where}
            GROUP BY guest_id
        ) m ON m.max_id = ga.id
    ) la ON la.guest_id = g.id
"""


def build_search_query(criteria: SearchCriteria) -> Tuple[str, Tuple[Any, ...]]:
    joins = [
        "JOIN hospitality_rooms hr ON g.room_id = hr.id",
        "JOIN events e ON g.event_id = e.id",
    ]
    join_params: list[Any] = []
    clauses = ["g.is_active = 1"]
    params: list[Any] = []

    if criteria.access_status is not None:
        if criteria.stadium_id is not None:
            joins.append(LATEST_ACCESS_JOIN.format(where="WHERE stadium_id = %s"))
            join_params.append(int(criteria.stadium_id))
        else:
            joins.append(LATEST_ACCESS_JOIN.format(where=""))

    if criteria.stadium_id is not None:
        clauses.append("g.stadium_id = %s")
        params.append(int(criteria.stadium_id))

    if criteria.room_ids is not None:
        if not criteria.room_ids:
            # Empty scope: no room matches.
            clauses.append("1 = 0")
        else:
            placeholders, room_params = in_clause(sorted(criteria.room_ids))
            clauses.append(f"g.room_id IN ({placeholders})")
            params.extend(room_params)

    for token in criteria.tokens:
        clauses.append("(g.last_name LIKE %s OR g.first_name LIKE %s OR g.company_name LIKE %s)")
        escaped = escape_like(token)
        params.extend([f"{escaped}%", f"{escaped}%", f"%{escaped}%"])

    if criteria.event_id is not None:
        clauses.append("g.event_id = %s")
        params.append(int(criteria.event_id))

    if criteria.access_status == AccessStatusFilter.CHECKED_IN:
        clauses.append("la.access_type = 'entry'")
    elif criteria.access_status == AccessStatusFilter.NOT_CHECKED_IN:
        clauses.append("(la.access_type IS NULL OR la.access_type = 'exit')")

    if criteria.vip_level is not None:
        clauses.append("g.vip_level = %s")
        params.append(criteria.vip_level.value)

    sql = f"""
        SELECT {GUEST_COLUMNS}
        FROM guests g
        {" ".join(joins)}
        WHERE {" AND ".join(clauses)}
        ORDER BY g.last_name, g.first_name, g.id
        LIMIT %s OFFSET %s
    """
    return sql, tuple(join_params + params + [int(criteria.limit), int(criteria.offset)])


def build_suggest_query(
    prefix: str,
    stadium_id: int,
    room_ids: Optional[Iterable[int]],
    limit: int,
) -> Tuple[str, Tuple[Any, ...]]:
    escaped = escape_like(prefix)
    clauses = [
        "g.stadium_id = %s",
        "g.is_active = 1",
        "(g.last_name LIKE %s OR g.first_name LIKE %s)",
    ]
    params: list[Any] = [int(stadium_id), f"{escaped}%", f"{escaped}%"]

    if room_ids is not None:
        rooms = sorted(int(r) for r in room_ids)
        if not rooms:
            clauses.append("1 = 0")
        else:
            placeholders, room_params = in_clause(rooms)
            clauses.append(f"g.room_id IN ({placeholders})")
            params.extend(room_params)

    params.append(int(limit))
    sql = f"""
        SELECT g.id, g.first_name, g.last_name, g.table_number, hr.name AS room_name
        FROM guests g
        JOIN hospitality_rooms hr ON g.room_id = hr.id
        WHERE {" AND ".join(clauses)}
        ORDER BY g.last_name, g.first_name, g.id
        LIMIT %s
    """
    return sql, tuple(params)
