from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, Optional, Sequence

from ..common.datetime_utils import as_date
from ..core.enums import VipLevel
from ..database.connection import DatabaseConnection
from ..database.mysql_base import fetchall, fetchone, run_read
from ..search.model import SearchCriteria
from ..search.queries import GUEST_COLUMNS, build_search_query, build_suggest_query
from .model import Guest, GuestSuggestion
from .repository import GuestRepository


def _to_guest(r: Dict[str, Any]) -> Guest:
    return Guest(
        guest_id=int(r["id"]),
        stadium_id=int(r["stadium_id"]),
        event_id=int(r["event_id"]),
        room_id=int(r["room_id"]),
        first_name=r["first_name"],
        last_name=r["last_name"],
        vip_level=VipLevel(r.get("vip_level") or VipLevel.STANDARD.value),
        company_name=r.get("company_name"),
        table_number=r.get("table_number"),
        seat_number=r.get("seat_number"),
        contact_email=r.get("contact_email"),
        contact_phone=r.get("contact_phone"),
        notes=r.get("notes"),
        is_active=bool(r.get("is_active", 1)),
        room_name=r.get("room_name"),
        event_name=r.get("event_name"),
        event_date=as_date(r["event_date"]) if r.get("event_date") else None,
    )


class MySQLGuestRepository(GuestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_active(self, guest_id: int, stadium_id: Optional[int] = None) -> Optional[Guest]:
        clauses = ["g.id=%s", "g.is_active=1"]
        params: list[object] = [int(guest_id)]
        if stadium_id is not None:
            clauses.append("g.stadium_id=%s")
            params.append(int(stadium_id))

        def work(cur):
            cur.execute(
                f"""
                SELECT {GUEST_COLUMNS}
                FROM guests g
                JOIN hospitality_rooms hr ON g.room_id = hr.id
                JOIN events e ON g.event_id = e.id
                WHERE {" AND ".join(clauses)}
                """,
                tuple(params),
            )
            r = fetchone(cur)
            return _to_guest(r) if r else None

        return run_read(self._conn_factory, work, description="guest lookup")

    def search(self, criteria: SearchCriteria) -> Sequence[Guest]:
        sql, params = build_search_query(criteria)

        def work(cur):
            cur.execute(sql, params)
            return [_to_guest(r) for r in fetchall(cur)]

        return run_read(self._conn_factory, work, description="guest search")

    def suggest(
        self,
        prefix: str,
        *,
        stadium_id: int,
        room_ids: Optional[Iterable[int]] = None,
        limit: int,
    ) -> Sequence[GuestSuggestion]:
        sql, params = build_suggest_query(prefix, stadium_id, room_ids, limit)

        def work(cur):
            cur.execute(sql, params)
            return [
                GuestSuggestion(
                    guest_id=int(r["id"]),
                    display_name=f"{r['last_name']}, {r['first_name']}",
                    table_number=r.get("table_number"),
                    room_name=r.get("room_name"),
                )
                for r in fetchall(cur)
            ]

        return run_read(self._conn_factory, work, description="guest suggest")

    def assigned_room_ids(self, user_id: int) -> FrozenSet[int]:
        def work(cur):
            cur.execute(
                """
                SELECT room_id
                FROM user_room_assignments
                WHERE user_id=%s AND is_active=1
                """,
                (int(user_id),),
            )
            return frozenset(int(r["room_id"]) for r in fetchall(cur))

        return run_read(self._conn_factory, work, description="room assignments")

    def list_for_room(
        self, room_id: int, *, event_id: Optional[int] = None, stadium_id: Optional[int] = None
    ) -> Sequence[Guest]:
        clauses = ["g.room_id=%s", "g.is_active=1"]
        params: list[object] = [int(room_id)]
        if event_id is not None:
            clauses.append("g.event_id=%s")
            params.append(int(event_id))
        if stadium_id is not None:
            clauses.append("g.stadium_id=%s")
            params.append(int(stadium_id))
        return self._list(clauses, params, description="room guests")

    def list_for_event(self, event_id: int, *, stadium_id: Optional[int] = None) -> Sequence[Guest]:
        clauses = ["g.event_id=%s", "g.is_active=1"]
        params: list[object] = [int(event_id)]
        if stadium_id is not None:
            clauses.append("g.stadium_id=%s")
            params.append(int(stadium_id))
        return self._list(clauses, params, description="event guests")

    def count_assigned_hostesses(self, room_id: int, *, stadium_id: Optional[int] = None) -> int:
        clauses = ["ura.room_id=%s", "ura.is_active=1", "u.is_active=1"]
        params: list[object] = [int(room_id)]
        if stadium_id is not None:
            clauses.append("hr.stadium_id=%s")
            params.append(int(stadium_id))

        def work(cur):
            cur.execute(
                f"""
                SELECT COUNT(DISTINCT ura.user_id) AS total
                FROM user_room_assignments ura
                JOIN users u ON u.id = ura.user_id
                JOIN hospitality_rooms hr ON hr.id = ura.room_id
                WHERE {" AND ".join(clauses)}
                """,
                tuple(params),
            )
            r = fetchone(cur)
            return int(r["total"]) if r else 0

        return run_read(self._conn_factory, work, description="room hostess count")

    def _list(self, clauses: list[str], params: list[object], *, description: str) -> Sequence[Guest]:
        def work(cur):
            cur.execute(
                f"""
                SELECT {GUEST_COLUMNS}
                FROM guests g
                JOIN hospitality_rooms hr ON g.room_id = hr.id
                JOIN events e ON g.event_id = e.id
                WHERE {" AND ".join(clauses)}
                ORDER BY g.last_name, g.first_name, g.id
                """,
                tuple(params),
            )
            return [_to_guest(r) for r in fetchall(cur)]

        return run_read(self._conn_factory, work, description=description)
