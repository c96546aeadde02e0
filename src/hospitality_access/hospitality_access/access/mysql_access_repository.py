from __future__ import annotations

from datetime import date
from typing import Any, Dict, Mapping, Optional, Sequence

from ..core.constants import BULK_CHUNK_SIZE
from ..core.enums import AccessType, DeviceType
from ..core.exceptions import NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import chunked, fetchall, fetchone, in_clause, run_read, transaction
from .model import AccessEvent, AccessStats
from .repository import AccessRepository, TransitionCheck

_EVENT_COLUMNS = """
    ga.id, ga.guest_id, ga.hostess_id, ga.stadium_id, ga.room_id, ga.event_id,
    ga.access_type, ga.access_time, ga.device_type, ga.companions, ga.notes
"""


def _to_event(r: Dict[str, Any]) -> AccessEvent:
    return AccessEvent(
        access_id=int(r["id"]),
        guest_id=int(r["guest_id"]),
        hostess_id=int(r["hostess_id"]),
        stadium_id=int(r["stadium_id"]),
        room_id=int(r["room_id"]),
        event_id=int(r["event_id"]),
        access_type=AccessType(r["access_type"]),
        access_time=r["access_time"],
        device_type=DeviceType(r.get("device_type") or DeviceType.WEB.value),
        companions=int(r.get("companions") or 0),
        notes=r.get("notes"),
    )


class MySQLAccessRepository(AccessRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with transaction(self._conn_factory) as (_, cur):
            # Row lock on the guest serializes concurrent transitions of the same guest.
            cur.execute(
                """
                SELECT id
                FROM guests
                WHERE id=%s AND stadium_id=%s AND is_active=1
                FOR UPDATE
                """,
                (guest_id, stadium_id),
            )
            if not fetchone(cur):
                raise NotFoundError("Guest not found or inactive")

            cur.execute(
                f"""
                SELECT {_EVENT_COLUMNS}
                FROM guest_accesses ga
                WHERE ga.guest_id=%s
                ORDER BY ga.id DESC
                LIMIT 1
                """,
                (guest_id,),
            )
            latest = fetchone(cur)
            check(_to_event(latest) if latest else None)

            cur.execute(
                """
                INSERT INTO guest_accesses(
                    stadium_id, guest_id, hostess_id, room_id, event_id,
                    access_type, access_time, device_type, companions, notes
                )
                VALUES(%s,%s,%s,%s,%s,%s,NOW(6),%s,%s,%s)
                """,
                (
                    stadium_id,
                    guest_id,
                    hostess_id,
                    room_id,
                    event_id,
                    access_type.value,
                    device_type.value,
                    int(companions),
                    notes,
                ),
            )
            access_id = int(cur.lastrowid)

            cur.execute(f"SELECT {_EVENT_COLUMNS} FROM guest_accesses ga WHERE ga.id=%s", (access_id,))
            return _to_event(fetchone(cur))

    def history(
        self, guest_id: int, *, stadium_id: Optional[int] = None, limit: Optional[int]
    ) -> Sequence[AccessEvent]:
        clauses = ["ga.guest_id=%s"]
        params: list[object] = [int(guest_id)]
        if stadium_id is not None:
            clauses.append("ga.stadium_id=%s")
            params.append(int(stadium_id))
        limit_sql = ""
        if limit is not None:
            limit_sql = "LIMIT %s"
            params.append(int(limit))

        def work(cur):
            cur.execute(
                f"""
                SELECT {_EVENT_COLUMNS}
                FROM guest_accesses ga
                WHERE {" AND ".join(clauses)}
                ORDER BY ga.id DESC
                {limit_sql}
                """,
                tuple(params),
            )
            return [_to_event(r) for r in fetchall(cur)]

        return run_read(self._conn_factory, work, description="access history")

    def latest_for_guests(self, guest_ids: Sequence[int]) -> Mapping[int, AccessEvent]:
        result: Dict[int, AccessEvent] = {}
        for chunk in chunked(guest_ids, BULK_CHUNK_SIZE):
            placeholders, params = in_clause([int(g) for g in chunk])

            def work(cur, placeholders=placeholders, params=params):
                cur.execute(
                    f"""
                    SELECT {_EVENT_COLUMNS}
                    FROM guest_accesses ga
                    JOIN (
                        SELECT guest_id, MAX(id) AS max_id
                        FROM guest_accesses
                        WHERE guest_id IN ({placeholders})
                        GROUP BY guest_id
                    ) latest ON latest.max_id = ga.id
                    """,
                    params,
                )
                return fetchall(cur)

            for r in run_read(self._conn_factory, work, description="latest access lookup"):
                event = _to_event(r)
                result[event.guest_id] = event
        return result

    def room_occupant_ids(self, room_id: int, *, stadium_id: Optional[int] = None) -> Sequence[int]:
        clauses = ["ga.room_id=%s", "ga.access_type='entry'"]
        params: list[object] = [int(room_id)]
        if stadium_id is not None:
            clauses.append("ga.stadium_id=%s")
            params.append(int(stadium_id))

        def work(cur):
            cur.execute(
                f"""
                SELECT ga.guest_id
                FROM guest_accesses ga
                WHERE {" AND ".join(clauses)}
                    AND NOT EXISTS (
                        SELECT 1
                        FROM guest_accesses later
                        WHERE later.guest_id = ga.guest_id AND later.id > ga.id
                    )
                """,
                tuple(params),
            )
            return [int(r["guest_id"]) for r in fetchall(cur)]

        return run_read(self._conn_factory, work, description="room occupants")

    def access_stats(
        self, stadium_id: int, *, room_id: Optional[int] = None, on_date: Optional[date] = None
    ) -> AccessStats:
        clauses = ["stadium_id=%s"]
        params: list[object] = [int(stadium_id)]
        if room_id is not None:
            # Scoped by the guest's room, not the room recorded on each row.
            clauses.append("guest_id IN (SELECT id FROM guests WHERE room_id=%s AND stadium_id=%s)")
            params.extend([int(room_id), int(stadium_id)])
        if on_date is not None:
            clauses.append("DATE(access_time)=%s")
            params.append(on_date)

        def work(cur):
            cur.execute(
                f"""
                SELECT
                    COUNT(CASE WHEN access_type='entry' THEN 1 END) AS total_checkins,
                    COUNT(CASE WHEN access_type='exit' THEN 1 END) AS total_checkouts,
                    COUNT(DISTINCT guest_id) AS unique_guests,
                    COUNT(DISTINCT hostess_id) AS active_hostesses
                FROM guest_accesses
                WHERE {" AND ".join(clauses)}
                """,
                tuple(params),
            )
            return fetchone(cur) or {}

        r = run_read(self._conn_factory, work, description="access stats")
        return AccessStats(
            stadium_id=int(stadium_id),
            room_id=room_id,
            on_date=on_date,
            total_checkins=int(r.get("total_checkins") or 0),
            total_checkouts=int(r.get("total_checkouts") or 0),
            unique_guests=int(r.get("unique_guests") or 0),
            active_hostesses=int(r.get("active_hostesses") or 0),
        )
