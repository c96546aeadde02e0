from __future__ import annotations

import threading
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

import pytest

from hospitality_access.access.ledger import AccessLedger
from hospitality_access.access.model import AccessEvent, AccessStats
from hospitality_access.access.presence import PresenceResolver
from hospitality_access.access.service import CheckinService
from hospitality_access.audit.service import AuditEvent, AuditLogger
from hospitality_access.core.context import RequestContext
from hospitality_access.core.enums import AccessStatusFilter, AccessType, DeviceType, Role, VipLevel
from hospitality_access.core.exceptions import NotFoundError
from hospitality_access.guests.model import Guest, GuestSuggestion
from hospitality_access.search.model import SearchCriteria
from hospitality_access.search.service import GuestSearchService
from hospitality_access.stats.service import OccupancyStatsService

FIXED_NOW = datetime(2026, 10, 19, 20, 0, 0)

ROOM_NAMES = {10: "Sky Lounge", 11: "Gold Club", 20: "Main Hall"}
ROOM_STADIUMS = {10: 1, 11: 1, 20: 2}


class InMemoryGuests:
    def __init__(self, guests: Iterable[Guest] = (), assignments: Optional[Dict[int, set]] = None):
        self.guests: Dict[int, Guest] = {g.guest_id: g for g in guests}
        self.assignments: Dict[int, set] = assignments or {}
        self.accesses: Optional["InMemoryAccesses"] = None
        self.search_calls: List[SearchCriteria] = []

    def add(self, guest: Guest) -> None:
        self.guests[guest.guest_id] = guest

    def move_to_room(self, guest_id: int, room_id: int) -> None:
        g = self.guests[guest_id]
        self.guests[guest_id] = Guest(**{**g.__dict__, "room_id": room_id, "room_name": ROOM_NAMES.get(room_id)})

    def get_active(self, guest_id: int, stadium_id: Optional[int] = None) -> Optional[Guest]:
        g = self.guests.get(guest_id)
        if not g or not g.is_active:
            return None
        if stadium_id is not None and g.stadium_id != stadium_id:
            return None
        return g

    def search(self, criteria: SearchCriteria) -> Sequence[Guest]:
        self.search_calls.append(criteria)
        rows = [g for g in self.guests.values() if g.is_active]
        if criteria.stadium_id is not None:
            rows = [g for g in rows if g.stadium_id == criteria.stadium_id]
        if criteria.room_ids is not None:
            rows = [g for g in rows if g.room_id in criteria.room_ids]
        if criteria.event_id is not None:
            rows = [g for g in rows if g.event_id == criteria.event_id]
        for token in criteria.tokens:
            t = token.casefold()
            rows = [
                g
                for g in rows
                if g.last_name.casefold().startswith(t)
                or g.first_name.casefold().startswith(t)
                or t in (g.company_name or "").casefold()
            ]
        if criteria.access_status is not None:
            latest = self.accesses.latest_for_guests([g.guest_id for g in rows])
            checked_in = {gid for gid, e in latest.items() if e.access_type == AccessType.ENTRY}
            if criteria.access_status == AccessStatusFilter.CHECKED_IN:
                rows = [g for g in rows if g.guest_id in checked_in]
            else:
                rows = [g for g in rows if g.guest_id not in checked_in]
        if criteria.vip_level is not None:
            rows = [g for g in rows if g.vip_level == criteria.vip_level]
        rows.sort(key=lambda g: (g.last_name, g.first_name, g.guest_id))
        return rows[criteria.offset : criteria.offset + criteria.limit]

    def suggest(self, prefix: str, *, stadium_id: int, room_ids=None, limit: int) -> Sequence[GuestSuggestion]:
        p = prefix.casefold()
        rows = [
            g
            for g in self.guests.values()
            if g.is_active
            and g.stadium_id == stadium_id
            and (g.last_name.casefold().startswith(p) or g.first_name.casefold().startswith(p))
        ]
        if room_ids is not None:
            rows = [g for g in rows if g.room_id in set(room_ids)]
        rows.sort(key=lambda g: (g.last_name, g.first_name, g.guest_id))
        return [
            GuestSuggestion(guest_id=g.guest_id, display_name=g.full_name, table_number=g.table_number, room_name=g.room_name)
            for g in rows[:limit]
        ]

    def assigned_room_ids(self, user_id: int) -> FrozenSet[int]:
        return frozenset(self.assignments.get(user_id, set()))

    def list_for_room(self, room_id: int, *, event_id=None, stadium_id=None) -> Sequence[Guest]:
        return [
            g
            for g in self.guests.values()
            if g.is_active
            and g.room_id == room_id
            and (event_id is None or g.event_id == event_id)
            and (stadium_id is None or g.stadium_id == stadium_id)
        ]

    def list_for_event(self, event_id: int, *, stadium_id=None) -> Sequence[Guest]:
        return [
            g
            for g in self.guests.values()
            if g.is_active and g.event_id == event_id and (stadium_id is None or g.stadium_id == stadium_id)
        ]

    def count_assigned_hostesses(self, room_id: int, *, stadium_id=None) -> int:
        if stadium_id is not None and ROOM_STADIUMS.get(room_id) != stadium_id:
            return 0
        return sum(1 for rooms in self.assignments.values() if room_id in rooms)


class InMemoryAccesses:
    """Ledger fake; the lock plays the part of the guest row lock."""

    def __init__(self, guests: InMemoryGuests, *, start: datetime = FIXED_NOW, step: timedelta = timedelta(minutes=30)):
        self._guests = guests
        self._events: List[AccessEvent] = []
        self._lock = threading.Lock()
        self._next_time = start
        self._step = step
        self.latest_calls: List[List[int]] = []

    @property
    def events(self) -> List[AccessEvent]:
        return list(self._events)

    def append_checked(
        self,
        *,
        guest_id,
        hostess_id,
        stadium_id,
        room_id,
        event_id,
        access_type,
        device_type,
        companions=0,
        notes=None,
        check,
    ) -> AccessEvent:
        with self._lock:
            if self._guests.get_active(guest_id, stadium_id) is None:
                raise NotFoundError("Guest not found or inactive")
            latest = max((e for e in self._events if e.guest_id == guest_id), key=lambda e: e.access_id, default=None)
            check(latest)
            event = AccessEvent(
                access_id=len(self._events) + 1,
                guest_id=guest_id,
                hostess_id=hostess_id,
                stadium_id=stadium_id,
                room_id=room_id,
                event_id=event_id,
                access_type=AccessType(access_type),
                access_time=self._next_time,
                device_type=DeviceType(device_type),
                companions=companions,
                notes=notes,
            )
            self._next_time += self._step
            self._events.append(event)
            return event

    def history(self, guest_id: int, *, stadium_id=None, limit: Optional[int]) -> Sequence[AccessEvent]:
        rows = [e for e in self._events if e.guest_id == guest_id and (stadium_id is None or e.stadium_id == stadium_id)]
        rows.sort(key=lambda e: e.access_id, reverse=True)
        return rows[:limit]

    def latest_for_guests(self, guest_ids: Sequence[int]) -> Dict[int, AccessEvent]:
        self.latest_calls.append(list(guest_ids))
        wanted = set(guest_ids)
        latest: Dict[int, AccessEvent] = {}
        for e in self._events:
            if e.guest_id in wanted and (e.guest_id not in latest or e.access_id > latest[e.guest_id].access_id):
                latest[e.guest_id] = e
        return latest

    def room_occupant_ids(self, room_id: int, *, stadium_id=None) -> Sequence[int]:
        latest = self.latest_for_guests({e.guest_id for e in self._events})
        return [
            gid
            for gid, e in latest.items()
            if e.access_type == AccessType.ENTRY
            and e.room_id == room_id
            and (stadium_id is None or e.stadium_id == stadium_id)
        ]

    def access_stats(self, stadium_id: int, *, room_id=None, on_date=None) -> AccessStats:
        rows = [e for e in self._events if e.stadium_id == stadium_id]
        if room_id is not None:
            in_room = {g.guest_id for g in self._guests.guests.values() if g.room_id == room_id and g.stadium_id == stadium_id}
            rows = [e for e in rows if e.guest_id in in_room]
        if on_date is not None:
            rows = [e for e in rows if e.access_time.date() == on_date]
        return AccessStats(
            stadium_id=stadium_id,
            room_id=room_id,
            on_date=on_date,
            total_checkins=sum(1 for e in rows if e.access_type == AccessType.ENTRY),
            total_checkouts=sum(1 for e in rows if e.access_type == AccessType.EXIT),
            unique_guests=len({e.guest_id for e in rows}),
            active_hostesses=len({e.hostess_id for e in rows}),
        )


class InMemoryAudit:
    def __init__(self):
        self.events: List[AuditEvent] = []

    def write(self, event: AuditEvent) -> None:
        self.events.append(event)


def make_guest(guest_id, last_name, first_name, *, stadium_id=1, event_id=100, room_id=10, vip=VipLevel.STANDARD, company=None, table=None, active=True, event_date=date(2026, 10, 19)):
    return Guest(
        guest_id=guest_id,
        stadium_id=stadium_id,
        event_id=event_id,
        room_id=room_id,
        first_name=first_name,
        last_name=last_name,
        vip_level=vip,
        company_name=company,
        table_number=table,
        is_active=active,
        room_name=ROOM_NAMES.get(room_id),
        event_name=f"Event {event_id}",
        event_date=event_date,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def guests() -> InMemoryGuests:
    repo = InMemoryGuests(
        [
            make_guest(1, "Rossi", "Mario", vip=VipLevel.VIP, company="Acme Spa", table="T1"),
            make_guest(2, "Rossi", "Anna", company="Beta Srl", table="T1"),
            make_guest(3, "Bianchi", "Luca", room_id=11, vip=VipLevel.PREMIUM, company="Acme Spa", table="T4"),
            make_guest(4, "Verdi", "Giulia", room_id=11, vip=VipLevel.ULTRA_VIP, company="Gamma", table="T5"),
            make_guest(5, "Neri", "Paolo", active=False),
            make_guest(6, "Rossi", "Marco", stadium_id=2, event_id=200, room_id=20),
            make_guest(7, "Gialli", "Sara", event_id=101, event_date=date(2026, 10, 10)),
        ],
        assignments={50: {10}, 51: {11}, 52: set(), 70: {20}},
    )
    return repo


@pytest.fixture
def accesses(guests) -> InMemoryAccesses:
    repo = InMemoryAccesses(guests)
    guests.accesses = repo
    return repo


@pytest.fixture
def audit_repo() -> InMemoryAudit:
    return InMemoryAudit()


@pytest.fixture
def ledger(accesses) -> AccessLedger:
    return AccessLedger(accesses)


@pytest.fixture
def presence(accesses) -> PresenceResolver:
    return PresenceResolver(accesses)


@pytest.fixture
def checkin_service(ledger, presence, guests, audit_repo, fixed_now) -> CheckinService:
    return CheckinService(ledger, presence, guests, AuditLogger(audit_repo), clock=lambda: fixed_now)


@pytest.fixture
def search_service(guests, presence, accesses) -> GuestSearchService:
    return GuestSearchService(guests, presence)


@pytest.fixture
def stats_service(guests, presence, accesses) -> OccupancyStatsService:
    return OccupancyStatsService(guests, presence, accesses)


@pytest.fixture
def admin_ctx() -> RequestContext:
    return RequestContext(user_id=40, role=Role.STADIUM_ADMIN, stadium_id=1)


@pytest.fixture
def super_ctx() -> RequestContext:
    return RequestContext(user_id=1, role=Role.SUPER_ADMIN)


@pytest.fixture
def hostess_ctx(guests) -> RequestContext:
    return RequestContext(user_id=50, role=Role.HOSTESS, stadium_id=1, room_ids=guests.assigned_room_ids(50))


@pytest.fixture(name="make_guest")
def make_guest_fixture():
    return make_guest
