from __future__ import annotations

from datetime import date, datetime

import pytest

from hospitality_access.access.model import AccessEvent
from hospitality_access.access.service import CheckinService, count_visits
from hospitality_access.audit.service import AuditLogger
from hospitality_access.core.context import RequestContext
from hospitality_access.core.enums import AccessType, DeviceType, PresenceStatus, Role
from hospitality_access.core.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)


class FailingAudit:
    def write(self, event):
        raise RuntimeError("system_logs is unavailable")


def test_check_in_then_out_reports_duration(checkin_service, hostess_ctx, fixed_now):
    checkin = checkin_service.check_in(hostess_ctx, 1, companions=2, notes="  near the bar ")
    checkout = checkin_service.check_out(hostess_ctx, 1)

    assert checkin.previous_status == PresenceStatus.NEVER_ACCESSED
    assert checkin.guest_name == "Rossi, Mario"
    assert checkin.room_name == "Sky Lounge"
    assert checkin.table_number == "T1"
    assert checkin.companions == 2
    assert checkin.notes == "near the bar"
    assert checkin.checkin_time == fixed_now

    assert checkout.checkin_time == checkin.checkin_time
    assert checkout.duration_minutes == 30


def test_second_check_in_is_rejected(checkin_service, hostess_ctx, accesses):
    checkin_service.check_in(hostess_ctx, 1)

    with pytest.raises(InvalidTransitionError, match="already checked in"):
        checkin_service.check_in(hostess_ctx, 1)

    assert len(accesses.events) == 1


def test_check_out_without_check_in_is_rejected(checkin_service, hostess_ctx):
    with pytest.raises(InvalidTransitionError, match="not currently checked in"):
        checkin_service.check_out(hostess_ctx, 1)


def test_re_entry_reports_checked_out_previous_status(checkin_service, admin_ctx):
    checkin_service.check_in(admin_ctx, 3)
    checkin_service.check_out(admin_ctx, 3)
    again = checkin_service.check_in(admin_ctx, 3)

    assert again.previous_status == PresenceStatus.CHECKED_OUT


def test_hostess_cannot_touch_guest_outside_assigned_rooms(checkin_service, hostess_ctx, accesses):
    with pytest.raises(AuthorizationError):
        checkin_service.check_in(hostess_ctx, 3)

    assert accesses.events == []


def test_unknown_and_inactive_guests_are_not_found(checkin_service, admin_ctx):
    with pytest.raises(NotFoundError):
        checkin_service.check_in(admin_ctx, 999)
    with pytest.raises(NotFoundError):
        checkin_service.check_in(admin_ctx, 5)


def test_guest_of_other_stadium_is_not_found(checkin_service, admin_ctx):
    with pytest.raises(NotFoundError):
        checkin_service.check_in(admin_ctx, 6)


def test_stadium_admin_cannot_target_other_stadium(checkin_service, admin_ctx):
    with pytest.raises(AuthorizationError):
        checkin_service.check_in(admin_ctx, 6, stadium_id=2)


def test_super_admin_must_name_a_stadium(checkin_service, super_ctx):
    with pytest.raises(ValidationError):
        checkin_service.check_in(super_ctx, 6)

    result = checkin_service.check_in(super_ctx, 6, stadium_id=2)
    assert result.guest_id == 6


def test_past_event_is_refused(checkin_service, admin_ctx, accesses):
    with pytest.raises(ValidationError, match="past events"):
        checkin_service.check_in(admin_ctx, 7)

    assert accesses.events == []


def test_event_from_yesterday_is_still_accepted(checkin_service, admin_ctx, guests, make_guest):
    guests.add(make_guest(8, "Blu", "Elena", event_id=102, event_date=date(2026, 10, 18)))

    result = checkin_service.check_in(admin_ctx, 8)

    assert result.guest_id == 8


@pytest.mark.parametrize("companions", [-1, 21, "many"])
def test_companions_out_of_range(checkin_service, admin_ctx, companions):
    with pytest.raises(ValidationError, match="Companions"):
        checkin_service.check_in(admin_ctx, 1, companions=companions)


def test_notes_too_long(checkin_service, admin_ctx):
    with pytest.raises(ValidationError):
        checkin_service.check_in(admin_ctx, 1, notes="x" * 501)


def test_audit_records_check_in_and_out(checkin_service, hostess_ctx, audit_repo):
    checkin_service.check_in(hostess_ctx, 1, device_type=DeviceType.MOBILE)
    checkin_service.check_out(hostess_ctx, 1)

    ops = [e.operation_type for e in audit_repo.events]
    assert ops == ["GUEST_CHECKIN", "GUEST_CHECKOUT"]
    checkin_audit = audit_repo.events[0]
    assert checkin_audit.user_id == 50
    assert checkin_audit.stadium_id == 1
    assert checkin_audit.device_type == DeviceType.MOBILE
    assert checkin_audit.metadata["previous_status"] == "never_accessed"
    assert audit_repo.events[1].metadata["duration_minutes"] == 30


def test_failed_audit_does_not_fail_the_check_in(ledger, presence, guests, accesses, hostess_ctx, fixed_now):
    service = CheckinService(ledger, presence, guests, AuditLogger(FailingAudit()), clock=lambda: fixed_now)

    result = service.check_in(hostess_ctx, 1)

    assert result.access_id == 1
    assert len(accesses.events) == 1


def test_access_summary_counts_completed_visits(checkin_service, hostess_ctx, audit_repo):
    checkin_service.check_in(hostess_ctx, 1)
    checkin_service.check_out(hostess_ctx, 1)
    checkin_service.check_in(hostess_ctx, 1)

    summary = checkin_service.access_summary(hostess_ctx, 1)

    assert summary.current_status == PresenceStatus.CHECKED_IN
    assert summary.total_visits == 1
    assert summary.total_duration_minutes == 30
    assert [e.access_type for e in summary.events] == [AccessType.ENTRY, AccessType.EXIT, AccessType.ENTRY]
    assert audit_repo.events[-1].operation_type == "GUEST_HISTORY_VIEW"


def test_status_and_history_respect_room_scope(checkin_service, admin_ctx):
    checkin_service.check_in(admin_ctx, 3)
    other_hostess = RequestContext(user_id=50, role=Role.HOSTESS, stadium_id=1, room_ids=frozenset({10}))
    room_11_hostess = RequestContext(user_id=51, role=Role.HOSTESS, stadium_id=1, room_ids=frozenset({11}))

    with pytest.raises(AuthorizationError):
        checkin_service.current_status(other_hostess, 3)
    with pytest.raises(AuthorizationError):
        checkin_service.history(other_hostess, 3)

    assert checkin_service.current_status(room_11_hostess, 3).is_checked_in
    assert len(checkin_service.history(room_11_hostess, 3)) == 1


def test_count_visits_ignores_unmatched_rows():
    def ev(i, t, minute):
        return AccessEvent(
            access_id=i, guest_id=1, hostess_id=50, stadium_id=1, room_id=10, event_id=100,
            access_type=t, access_time=datetime(2026, 10, 19, 18, minute),
        )

    events = [
        ev(4, AccessType.ENTRY, 50),
        ev(3, AccessType.EXIT, 40),
        ev(2, AccessType.ENTRY, 25),
        ev(1, AccessType.EXIT, 5),
    ]

    assert count_visits(events) == (1, 15)


def test_access_summary_totals_cover_rows_beyond_the_returned_page(checkin_service, admin_ctx, ledger):
    for _ in range(60):
        for access_type in (AccessType.ENTRY, AccessType.EXIT):
            ledger.append(guest_id=4, hostess_id=40, stadium_id=1, room_id=11, event_id=100, access_type=access_type)

    summary = checkin_service.access_summary(admin_ctx, 4)

    assert len(summary.events) == 100
    assert summary.events[0].access_id == 120
    assert summary.total_visits == 60
    assert summary.total_duration_minutes == 60 * 30
