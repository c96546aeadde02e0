from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional, Tuple

from ..audit.service import AuditEvent, AuditLogger
from ..common.datetime_utils import Stopwatch, minutes_between, now_local
from ..common.validators import validate_companions, validate_notes
from ..core.constants import CHECKIN_GRACE_DAYS, DEFAULT_HISTORY_LIMIT
from ..core.context import RequestContext
from ..core.enums import AccessType, DeviceType
from ..core.exceptions import AuthorizationError, DomainError, NotFoundError, ValidationError
from ..guests.model import Guest
from ..guests.repository import GuestRepository
from .ledger import AccessLedger
from .model import AccessEvent, AccessSummary, CheckinResult, CheckoutResult, PresenceSnapshot
from .presence import PresenceResolver

logger = logging.getLogger(__name__)


def count_visits(events) -> Tuple[int, int]:
    """Completed visits (entry followed by exit) and their total minutes."""
    visits = 0
    minutes = 0
    open_entry: Optional[AccessEvent] = None
    for e in sorted(events, key=lambda x: x.access_id):
        if e.access_type == AccessType.ENTRY:
            open_entry = e
        elif open_entry is not None:
            visits += 1
            minutes += minutes_between(open_entry.access_time, e.access_time)
            open_entry = None
    return visits, minutes


class CheckinService:
    """Entry point for hostess check-in/check-out and presence lookups."""

    def __init__(
        self,
        ledger: AccessLedger,
        presence: PresenceResolver,
        guests: GuestRepository,
        audit: AuditLogger,
        *,
        clock: Callable = now_local,
    ):
        self._ledger = ledger
        self._presence = presence
        self._guests = guests
        self._audit = audit
        self._clock = clock

    def check_in(
        self,
        context: RequestContext,
        guest_id: int,
        *,
        stadium_id: Optional[int] = None,
        device_type: DeviceType = DeviceType.WEB,
        notes: Optional[str] = None,
        companions: int = 0,
    ) -> CheckinResult:
        watch = Stopwatch()
        tenant = self._resolve_tenant(context, stadium_id, guest_id)

        try:
            notes = validate_notes(notes)
            companions = validate_companions(companions)
            guest = self._require_guest(context, guest_id, tenant)

            cutoff = self._clock().date() - timedelta(days=CHECKIN_GRACE_DAYS)
            if guest.event_date is not None and guest.event_date < cutoff:
                raise ValidationError("Cannot check-in guest for past events")

            transition = self._ledger.transition(
                guest_id=guest.guest_id,
                hostess_id=context.user_id,
                stadium_id=tenant,
                room_id=guest.room_id,
                event_id=guest.event_id,
                access_type=AccessType.ENTRY,
                device_type=device_type,
                companions=companions,
                notes=notes,
            )
        except Exception as e:
            self._log_failure("check-in", context, guest_id, tenant, e, watch)
            raise

        event = transition.event
        result = CheckinResult(
            access_id=event.access_id,
            guest_id=guest.guest_id,
            guest_name=guest.full_name,
            room_name=guest.room_name,
            table_number=guest.table_number,
            checkin_time=event.access_time,
            previous_status=transition.previous_status,
            companions=companions,
            notes=notes,
        )

        self._audit.record(
            AuditEvent(
                operation_type="GUEST_CHECKIN",
                description="Guest checked in successfully",
                user_id=context.user_id,
                stadium_id=tenant,
                table_affected="guest_accesses",
                record_id=event.access_id,
                device_type=event.device_type,
                metadata={
                    "guest_id": guest.guest_id,
                    "guest_name": guest.full_name,
                    "room_name": guest.room_name,
                    "companions": companions,
                    "previous_status": result.previous_status.value,
                },
            )
        )
        logger.info(
            "Guest check-in completed (guest_id=%s, hostess_id=%s, execution_time_ms=%.2f)",
            guest.guest_id,
            context.user_id,
            watch.elapsed_ms,
        )
        return result

    def check_out(
        self,
        context: RequestContext,
        guest_id: int,
        *,
        stadium_id: Optional[int] = None,
        device_type: DeviceType = DeviceType.WEB,
        notes: Optional[str] = None,
    ) -> CheckoutResult:
        watch = Stopwatch()
        tenant = self._resolve_tenant(context, stadium_id, guest_id)

        try:
            notes = validate_notes(notes)
            guest = self._require_guest(context, guest_id, tenant)
            transition = self._ledger.transition(
                guest_id=guest.guest_id,
                hostess_id=context.user_id,
                stadium_id=tenant,
                room_id=guest.room_id,
                event_id=guest.event_id,
                access_type=AccessType.EXIT,
                device_type=device_type,
                notes=notes,
            )
        except Exception as e:
            self._log_failure("check-out", context, guest_id, tenant, e, watch)
            raise

        event = transition.event
        # An exit is only accepted on top of an entry, so previous is that entry.
        checkin_time = transition.previous.access_time
        result = CheckoutResult(
            access_id=event.access_id,
            guest_id=guest.guest_id,
            guest_name=guest.full_name,
            room_name=guest.room_name,
            checkout_time=event.access_time,
            checkin_time=checkin_time,
            duration_minutes=minutes_between(checkin_time, event.access_time),
            notes=notes,
        )

        self._audit.record(
            AuditEvent(
                operation_type="GUEST_CHECKOUT",
                description="Guest checked out successfully",
                user_id=context.user_id,
                stadium_id=tenant,
                table_affected="guest_accesses",
                record_id=event.access_id,
                device_type=event.device_type,
                metadata={
                    "guest_id": guest.guest_id,
                    "guest_name": guest.full_name,
                    "room_name": guest.room_name,
                    "duration_minutes": result.duration_minutes,
                    "checkin_time": checkin_time,
                },
            )
        )
        logger.info(
            "Guest check-out completed (guest_id=%s, hostess_id=%s, duration_minutes=%s, execution_time_ms=%.2f)",
            guest.guest_id,
            context.user_id,
            result.duration_minutes,
            watch.elapsed_ms,
        )
        return result

    def current_status(
        self, context: RequestContext, guest_id: int, *, stadium_id: Optional[int] = None
    ) -> PresenceSnapshot:
        tenant = self._resolve_tenant(context, stadium_id, guest_id)
        try:
            guest = self._require_guest(context, guest_id, tenant)
            return self._presence.current_status(guest.guest_id)
        except Exception as e:
            self._log_failure("status lookup", context, guest_id, tenant, e)
            raise

    def history(
        self,
        context: RequestContext,
        guest_id: int,
        *,
        stadium_id: Optional[int] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> Tuple[AccessEvent, ...]:
        tenant = self._resolve_tenant(context, stadium_id, guest_id)
        try:
            guest = self._require_guest(context, guest_id, tenant)
            return self._ledger.history(guest.guest_id, stadium_id=tenant, limit=limit)
        except Exception as e:
            self._log_failure("history", context, guest_id, tenant, e)
            raise

    def access_summary(
        self, context: RequestContext, guest_id: int, *, stadium_id: Optional[int] = None
    ) -> AccessSummary:
        tenant = self._resolve_tenant(context, stadium_id, guest_id)
        try:
            guest = self._require_guest(context, guest_id, tenant)
            events = self._ledger.all_events(guest.guest_id, stadium_id=tenant)
        except Exception as e:
            self._log_failure("access summary", context, guest_id, tenant, e)
            raise

        current = self._presence.current_status(guest.guest_id).status
        # Totals cover the whole ledger; only the newest rows are returned.
        visits, minutes = count_visits(events)
        summary = AccessSummary(
            guest=guest,
            events=events[:DEFAULT_HISTORY_LIMIT],
            current_status=current,
            total_visits=visits,
            total_duration_minutes=minutes,
        )

        self._audit.record(
            AuditEvent(
                operation_type="GUEST_HISTORY_VIEW",
                description="Guest access history viewed",
                user_id=context.user_id,
                stadium_id=tenant,
                metadata={
                    "guest_id": guest.guest_id,
                    "guest_name": guest.full_name,
                    "total_visits": visits,
                    "current_status": current.value,
                },
            )
        )
        return summary

    def _resolve_tenant(self, context: RequestContext, stadium_id: Optional[int], guest_id: int) -> int:
        try:
            return context.resolve_stadium(stadium_id)
        except DomainError as e:
            logger.error(
                "Tenant check failed (guest_id=%s, user_id=%s, requested_stadium_id=%s, error=%s)",
                guest_id,
                context.user_id,
                stadium_id,
                e,
            )
            raise

    def _require_guest(self, context: RequestContext, guest_id: int, stadium_id: int) -> Guest:
        guest = self._guests.get_active(int(guest_id), stadium_id)
        if guest is None:
            raise NotFoundError("Guest not found or inactive")
        if not context.can_access_room(guest.room_id):
            raise AuthorizationError("Hostess does not have access to this guest's room")
        return guest

    def _log_failure(
        self,
        operation: str,
        context: RequestContext,
        guest_id: int,
        stadium_id: int,
        error: Exception,
        watch: Optional[Stopwatch] = None,
    ) -> None:
        logger.error(
            "Guest %s failed (guest_id=%s, user_id=%s, stadium_id=%s, error=%s: %s%s)",
            operation,
            guest_id,
            context.user_id,
            stadium_id,
            type(error).__name__,
            error,
            f", execution_time_ms={watch.elapsed_ms:.2f}" if watch else "",
        )


