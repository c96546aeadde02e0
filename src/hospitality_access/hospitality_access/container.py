from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .access.ledger import AccessLedger
from .access.mysql_access_repository import MySQLAccessRepository
from .access.presence import PresenceResolver
from .access.service import CheckinService
from .audit.service import AuditLogger, MySQLAuditRepository
from .core.constants import DEFAULT_READ_RETRIES, SEARCH_SLOW_MS, WRITE_SLOW_MS
from .database.connection import DBConfig, DatabaseConnection, RetryPolicy
from .guests.mysql_guest_repository import MySQLGuestRepository
from .search.service import GuestSearchService
from .stats.service import OccupancyStatsService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    guests_repo: MySQLGuestRepository
    accesses_repo: MySQLAccessRepository
    audit_repo: MySQLAuditRepository

    ledger: AccessLedger
    presence: PresenceResolver
    audit: AuditLogger
    checkin_service: CheckinService
    search_service: GuestSearchService
    stats_service: OccupancyStatsService


def build_container(*, db_config: dict, settings: Optional[Any] = None) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        pool_size=int(getattr(settings, "DB_POOL_SIZE", 5)),
    )
    retry_policy = RetryPolicy(max_retries=int(getattr(settings, "DB_READ_RETRIES", DEFAULT_READ_RETRIES)))
    conn = DatabaseConnection(config, retry_policy=retry_policy)

    guests_repo = MySQLGuestRepository(conn)
    accesses_repo = MySQLAccessRepository(conn)
    audit_repo = MySQLAuditRepository(conn)

    ledger = AccessLedger(accesses_repo, slow_write_ms=getattr(settings, "WRITE_SLOW_MS", WRITE_SLOW_MS))
    presence = PresenceResolver(accesses_repo)
    audit = AuditLogger(audit_repo)
    checkin_service = CheckinService(ledger, presence, guests_repo, audit)
    search_service = GuestSearchService(
        guests_repo,
        presence,
        slow_search_ms=getattr(settings, "SEARCH_SLOW_MS", SEARCH_SLOW_MS),
    )
    stats_service = OccupancyStatsService(guests_repo, presence, accesses_repo)

    return Container(
        conn=conn,
        guests_repo=guests_repo,
        accesses_repo=accesses_repo,
        audit_repo=audit_repo,
        ledger=ledger,
        presence=presence,
        audit=audit,
        checkin_service=checkin_service,
        search_service=search_service,
        stats_service=stats_service,
    )
