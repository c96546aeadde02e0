from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from ..core.enums import DeviceType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEvent:
    operation_type: str
    description: str
    user_id: Optional[int] = None
    stadium_id: Optional[int] = None
    table_affected: Optional[str] = None
    record_id: Optional[int] = None
    device_type: Optional[DeviceType] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class AuditRepository(Protocol):
    def write(self, event: AuditEvent) -> None:
        raise NotImplementedError


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def write(self, event: AuditEvent) -> None:
        with transaction(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO system_logs(
                    stadium_id, user_id, operation_type, operation_description,
                    table_affected, record_id, device_type, request_data, timestamp
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,NOW())
                """,
                (
                    event.stadium_id,
                    event.user_id,
                    event.operation_type,
                    event.description,
                    event.table_affected,
                    event.record_id,
                    event.device_type.value if event.device_type else None,
                    json.dumps(event.metadata, default=str),
                ),
            )


def detect_device_type(user_agent: Optional[str]) -> DeviceType:
    ua = (user_agent or "").lower()
    if "mobile" in ua or "android" in ua or "iphone" in ua:
        return DeviceType.MOBILE
    if "hospitality-pwa" in ua:
        return DeviceType.PWA
    return DeviceType.WEB


class AuditLogger:
    """Best-effort audit trail: a failed write is logged, never raised."""

    def __init__(self, repo: AuditRepository):
        self._repo = repo

    def record(self, event: AuditEvent) -> bool:
        try:
            self._repo.write(event)
            return True
        except Exception:
            logger.exception(
                "Failed to write audit log (operation=%s, user_id=%s, stadium_id=%s, record_id=%s)",
                event.operation_type,
                event.user_id,
                event.stadium_id,
                event.record_id,
            )
            return False
