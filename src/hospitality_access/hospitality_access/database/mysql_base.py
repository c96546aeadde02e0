from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..core.exceptions import UnavailableError
from .connection import TRANSIENT_ERRORS, DatabaseConnection

T = TypeVar("T")


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def transaction(conn_factory: DatabaseConnection):
    """Single write transaction, never retried.

    Connectivity failures surface as ``UnavailableError``; the caller must
    re-validate state from scratch before trying again.
    """
    try:
        conn = conn_factory.connect()
    except TRANSIENT_ERRORS as e:
        raise UnavailableError("Database unavailable, please retry later") from e

    try:
        conn.start_transaction()
        cur = conn.cursor(dictionary=True)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except TRANSIENT_ERRORS as e:
        _safe_rollback(conn)
        raise UnavailableError("Database connection lost during write") from e
    except Exception:
        _safe_rollback(conn)
        raise
    finally:
        conn.close()


def _safe_rollback(conn) -> None:
    try:
        conn.rollback()
    except TRANSIENT_ERRORS:
        # The server already discarded the transaction with the connection.
        pass


def run_read(conn_factory: DatabaseConnection, work: Callable[[Any], T], *, description: str = "query") -> T:
    """Run a read-only unit of work with the connection's retry policy."""

    def once() -> T:
        with db_cursor(conn_factory) as (_, cur):
            return work(cur)

    return conn_factory.retry_policy.run(once, description=description)


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def in_clause(values: Sequence[Any]) -> Tuple[str, Tuple[Any, ...]]:
    """Placeholders and params for ``IN (...)``."""
    if not values:
        raise ValueError("in_clause() needs at least one value")
    return ", ".join(["%s"] * len(values)), tuple(values)


def chunked(values: Iterable[T], size: int) -> Iterable[List[T]]:
    buf: List[T] = []
    for v in values:
        buf.append(v)
        if len(buf) >= size:
            yield buf
            buf = []
    if buf:
        yield buf


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
