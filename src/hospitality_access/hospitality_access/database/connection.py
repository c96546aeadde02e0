from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from mysql.connector import errors as mysql_errors
from mysql.connector import pooling

from ..core.constants import DEFAULT_READ_RETRIES, DEFAULT_RETRY_BACKOFF_SECONDS
from ..core.exceptions import UnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors raised by the connector when the server is unreachable or the
# connection dropped mid-query. Everything else is a real query error.
TRANSIENT_ERRORS = (
    mysql_errors.OperationalError,
    mysql_errors.InterfaceError,
    mysql_errors.PoolError,
)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    pool_name: str = "hospitality"
    pool_size: int = 5
    connect_timeout: int = 10


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry for read operations against the backing store."""

    max_retries: int = DEFAULT_READ_RETRIES
    backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    def run(self, operation: Callable[[], T], *, description: str = "query") -> T:
        attempt = 0
        while True:
            try:
                return operation()
            except TRANSIENT_ERRORS as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error("%s failed after %d attempts: %s", description, attempt, e)
                    raise UnavailableError("Database unavailable, please retry later") from e
                logger.warning("%s hit a connectivity error (retry %d/%d): %s", description, attempt, self.max_retries, e)
                if self.backoff_seconds:
                    time.sleep(self.backoff_seconds * attempt)


class DatabaseConnection:
    """Pooled DB connection factory.

    Injected into repositories; the pool itself is created lazily on the
    first ``connect()`` so building the container never touches the server.
    """

    def __init__(self, config: DBConfig, *, retry_policy: Optional[RetryPolicy] = None):
        self._config = config
        self._retry_policy = retry_policy or RetryPolicy()
        self._pool: Optional[pooling.MySQLConnectionPool] = None
        self._lock = threading.Lock()

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    def _get_pool(self) -> pooling.MySQLConnectionPool:
        if self._pool is None:
            with self._lock:
                if self._pool is None:
                    self._pool = pooling.MySQLConnectionPool(
                        pool_name=self._config.pool_name,
                        pool_size=int(self._config.pool_size),
                        host=self._config.host,
                        port=int(self._config.port),
                        user=self._config.user,
                        password=self._config.password,
                        database=self._config.database,
                        connection_timeout=int(self._config.connect_timeout),
                        autocommit=False,
                    )
                    logger.info(
                        "Database pool ready (%s@%s:%s/%s, size=%s)",
                        self._config.user,
                        self._config.host,
                        self._config.port,
                        self._config.database,
                        self._config.pool_size,
                    )
        return self._pool

    def connect(self):
        return self._get_pool().get_connection()
