"""
Read-only access to the latest telemetry measurements.

The ingestion service owns the measurements database; this module only
queries it.
"""

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from rules_engine.utils.helpers import parse_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Measurement:
    """Single telemetry reading"""
    tenant_id: str
    device_id: str
    type: str
    value: float
    time: datetime


class MeasurementQueryTimeout(Exception):
    """Raised when a measurement query exceeds its deadline"""


class MeasurementReader:
    """Reads the most recent measurement for a rule scope"""

    # SQLite VM instructions between deadline checks
    _PROGRESS_STEPS = 1000

    def __init__(self, config: dict):
        """
        Initialize measurement reader.

        Args:
            config: Measurements configuration dict with 'sqlite_path' and
                'query_timeout' keys
        """
        self.db_path = config.get('sqlite_path', './data/ingest.db')
        self.query_timeout = float(config.get('query_timeout', 5))
        self._lock = threading.Lock()
        self._deadline: Optional[float] = None

        # Opened on first query so a missing ingest database does not block startup
        self.conn = None

        logger.info(f"Measurement reader using {self.db_path} (timeout: {self.query_timeout}s)")

    def _connect(self) -> sqlite3.Connection:
        if self.conn is None:
            uri = Path(self.db_path).resolve().as_uri() + '?mode=ro'
            self.conn = sqlite3.connect(
                uri,
                uri=True,
                timeout=self.query_timeout,
                check_same_thread=False,
            )
            self.conn.row_factory = sqlite3.Row
            self.conn.set_progress_handler(self._check_deadline, self._PROGRESS_STEPS)
            logger.debug(f"Opened measurements database {self.db_path}")
        return self.conn

    def _reset(self) -> None:
        """Drop the connection so the next query reconnects"""
        if self.conn is not None:
            try:
                self.conn.close()
            except sqlite3.Error as e:
                logger.debug(f"Ignoring error while dropping measurements connection: {e}")
            self.conn = None

    def _check_deadline(self) -> int:
        # A non-zero return aborts the running statement
        if self._deadline is not None and time.monotonic() > self._deadline:
            return 1
        return 0

    def get_latest(self, tenant_id: str, type: str,
                   device_id: Optional[str] = None) -> Optional[Measurement]:
        """
        Get the most recent measurement for a scope.

        Args:
            tenant_id: Tenant the measurement belongs to
            type: Metric type tag
            device_id: Restrict to this device, or any device when None

        Returns:
            Latest Measurement, or None if the scope has no data

        Raises:
            MeasurementQueryTimeout: If the query exceeds query_timeout
            sqlite3.Error: On any other database failure
        """
        sql = """
            SELECT tenant_id, device_id, type, value, time
            FROM measurements
            WHERE tenant_id = ? AND type = ?
        """
        params = [tenant_id, type]
        if device_id is not None:
            sql += " AND device_id = ?"
            params.append(device_id)
        sql += " ORDER BY time DESC LIMIT 1"

        with self._lock:
            self._deadline = time.monotonic() + self.query_timeout
            try:
                row = self._connect().execute(sql, params).fetchone()
            except sqlite3.OperationalError as e:
                if str(e) == 'interrupted':
                    raise MeasurementQueryTimeout(
                        f"Measurement query for {tenant_id}/{type} exceeded {self.query_timeout}s"
                    ) from e
                self._reset()
                raise
            except sqlite3.Error:
                self._reset()
                raise
            finally:
                self._deadline = None

        if row is None:
            logger.debug(f"No measurement for tenant={tenant_id} type={type} device={device_id or '*'}")
            return None

        return Measurement(
            tenant_id=row['tenant_id'],
            device_id=row['device_id'],
            type=row['type'],
            value=float(row['value']),
            time=parse_timestamp(row['time']),
        )

    def close(self) -> None:
        """Close database connection"""
        with self._lock:
            if self.conn:
                try:
                    self.conn.close()
                    logger.debug("Closed measurements connection")
                except sqlite3.Error as e:
                    logger.error(f"Error closing measurements connection: {e}")
                finally:
                    self.conn = None
