"""
SQLite storage backend for rules and alert history.
"""

import sqlite3
import logging
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from pathlib import Path

from rules_engine.alerts.alert_rule import AlertRule
from rules_engine.alerts.storage.base_storage import (
    BaseRuleStorage, BaseAlertStorage, Alert, MAX_ALERTS,
)
from rules_engine.utils.helpers import is_uuid, utc_now, to_timestamp

logger = logging.getLogger(__name__)

RULE_COLUMNS = (
    'id', 'tenant_id', 'tenant_slug', 'device_id', 'type', 'op', 'threshold',
    'cooldown_seconds', 'enabled', 'message', 'created_at', 'updated_at',
)

ALERT_COLUMNS = (
    'id', 'rule_id', 'tenant_id', 'device_id', 'type', 'value', 'time',
    'severity', 'message',
)

# Rule attributes an update may replace
UPDATABLE_RULE_FIELDS = frozenset({
    'device_id', 'type', 'op', 'threshold', 'cooldown_seconds', 'enabled',
    'message', 'tenant_slug',
})

# Stay well below SQLite's bound-parameter limit
DELETE_CHUNK_SIZE = 500


class SQLiteStorage(BaseRuleStorage, BaseAlertStorage):
    """SQLite implementation of rule and alert storage"""

    def __init__(self, config: Dict):
        """
        Initialize SQLite storage.

        Args:
            config: Storage configuration dict with 'sqlite_path' key
        """
        self.db_path = config.get('sqlite_path', './data/rules.db')

        # Ensure directory exists
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # API request threads and the evaluation thread share one connection
        self._lock = threading.RLock()

        # Initialize database
        self.conn = None
        self._init_db()

        logger.info(f"Initialized SQLite storage at {self.db_path}")

    def _init_db(self):
        """Create database tables and indexes"""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self.conn.execute("PRAGMA journal_mode=WAL")

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS rules (
                id VARCHAR(36) PRIMARY KEY,
                tenant_id VARCHAR(36) NOT NULL,
                tenant_slug VARCHAR(255),
                device_id VARCHAR(36),
                type VARCHAR(255) NOT NULL,
                op VARCHAR(2) NOT NULL,
                threshold REAL NOT NULL,
                cooldown_seconds INTEGER NOT NULL DEFAULT 300,
                enabled INTEGER NOT NULL DEFAULT 1,
                message TEXT,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP
            )
        """)

        # No foreign key to rules: alerts outlive the rule that raised them
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS alerts (
                id VARCHAR(36) PRIMARY KEY,
                rule_id VARCHAR(36) NOT NULL,
                tenant_id VARCHAR(36) NOT NULL,
                device_id VARCHAR(36) NOT NULL,
                type VARCHAR(255) NOT NULL,
                value REAL NOT NULL,
                time TIMESTAMP NOT NULL,
                severity VARCHAR(20) NOT NULL,
                message TEXT NOT NULL
            )
        """)

        # Create indexes
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_rules_scope "
            "ON rules(tenant_id, device_id, type, enabled)"
        )
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_alerts_scope "
            "ON alerts(tenant_id, device_id, type, time)"
        )
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_alerts_cooldown "
            "ON alerts(rule_id, device_id, time)"
        )

        self.conn.commit()

    def _write(self, sql: str, params, action: str) -> int:
        """Execute a write statement and return the affected row count"""
        with self._lock:
            try:
                cursor = self.conn.execute(sql, params)
                self.conn.commit()
                return cursor.rowcount
            except sqlite3.Error as e:
                logger.error(f"Failed to {action}: {e}")
                self.conn.rollback()
                raise

    def _read(self, sql: str, params, action: str) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.error(f"Failed to {action}: {e}")
                raise

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def create_rule(self, rule: AlertRule) -> AlertRule:
        """Save a new rule"""
        data = rule.to_row()
        placeholders = ', '.join('?' for _ in RULE_COLUMNS)
        self._write(
            f"INSERT INTO rules ({', '.join(RULE_COLUMNS)}) VALUES ({placeholders})",
            [data[c] for c in RULE_COLUMNS],
            f"save rule {rule.id}",
        )
        logger.debug(f"Saved rule: {rule.id}")
        return rule

    def get_rule(self, rule_id: str) -> Optional[AlertRule]:
        """Retrieve rule by ID"""
        rows = self._read("SELECT * FROM rules WHERE id = ?", (rule_id,), f"get rule {rule_id}")
        if rows:
            return AlertRule.from_row(dict(rows[0]))
        return None

    def list_rules(self, enabled: Optional[bool] = None,
                   tenant_id: Optional[str] = None) -> List[AlertRule]:
        """List rules newest first"""
        clauses = []
        params = []
        if enabled is not None:
            clauses.append("enabled = ?")
            params.append(1 if enabled else 0)
        if tenant_id is not None:
            clauses.append("tenant_id = ?")
            params.append(tenant_id)

        sql = "SELECT * FROM rules"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC"

        rows = self._read(sql, params, "list rules")
        return [AlertRule.from_row(dict(row)) for row in rows]

    def update_rule(self, rule_id: str, **fields) -> Optional[AlertRule]:
        """Replace rule fields and stamp updated_at"""
        unknown = set(fields) - UPDATABLE_RULE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update rule fields: {sorted(unknown)}")

        with self._lock:
            rule = self.get_rule(rule_id)
            if rule is None:
                return None

            updated = rule.with_changes(**fields, updated_at=utc_now())
            data = updated.to_row()
            columns = [c for c in RULE_COLUMNS if c not in ('id', 'tenant_id', 'created_at')]
            assignments = ', '.join(f"{c} = ?" for c in columns)
            self._write(
                f"UPDATE rules SET {assignments} WHERE id = ?",
                [data[c] for c in columns] + [rule_id],
                f"update rule {rule_id}",
            )

        logger.debug(f"Updated rule: {rule_id}")
        return updated

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> Optional[AlertRule]:
        """Toggle rule evaluation"""
        rule = self.update_rule(rule_id, enabled=bool(enabled))
        if rule is not None:
            logger.info(f"Rule {rule_id} {'enabled' if rule.enabled else 'disabled'}")
        return rule

    def delete_rule(self, rule_id: str) -> bool:
        """Delete rule, keeping its alerts"""
        deleted = self._write("DELETE FROM rules WHERE id = ?", (rule_id,), f"delete rule {rule_id}")
        return deleted > 0

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def insert_alert(self, alert: Alert) -> Alert:
        """Save a new alert"""
        data = alert.to_row()
        placeholders = ', '.join('?' for _ in ALERT_COLUMNS)
        self._write(
            f"INSERT INTO alerts ({', '.join(ALERT_COLUMNS)}) VALUES ({placeholders})",
            [data[c] for c in ALERT_COLUMNS],
            f"save alert {alert.id}",
        )
        logger.debug(f"Saved alert: {alert.id}")
        return alert

    def insert_alert_if_quiet(self, alert: Alert, since: datetime) -> bool:
        """Conditional insert; SQLite serializes writers so the check cannot race"""
        # Open window (time > since), not >=: a trigger exactly one cooldown after
        # the last alert fires instead of being suppressed
        data = alert.to_row()
        placeholders = ', '.join('?' for _ in ALERT_COLUMNS)
        inserted = self._write(
            f"""
            INSERT INTO alerts ({', '.join(ALERT_COLUMNS)})
            SELECT {placeholders}
            WHERE NOT EXISTS (
                SELECT 1 FROM alerts
                WHERE rule_id = ? AND device_id = ? AND time > ?
            )
            """,
            [data[c] for c in ALERT_COLUMNS] + [alert.rule_id, alert.device_id, to_timestamp(since)],
            f"save alert {alert.id}",
        )
        if inserted:
            logger.debug(f"Saved alert: {alert.id}")
        return inserted > 0

    def has_recent_alert(self, rule_id: str, device_id: str, since: datetime) -> bool:
        """Existence check used for cooldown suppression"""
        # Same open window as insert_alert_if_quiet
        rows = self._read(
            """
            SELECT 1 FROM alerts
            WHERE rule_id = ? AND device_id = ? AND time > ?
            LIMIT 1
            """,
            (rule_id, device_id, to_timestamp(since)),
            f"check recent alerts for rule {rule_id}",
        )
        return bool(rows)

    def list_alerts(self, tenant_id: Optional[str] = None,
                    device_id: Optional[str] = None,
                    type: Optional[str] = None,
                    start: Optional[datetime] = None,
                    end: Optional[datetime] = None,
                    limit: int = MAX_ALERTS) -> List[Alert]:
        """List alerts newest first"""
        clauses = []
        params = []
        if tenant_id:
            clauses.append("tenant_id = ?")
            params.append(tenant_id)
        if device_id:
            clauses.append("device_id = ?")
            params.append(device_id)
        if type:
            clauses.append("type = ?")
            params.append(type)
        if start is not None:
            clauses.append("time >= ?")
            params.append(to_timestamp(start))
        if end is not None:
            clauses.append("time <= ?")
            params.append(to_timestamp(end))

        sql = "SELECT * FROM alerts"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY time DESC LIMIT ?"
        params.append(max(0, min(limit, MAX_ALERTS)))

        rows = self._read(sql, params, "list alerts")
        return [Alert.from_row(dict(row)) for row in rows]

    def delete_alert(self, alert_id: str) -> bool:
        """Delete one alert"""
        deleted = self._write("DELETE FROM alerts WHERE id = ?", (alert_id,), f"delete alert {alert_id}")
        return deleted > 0

    def delete_alerts(self, alert_ids: Iterable[str]) -> int:
        """Delete a batch of alerts, ignoring ids that do not exist"""
        if isinstance(alert_ids, (str, bytes)):
            raise ValueError("Invalid IDs format")
        ids = list(dict.fromkeys(alert_ids))
        if not ids:
            raise ValueError("No IDs provided")
        malformed = [i for i in ids if not is_uuid(i)]
        if malformed:
            raise ValueError(f"Invalid IDs format: {malformed[:5]}")

        deleted = 0
        with self._lock:
            try:
                for offset in range(0, len(ids), DELETE_CHUNK_SIZE):
                    chunk = ids[offset:offset + DELETE_CHUNK_SIZE]
                    placeholders = ', '.join('?' for _ in chunk)
                    cursor = self.conn.execute(
                        f"DELETE FROM alerts WHERE id IN ({placeholders})", chunk
                    )
                    deleted += cursor.rowcount
                self.conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to delete alerts: {e}")
                self.conn.rollback()
                raise

        logger.info(f"Deleted {deleted} of {len(ids)} requested alerts")
        return deleted

    def close(self) -> None:
        """Close database connection"""
        if self.conn:
            try:
                self.conn.close()
                logger.debug("Closed SQLite connection")
            except sqlite3.Error as e:
                logger.error(f"Error closing SQLite connection: {e}")
