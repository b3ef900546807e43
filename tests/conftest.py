"""Shared fixtures for rules engine tests"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from rules_engine.alerts.channels.base_channel import BaseChannel
from rules_engine.config.settings import get_default_config
from rules_engine.utils.helpers import to_timestamp

TENANT_ID = "3f1c2b9e-7d4a-4c1e-9a57-0b6f2d8e5a11"
OTHER_TENANT_ID = "9b2d4f6a-8c0e-4a1b-b3d5-e7f9a1c3e5b7"
DEVICE_A = "a6e4f0d2-1b3c-4e5f-8a9b-0c1d2e3f4a5b"
DEVICE_B = "b7f5a1e3-2c4d-4f6a-9b0c-1d2e3f4a5b6c"


class FakeClock:
    """Controllable UTC clock"""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)
        return self.now


class IngestDatabase:
    """Writable stand-in for the ingestion service's measurements table"""

    def __init__(self, path):
        self.path = str(path)
        conn = sqlite3.connect(self.path)
        conn.execute("""
            CREATE TABLE measurements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                time TIMESTAMP NOT NULL,
                tenant_id VARCHAR(36) NOT NULL,
                device_id VARCHAR(36) NOT NULL,
                type VARCHAR(255) NOT NULL,
                value REAL NOT NULL
            )
        """)
        conn.commit()
        conn.close()

    def add(self, value, time, device_id=DEVICE_A, type="temperature", tenant_id=TENANT_ID):
        conn = sqlite3.connect(self.path)
        conn.execute(
            "INSERT INTO measurements (time, tenant_id, device_id, type, value) VALUES (?, ?, ?, ?, ?)",
            (to_timestamp(time), tenant_id, device_id, type, value),
        )
        conn.commit()
        conn.close()


class RecordingChannel(BaseChannel):
    """Channel that remembers what it was asked to publish"""

    def __init__(self, fail=False):
        self.fail = fail
        self.published = []

    def publish_alert(self, tenant_slug, alert):
        if self.fail:
            raise ConnectionError("hub unavailable")
        self.published.append((tenant_slug, alert))
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ingest_db(tmp_path):
    return IngestDatabase(tmp_path / "ingest.db")


@pytest.fixture
def config(tmp_path, ingest_db):
    """Default configuration pointed at temporary databases"""
    config = get_default_config()
    config['storage']['sqlite_path'] = str(tmp_path / "rules.db")
    config['measurements']['sqlite_path'] = ingest_db.path
    config['measurements']['query_timeout'] = 2
    config['realtime']['enabled'] = False
    config['evaluation']['interval_seconds'] = 0.05
    return config
