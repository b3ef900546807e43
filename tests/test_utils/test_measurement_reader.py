"""Tests for MeasurementReader"""

import sqlite3
from datetime import timedelta

import pytest

from rules_engine.utils.measurement_reader import MeasurementReader, MeasurementQueryTimeout

from conftest import TENANT_ID, OTHER_TENANT_ID, DEVICE_A, DEVICE_B


class TestMeasurementReader:
    """Test latest-value queries"""

    @pytest.fixture
    def reader(self, ingest_db):
        reader = MeasurementReader({'sqlite_path': ingest_db.path, 'query_timeout': 2})
        yield reader
        reader.close()

    def test_latest_for_device(self, reader, ingest_db, clock):
        """Test the newest reading for a device is returned"""
        ingest_db.add(21.0, clock(), device_id=DEVICE_A)
        ingest_db.add(23.5, clock.advance(10), device_id=DEVICE_A)
        ingest_db.add(40.0, clock.advance(10), device_id=DEVICE_B)

        latest = reader.get_latest(TENANT_ID, "temperature", DEVICE_A)

        assert latest.value == 23.5
        assert latest.device_id == DEVICE_A
        assert latest.tenant_id == TENANT_ID
        assert latest.time == clock() - timedelta(seconds=10)

    def test_latest_for_any_device(self, reader, ingest_db, clock):
        """Test tenant-wide query picks the newest across devices"""
        ingest_db.add(21.0, clock(), device_id=DEVICE_A)
        ingest_db.add(40.0, clock.advance(10), device_id=DEVICE_B)

        latest = reader.get_latest(TENANT_ID, "temperature")

        assert latest.device_id == DEVICE_B
        assert latest.time == clock()

    def test_no_data(self, reader, ingest_db, clock):
        """Test empty scope returns None"""
        ingest_db.add(21.0, clock(), tenant_id=OTHER_TENANT_ID)
        ingest_db.add(21.0, clock(), type="co2")

        assert reader.get_latest(TENANT_ID, "temperature") is None
        assert reader.get_latest(TENANT_ID, "temperature", DEVICE_A) is None

    def test_missing_database_is_transient(self, tmp_path, ingest_db, clock):
        """Test a missing database fails the query but not the reader"""
        reader = MeasurementReader({'sqlite_path': str(tmp_path / "later.db")})

        with pytest.raises(sqlite3.Error):
            reader.get_latest(TENANT_ID, "temperature")

        reader.db_path = ingest_db.path
        ingest_db.add(22.0, clock())
        assert reader.get_latest(TENANT_ID, "temperature").value == 22.0
        reader.close()

    def test_query_deadline(self, reader, ingest_db, clock):
        """Test queries past their deadline are interrupted"""
        ingest_db.add(22.0, clock())
        reader.query_timeout = -1
        reader._PROGRESS_STEPS = 1

        with pytest.raises(MeasurementQueryTimeout):
            reader.get_latest(TENANT_ID, "temperature")

    def test_read_only(self, reader, ingest_db, clock):
        """Test the reader cannot modify the ingestion database"""
        ingest_db.add(22.0, clock())
        reader.get_latest(TENANT_ID, "temperature")

        with pytest.raises(sqlite3.OperationalError):
            reader.conn.execute("DELETE FROM measurements")
