"""Tests for alert raising, suppression and notification"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from rules_engine.alerts.alert_manager import AlertManager
from rules_engine.alerts.alert_rule import AlertRule
from rules_engine.alerts.cooldown import CooldownGuard
from rules_engine.alerts.storage.sqlite_storage import SQLiteStorage
from rules_engine.utils.measurement_reader import Measurement

from conftest import TENANT_ID, DEVICE_A, DEVICE_B, RecordingChannel


def make_rule(**overrides):
    fields = dict(tenant_id=TENANT_ID, device_id=DEVICE_A, type="temperature", op=">", threshold=28.0)
    fields.update(overrides)
    return AlertRule(**fields)


def make_measurement(clock, value=29.0, device_id=DEVICE_A):
    return Measurement(tenant_id=TENANT_ID, device_id=device_id, type="temperature", value=value, time=clock())


class TestAlertManager:
    """Test AlertManager"""

    @pytest.fixture
    def storage(self, config):
        storage = SQLiteStorage(config['storage'])
        yield storage
        storage.close()

    def test_process_alert_stores_and_publishes(self, config, storage, clock):
        """Test a matched rule produces a stored and pushed alert"""
        channel = RecordingChannel()
        manager = AlertManager(config, storage, channel)
        rule = make_rule(message="Server room too hot")

        alert = manager.process_alert(rule, make_measurement(clock), clock())

        assert alert is not None
        assert alert.message == "Server room too hot"
        assert alert.tenant_id == TENANT_ID
        assert storage.list_alerts() == [alert]
        assert channel.published == [(TENANT_ID, alert)]

    def test_push_failure_keeps_alert(self, config, storage, clock, caplog):
        """Test a failing channel does not roll back the stored alert"""
        manager = AlertManager(config, storage, RecordingChannel(fail=True))

        alert = manager.process_alert(make_rule(), make_measurement(clock), clock())

        assert alert is not None
        assert storage.list_alerts() == [alert]
        assert "will remain stored" in caplog.text

    def test_store_only_without_channel(self, config, storage, clock):
        """Test alerts are stored when no channel is configured"""
        manager = AlertManager(config, storage, None)

        assert manager.process_alert(make_rule(), make_measurement(clock), clock()) is not None
        assert len(storage.list_alerts()) == 1

    def test_suppressed_within_cooldown(self, config, storage, clock):
        """Test second trigger inside cooldown is dropped"""
        channel = RecordingChannel()
        manager = AlertManager(config, storage, channel)
        rule = make_rule(cooldown_seconds=300)

        assert manager.process_alert(rule, make_measurement(clock), clock()) is not None
        clock.advance(120)
        assert manager.process_alert(rule, make_measurement(clock, 30.0), clock()) is None
        assert manager.process_alert(rule, make_measurement(clock, 30.0, DEVICE_B), clock()) is not None

        assert len(channel.published) == 2

    def test_lost_race_is_suppressed(self, config, clock):
        """Test the conditional insert wins over a stale cooldown check"""
        storage = MagicMock()
        storage.has_recent_alert.return_value = False
        storage.insert_alert_if_quiet.return_value = False
        channel = RecordingChannel()
        metrics = MagicMock()
        manager = AlertManager(config, storage, channel, metrics)

        assert manager.process_alert(make_rule(), make_measurement(clock), clock()) is None
        assert channel.published == []
        metrics.record_suppressed.assert_called_once()
        metrics.record_alert.assert_not_called()

    def test_severity_from_config(self, config, storage, clock):
        """Test configured default severity"""
        config['evaluation']['severity'] = 'critical'
        manager = AlertManager(config, storage)

        alert = manager.process_alert(make_rule(), make_measurement(clock), clock())
        assert alert.severity == 'critical'


class TestTenantSlug:
    """Test tenant slug resolution for notifications"""

    def test_rule_slug_wins(self, config):
        config['tenants']['slugs'] = {TENANT_ID: 'configured'}
        manager = AlertManager(config, MagicMock())
        assert manager.tenant_slug(make_rule(tenant_slug='innovia')) == 'innovia'

    def test_configured_slug(self, config):
        config['tenants']['slugs'] = {TENANT_ID: 'configured'}
        manager = AlertManager(config, MagicMock())
        assert manager.tenant_slug(make_rule()) == 'configured'

    def test_falls_back_to_tenant_id(self, config):
        manager = AlertManager(config, MagicMock())
        assert manager.tenant_slug(make_rule()) == TENANT_ID

    def test_published_under_rule_tenant(self, config, clock):
        """Test each alert is pushed under its own tenant's slug"""
        storage = MagicMock()
        storage.has_recent_alert.return_value = False
        storage.insert_alert_if_quiet.return_value = True
        channel = RecordingChannel()
        manager = AlertManager(config, storage, channel)

        manager.process_alert(make_rule(tenant_slug='acme'), make_measurement(clock), clock())
        manager.process_alert(make_rule(tenant_slug='globex'), make_measurement(clock), clock())

        assert [slug for slug, _ in channel.published] == ['acme', 'globex']


class TestCooldownGuard:
    """Test CooldownGuard"""

    def test_window_start(self, clock):
        rule = make_rule(cooldown_seconds=90)
        assert CooldownGuard.window_start(rule, clock()) == clock() - timedelta(seconds=90)

    def test_window_start_clamps_on_overflow(self, clock):
        """Test a window reaching before year 1 starts at the earliest date"""
        rule = make_rule()
        rule.cooldown_seconds = 10 ** 11
        assert CooldownGuard.window_start(rule, clock()) == datetime.min.replace(tzinfo=timezone.utc)

    def test_derives_answer_from_store(self, clock):
        storage = MagicMock()
        storage.has_recent_alert.return_value = True
        guard = CooldownGuard(storage)
        rule = make_rule(cooldown_seconds=300)

        assert guard.is_suppressed(rule, DEVICE_A, clock()) is True
        storage.has_recent_alert.assert_called_once_with(
            rule.id, DEVICE_A, clock() - timedelta(seconds=300)
        )
