"""
Alert manager for cooldown suppression, persistence and live notification.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from rules_engine.alerts.alert_rule import AlertRule
from rules_engine.alerts.channels.base_channel import BaseChannel
from rules_engine.alerts.cooldown import CooldownGuard
from rules_engine.alerts.storage.base_storage import BaseAlertStorage, Alert, DEFAULT_SEVERITY
from rules_engine.utils.measurement_reader import Measurement

logger = logging.getLogger(__name__)


class AlertManager:
    """Turns rule matches into stored, published alerts"""

    def __init__(self, config: Dict, storage: BaseAlertStorage,
                 channel: Optional[BaseChannel] = None, metrics=None):
        """
        Initialize alert manager.

        Args:
            config: Full service configuration dict
            storage: Alert storage backend
            channel: Live push channel, or None to store only
            metrics: PrometheusExporter for engine counters
        """
        self.storage = storage
        self.channel = channel
        self.metrics = metrics
        self.cooldown = CooldownGuard(storage)
        self.severity = config.get('evaluation', {}).get('severity', DEFAULT_SEVERITY)
        self.tenant_slugs = dict(config.get('tenants', {}).get('slugs') or {})

        if channel is None:
            logger.warning("No notification channel configured; alerts will only be stored")

        logger.info("Alert manager initialized")

    def tenant_slug(self, rule: AlertRule) -> str:
        """Slug live subscribers of the rule's tenant are grouped under"""
        return rule.tenant_slug or self.tenant_slugs.get(rule.tenant_id) or rule.tenant_id

    def process_alert(self, rule: AlertRule, measurement: Measurement,
                      now: datetime) -> Optional[Alert]:
        """
        Handle a rule whose condition is met.

        Suppressed triggers are dropped, not deferred.

        Args:
            rule: Rule that matched
            measurement: Measurement that satisfied the rule
            now: Evaluation time, used as the alert time

        Returns:
            The stored Alert, or None if suppressed by cooldown
        """
        if self.cooldown.is_suppressed(rule, measurement.device_id, now):
            self._record_suppressed(rule, measurement)
            return None

        alert = Alert(
            rule_id=rule.id,
            tenant_id=rule.tenant_id,
            device_id=measurement.device_id,
            type=rule.type,
            value=measurement.value,
            time=now,
            severity=self.severity,
            message=rule.alert_message(measurement.value),
        )

        # Another evaluator may have stored one since the check above
        if not self.storage.insert_alert_if_quiet(alert, self.cooldown.window_start(rule, now)):
            self._record_suppressed(rule, measurement)
            return None

        slug = self.tenant_slug(rule)
        logger.info(
            f"Alert raised: rule={rule.id} tenant={slug} device={alert.device_id} "
            f"{rule.type}={measurement.value} ({rule.op.value} {rule.threshold})"
        )
        if self.metrics:
            self.metrics.record_alert(slug)

        self._send_notification(slug, alert)
        return alert

    def _record_suppressed(self, rule: AlertRule, measurement: Measurement) -> None:
        logger.debug(f"Suppressed alert for rule {rule.id} on device {measurement.device_id}")
        if self.metrics:
            self.metrics.record_suppressed()

    def _send_notification(self, tenant_slug: str, alert: Alert) -> None:
        """
        Push alert to live subscribers.

        Failure never rolls back the stored alert and is not retried.
        """
        if self.channel is None:
            return

        try:
            sent = self.channel.publish_alert(tenant_slug, alert)
        except Exception as e:
            logger.warning(f"Error pushing alert {alert.id} (will remain stored): {e}", exc_info=True)
            sent = False

        if not sent and self.metrics:
            self.metrics.record_push_failure()

    def shutdown(self) -> None:
        """Shutdown alert manager and cleanup resources"""
        logger.info("Shutting down alert manager")

        if self.channel:
            self.channel.close()
