"""
Cooldown suppression for repeated alerts.
"""

import logging
from datetime import datetime, timedelta, timezone

from rules_engine.alerts.alert_rule import AlertRule
from rules_engine.alerts.storage.base_storage import BaseAlertStorage

logger = logging.getLogger(__name__)


class CooldownGuard:
    """
    Answers whether a rule already fired for a device within its cooldown.

    The guard keeps no state of its own. Every answer is derived from the
    alert store, so cooldowns survive a process restart.
    """

    def __init__(self, storage: BaseAlertStorage):
        self.storage = storage

    @staticmethod
    def window_start(rule: AlertRule, now: datetime) -> datetime:
        """Alerts strictly after this time still suppress a new alert"""
        try:
            return now - timedelta(seconds=rule.cooldown_seconds)
        except OverflowError:
            return datetime.min.replace(tzinfo=timezone.utc)

    def is_suppressed(self, rule: AlertRule, device_id: str, now: datetime) -> bool:
        """
        Check for an alert from this rule and device inside the window.

        Args:
            rule: Rule that matched
            device_id: Device the triggering measurement came from
            now: Evaluation time

        Returns:
            True if a new alert must be dropped
        """
        suppressed = self.storage.has_recent_alert(rule.id, device_id, self.window_start(rule, now))
        if suppressed:
            logger.debug(f"Rule {rule.id} on device {device_id} is cooling down ({rule.cooldown_seconds}s)")
        return suppressed
