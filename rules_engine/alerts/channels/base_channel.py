"""
Base notification channel interface.
"""

from abc import ABC, abstractmethod
from typing import Dict
import logging

from rules_engine.alerts.storage.base_storage import Alert
from rules_engine.utils.helpers import to_timestamp

logger = logging.getLogger(__name__)


class BaseChannel(ABC):
    """Abstract base class for live alert push channels"""

    def connect(self) -> bool:
        """
        Establish connectivity once at startup.

        Returns:
            True if the channel looks reachable
        """
        return True

    @abstractmethod
    def publish_alert(self, tenant_slug: str, alert: Alert) -> bool:
        """
        Push an alert to live subscribers of a tenant.

        Delivery is best-effort; callers must not depend on it.

        Args:
            tenant_slug: Human readable tenant identifier subscribers group by
            alert: Stored alert to publish

        Returns:
            True if notification sent successfully, False otherwise
        """
        pass

    def format_payload(self, tenant_slug: str, alert: Alert) -> Dict:
        """
        Build the notification payload.

        Args:
            tenant_slug: Owning tenant's slug
            alert: Alert being published

        Returns:
            Dict with the alert fields plus 'tenantSlug'
        """
        return {
            'tenantSlug': tenant_slug,
            'deviceId': alert.device_id,
            'type': alert.type,
            'value': alert.value,
            'time': to_timestamp(alert.time),
            'ruleId': alert.rule_id,
            'severity': alert.severity,
            'message': alert.message,
        }

    def close(self) -> None:
        """Release channel resources"""
        pass
