"""
Base storage interfaces for rules and alert history.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from rules_engine.alerts.alert_rule import AlertRule
from rules_engine.utils.helpers import new_id, to_timestamp, parse_timestamp

DEFAULT_SEVERITY = 'warning'

# Upper bound on alerts returned by a single listing
MAX_ALERTS = 200


@dataclass(frozen=True)
class Alert:
    """Immutable record of a rule firing"""
    rule_id: str
    tenant_id: str
    device_id: str
    type: str
    value: float
    time: datetime
    message: str
    severity: str = DEFAULT_SEVERITY
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict:
        """Convert to API representation"""
        return {
            'id': self.id,
            'ruleId': self.rule_id,
            'tenantId': self.tenant_id,
            'deviceId': self.device_id,
            'type': self.type,
            'value': self.value,
            'time': to_timestamp(self.time),
            'severity': self.severity,
            'message': self.message,
        }

    def to_row(self) -> Dict:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'rule_id': self.rule_id,
            'tenant_id': self.tenant_id,
            'device_id': self.device_id,
            'type': self.type,
            'value': self.value,
            'time': to_timestamp(self.time),
            'severity': self.severity,
            'message': self.message,
        }

    @classmethod
    def from_row(cls, data: Dict) -> 'Alert':
        """Create Alert from a storage row"""
        return cls(
            id=data['id'],
            rule_id=data['rule_id'],
            tenant_id=data['tenant_id'],
            device_id=data['device_id'],
            type=data['type'],
            value=data['value'],
            time=parse_timestamp(data['time']),
            severity=data['severity'],
            message=data['message'],
        )


class BaseRuleStorage(ABC):
    """Abstract base class for rule definition storage"""

    @abstractmethod
    def create_rule(self, rule: AlertRule) -> AlertRule:
        """
        Persist a new rule.

        Args:
            rule: Validated rule to store

        Returns:
            The stored rule
        """
        pass

    @abstractmethod
    def get_rule(self, rule_id: str) -> Optional[AlertRule]:
        """Retrieve rule by ID, or None if not found"""
        pass

    @abstractmethod
    def list_rules(self, enabled: Optional[bool] = None,
                   tenant_id: Optional[str] = None) -> List[AlertRule]:
        """
        List rules, newest first.

        Args:
            enabled: Only rules with this enabled flag, if given
            tenant_id: Only rules for this tenant, if given
        """
        pass

    @abstractmethod
    def update_rule(self, rule_id: str, **fields) -> Optional[AlertRule]:
        """
        Update rule fields.

        Args:
            rule_id: Rule identifier
            **fields: AlertRule attributes to replace

        Returns:
            Updated rule, or None if not found

        Raises:
            ValueError: If the resulting rule is invalid
        """
        pass

    @abstractmethod
    def set_rule_enabled(self, rule_id: str, enabled: bool) -> Optional[AlertRule]:
        """Enable or disable a rule. Returns None if not found."""
        pass

    @abstractmethod
    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule. Alerts it raised are kept."""
        pass


class BaseAlertStorage(ABC):
    """Abstract base class for alert history storage"""

    @abstractmethod
    def insert_alert(self, alert: Alert) -> Alert:
        """Save a new alert"""
        pass

    @abstractmethod
    def insert_alert_if_quiet(self, alert: Alert, since: datetime) -> bool:
        """
        Save alert unless the same rule and device already alerted after `since`.

        The existence check and the insert must be a single atomic operation.

        Returns:
            True if the alert was stored, False if it was suppressed
        """
        pass

    @abstractmethod
    def has_recent_alert(self, rule_id: str, device_id: str, since: datetime) -> bool:
        """Check whether rule and device alerted after `since`"""
        pass

    @abstractmethod
    def list_alerts(self, tenant_id: Optional[str] = None,
                    device_id: Optional[str] = None,
                    type: Optional[str] = None,
                    start: Optional[datetime] = None,
                    end: Optional[datetime] = None,
                    limit: int = MAX_ALERTS) -> List[Alert]:
        """
        List alerts newest first.

        Args:
            tenant_id: Filter by tenant
            device_id: Filter by device
            type: Filter by metric type
            start: Only alerts at or after this time
            end: Only alerts at or before this time
            limit: Maximum results, capped at MAX_ALERTS
        """
        pass

    @abstractmethod
    def delete_alert(self, alert_id: str) -> bool:
        """Delete one alert. Returns False if not found."""
        pass

    @abstractmethod
    def delete_alerts(self, alert_ids: Iterable[str]) -> int:
        """
        Delete a batch of alerts.

        Raises:
            ValueError: If alert_ids is empty or contains malformed ids

        Returns:
            Number of alerts deleted
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection and cleanup resources"""
        pass
