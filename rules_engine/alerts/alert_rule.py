"""
Alert rule data structures and condition evaluation.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Union

from rules_engine.utils.helpers import is_uuid, new_id, utc_now, to_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 300

# Ten years; keeps the window start and the stored INTEGER in range
MAX_COOLDOWN_SECONDS = 10 * 365 * 24 * 3600

# Tolerance for floating point equality
EPSILON = 1e-9


class Comparator(str, Enum):
    """Threshold comparison operators"""
    GT = '>'
    GTE = '>='
    LT = '<'
    LTE = '<='
    EQ = '=='
    NE = '!='

    @classmethod
    def parse(cls, value: Union[str, 'Comparator']) -> 'Comparator':
        """
        Parse operator symbol.

        Raises:
            ValueError: If value is not one of the recognized symbols
        """
        try:
            return cls(value)
        except ValueError:
            valid = [c.value for c in cls]
            raise ValueError(f"Invalid operator: {value}. Must be one of {valid}") from None

    def matches(self, value: float, threshold: float) -> bool:
        return _OPERATORS[self](value, threshold)


_OPERATORS = {
    Comparator.GT: lambda v, t: v > t,
    Comparator.GTE: lambda v, t: v >= t,
    Comparator.LT: lambda v, t: v < t,
    Comparator.LTE: lambda v, t: v <= t,
    Comparator.EQ: lambda v, t: abs(v - t) < EPSILON,
    Comparator.NE: lambda v, t: abs(v - t) >= EPSILON,
}


def evaluate_condition(op: Union[str, Comparator], value: float, threshold: float) -> bool:
    """
    Evaluate a threshold condition.

    Unrecognized operators never match.

    Args:
        op: Comparator or operator symbol
        value: Measured value
        threshold: Rule threshold

    Returns:
        True if condition is met, False otherwise
    """
    try:
        comparator = Comparator.parse(op)
    except ValueError:
        logger.error(f"Unknown operator: {op}")
        return False
    return comparator.matches(value, threshold)


def format_number(value: float) -> str:
    """Render whole numbers without a trailing .0"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass
class AlertRule:
    """Threshold rule scoped to a tenant and optionally a single device"""
    tenant_id: str
    type: str
    op: Comparator
    threshold: float
    device_id: Optional[str] = None
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS
    enabled: bool = True
    message: Optional[str] = None
    tenant_slug: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate rule configuration"""
        self.op = Comparator.parse(self.op)

        if not is_uuid(self.tenant_id):
            raise ValueError(f"Invalid tenant_id: {self.tenant_id}")

        if self.device_id is not None and not is_uuid(self.device_id):
            raise ValueError(f"Invalid device_id: {self.device_id}")

        if not self.type:
            raise ValueError("Metric type must not be empty")

        self.threshold = float(self.threshold)

        if self.cooldown_seconds is None:
            self.cooldown_seconds = DEFAULT_COOLDOWN_SECONDS
        if not 0 <= self.cooldown_seconds <= MAX_COOLDOWN_SECONDS:
            raise ValueError(
                f"cooldown_seconds must be between 0 and {MAX_COOLDOWN_SECONDS}, got {self.cooldown_seconds}"
            )

    def matches(self, value: float) -> bool:
        """Check whether a measured value satisfies this rule"""
        return evaluate_condition(self.op, value, self.threshold)

    def alert_message(self, value: float) -> str:
        """Custom message, or a generated description of the hit"""
        if self.message:
            return self.message
        return (f"Rule {self.op.value} {format_number(self.threshold)} "
                f"hit for {self.type} (value={format_number(value)})")

    def with_changes(self, **changes) -> 'AlertRule':
        """Return a validated copy with the given fields replaced"""
        return replace(self, **changes)

    def to_dict(self) -> Dict:
        """Convert to API representation"""
        return {
            'id': self.id,
            'tenantId': self.tenant_id,
            'tenantSlug': self.tenant_slug,
            'deviceId': self.device_id,
            'type': self.type,
            'op': self.op.value,
            'threshold': self.threshold,
            'cooldownSeconds': self.cooldown_seconds,
            'enabled': self.enabled,
            'message': self.message,
            'createdAt': to_timestamp(self.created_at),
            'updatedAt': to_timestamp(self.updated_at),
        }

    def to_row(self) -> Dict:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'tenant_slug': self.tenant_slug,
            'device_id': self.device_id,
            'type': self.type,
            'op': self.op.value,
            'threshold': self.threshold,
            'cooldown_seconds': self.cooldown_seconds,
            'enabled': 1 if self.enabled else 0,
            'message': self.message,
            'created_at': to_timestamp(self.created_at),
            'updated_at': to_timestamp(self.updated_at),
        }

    @classmethod
    def from_row(cls, data: Dict) -> 'AlertRule':
        """Create AlertRule from a storage row"""
        return cls(
            id=data['id'],
            tenant_id=data['tenant_id'],
            tenant_slug=data.get('tenant_slug'),
            device_id=data.get('device_id'),
            type=data['type'],
            op=data['op'],
            threshold=data['threshold'],
            cooldown_seconds=data['cooldown_seconds'],
            enabled=bool(data['enabled']),
            message=data.get('message'),
            created_at=parse_timestamp(data['created_at']),
            updated_at=parse_timestamp(data.get('updated_at')),
        )
