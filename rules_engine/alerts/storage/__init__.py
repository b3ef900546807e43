"""
Storage backends for rules and alert history.
"""

from rules_engine.alerts.storage.base_storage import (
    BaseRuleStorage, BaseAlertStorage, Alert, DEFAULT_SEVERITY, MAX_ALERTS,
)
from rules_engine.alerts.storage.sqlite_storage import SQLiteStorage

__all__ = [
    'BaseRuleStorage',
    'BaseAlertStorage',
    'Alert',
    'DEFAULT_SEVERITY',
    'MAX_ALERTS',
    'SQLiteStorage',
]
