"""
Rule evaluation and alerting.
"""

from rules_engine.alerts.alert_rule import AlertRule, Comparator, evaluate_condition
from rules_engine.alerts.alert_manager import AlertManager
from rules_engine.alerts.alert_evaluator import AlertEvaluator
from rules_engine.alerts.cooldown import CooldownGuard

__all__ = [
    'AlertRule',
    'Comparator',
    'evaluate_condition',
    'AlertManager',
    'AlertEvaluator',
    'CooldownGuard',
]
