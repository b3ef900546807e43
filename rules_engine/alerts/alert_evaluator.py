"""
Alert evaluator for checking rule conditions against the latest measurements.
"""

import logging
import threading
import time
from typing import Callable, List, Optional
from datetime import datetime

from rules_engine.alerts.alert_rule import AlertRule
from rules_engine.alerts.alert_manager import AlertManager
from rules_engine.alerts.storage.base_storage import BaseRuleStorage, Alert
from rules_engine.utils.helpers import utc_now
from rules_engine.utils.measurement_reader import MeasurementReader

logger = logging.getLogger(__name__)


class AlertEvaluator:
    """Evaluates enabled rules against the most recent measurements"""

    def __init__(self, storage: BaseRuleStorage, reader: MeasurementReader,
                 alert_manager: AlertManager,
                 clock: Callable[[], datetime] = utc_now, metrics=None):
        """
        Initialize alert evaluator.

        Args:
            storage: Rule storage to read enabled rules from
            reader: Source of latest measurements
            alert_manager: AlertManager for raising alerts
            clock: Returns the current UTC time
            metrics: PrometheusExporter for engine counters
        """
        self.storage = storage
        self.reader = reader
        self.alert_manager = alert_manager
        self.clock = clock
        self.metrics = metrics

        logger.info("Alert evaluator initialized")

    def evaluate_all_rules(self, stop_event: Optional[threading.Event] = None) -> List[Alert]:
        """
        Run one evaluation cycle over all enabled rules.

        A failure while fetching rules aborts the cycle. A failure on one rule
        is logged and the remaining rules are still evaluated.

        Args:
            stop_event: Checked before each rule; when set the cycle ends early

        Returns:
            Alerts raised during this cycle
        """
        started = time.monotonic()

        try:
            rules = self.storage.list_rules(enabled=True)
        except Exception as e:
            logger.error(f"Unhandled error fetching rules, skipping cycle: {e}", exc_info=True)
            if self.metrics:
                self.metrics.record_cycle_failure()
            return []

        raised = []
        for rule in rules:
            if stop_event is not None and stop_event.is_set():
                logger.info("Stop requested, ending evaluation cycle early")
                break

            try:
                alert = self._evaluate_rule(rule)
            except Exception as e:
                logger.error(f"Error evaluating rule {rule.id}: {e}", exc_info=True)
                if self.metrics:
                    self.metrics.record_rule_error()
                continue

            if alert is not None:
                raised.append(alert)

        duration = time.monotonic() - started
        logger.debug(f"Evaluated {len(rules)} rules in {duration:.3f}s, raised {len(raised)} alerts")
        if self.metrics:
            self.metrics.record_cycle(duration, len(rules))

        return raised

    def _evaluate_rule(self, rule: AlertRule) -> Optional[Alert]:
        """
        Evaluate a single rule.

        Args:
            rule: Enabled rule to evaluate

        Returns:
            Raised Alert, or None
        """
        measurement = self.reader.get_latest(rule.tenant_id, rule.type, rule.device_id)
        if measurement is None:
            return None

        if not rule.matches(measurement.value):
            logger.debug(
                f"Rule {rule.id} condition not met: {measurement.value} {rule.op.value} {rule.threshold}"
            )
            return None

        logger.debug(f"Rule {rule.id} condition met: {measurement.value} {rule.op.value} {rule.threshold}")
        return self.alert_manager.process_alert(rule, measurement, self.clock())
