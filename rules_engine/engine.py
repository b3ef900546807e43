"""Evaluation engine orchestration"""

import threading
from typing import Dict, Any, Optional

from rules_engine import __version__
from rules_engine.alerts.alert_evaluator import AlertEvaluator
from rules_engine.alerts.alert_manager import AlertManager
from rules_engine.alerts.channels.base_channel import BaseChannel
from rules_engine.alerts.channels.webhook_channel import WebhookChannel
from rules_engine.alerts.storage.sqlite_storage import SQLiteStorage
from rules_engine.exporters.prometheus_exporter import PrometheusExporter
from rules_engine.utils.logger import get_logger
from rules_engine.utils.measurement_reader import MeasurementReader


class Engine:
    """Owns the stores, the push channel and the evaluation thread"""

    def __init__(self, config: Dict[str, Any], channel: Optional[BaseChannel] = None):
        """
        Initialize engine

        Args:
            config: Configuration dictionary
            channel: Push channel override; built from config when None
        """
        self.config = config
        self.logger = get_logger(self.__class__.__name__)
        self.interval = config['evaluation']['interval_seconds']

        self._stop_event = threading.Event()
        self.evaluator_thread = None
        self.cycle_count = 0

        self.exporter = PrometheusExporter(config)
        self.storage = SQLiteStorage(config['storage'])
        self.reader = MeasurementReader(config['measurements'])

        if channel is None and config['realtime'].get('enabled', False):
            channel = WebhookChannel(config['realtime'])
        self.channel = channel

        self.alert_manager = AlertManager(config, self.storage, self.channel, self.exporter)
        self.evaluator = AlertEvaluator(
            self.storage,
            self.reader,
            self.alert_manager,
            metrics=self.exporter,
        )

    @property
    def running(self) -> bool:
        return self.evaluator_thread is not None and self.evaluator_thread.is_alive()

    def start(self):
        """Connect collaborators and start the evaluation thread"""
        if self.running:
            return

        self.logger.info(f"Rules engine starting (poll={self.interval}s)")

        self.exporter.start()
        self.exporter.engine_info.labels(version=__version__).set(1)

        if self.channel:
            self.channel.connect()

        self._stop_event.clear()
        self.evaluator_thread = threading.Thread(
            target=self._run_evaluation_loop,
            daemon=True,
            name="rule-evaluator"
        )
        self.evaluator_thread.start()
        self.logger.info("Started rule evaluator thread")

    def stop(self, timeout: float = 10.0):
        """Signal the evaluation thread and wait for it to finish"""
        if not self.running:
            return

        self.logger.info("Stopping rules engine...")
        self._stop_event.set()
        self.evaluator_thread.join(timeout=timeout)

        if self.evaluator_thread.is_alive():
            self.logger.warning(f"Rule evaluator did not stop within {timeout}s")
        else:
            self.logger.info("Rules engine stopped")

    def close(self):
        """Stop evaluation and release stores and channel"""
        self.stop()
        self.alert_manager.shutdown()
        self.reader.close()
        self.storage.close()
        self.exporter.stop()

    def _run_evaluation_loop(self):
        """
        Run evaluation cycles until stopped.

        Fixed-delay schedule: the full interval is slept after each cycle, so
        the cadence drifts by the cycle duration.
        """
        self.logger.debug(f"Starting evaluation loop (interval: {self.interval}s)")

        while not self._stop_event.is_set():
            try:
                self.evaluator.evaluate_all_rules(self._stop_event)
                self.cycle_count += 1
            except Exception as e:
                self.logger.error(f"Error in evaluation loop: {e}", exc_info=True)

            # Returns early when stop() is called
            self._stop_event.wait(self.interval)
