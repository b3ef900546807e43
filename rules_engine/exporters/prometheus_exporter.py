"""Prometheus metrics for the evaluation engine"""

from prometheus_client import start_http_server, Gauge, Counter
from prometheus_client.core import CollectorRegistry
from rules_engine.utils.logger import get_logger


class PrometheusExporter:
    """Engine self-monitoring metrics with an optional HTTP endpoint"""

    def __init__(self, config):
        """
        Initialize Prometheus exporter

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.logger = get_logger(self.__class__.__name__)

        prometheus_config = config.get('prometheus', {})
        self.enabled = prometheus_config.get('enabled', False)
        self.host = prometheus_config.get('host', '0.0.0.0')
        self.port = prometheus_config.get('port', 9100)

        self.registry = CollectorRegistry()
        self.running = False

        self._setup_engine_metrics()

    def _setup_engine_metrics(self):
        """Setup evaluation loop metrics"""
        self.engine_info = Gauge(
            'rules_engine_info',
            'Rules engine information',
            ['version'],
            registry=self.registry
        )

        self.cycles = Counter(
            'rules_engine_cycles_total',
            'Completed evaluation cycles',
            registry=self.registry
        )

        self.cycle_failures = Counter(
            'rules_engine_cycle_failures_total',
            'Evaluation cycles aborted before evaluating rules',
            registry=self.registry
        )

        self.cycle_duration = Gauge(
            'rules_engine_cycle_duration_seconds',
            'Duration of the last evaluation cycle',
            registry=self.registry
        )

        self.enabled_rules = Gauge(
            'rules_engine_enabled_rules',
            'Enabled rules seen by the last cycle',
            registry=self.registry
        )

        self.alerts_raised = Counter(
            'rules_engine_alerts_raised_total',
            'Alerts persisted',
            ['tenant'],
            registry=self.registry
        )

        self.alerts_suppressed = Counter(
            'rules_engine_alerts_suppressed_total',
            'Matched triggers dropped by cooldown',
            registry=self.registry
        )

        self.rule_errors = Counter(
            'rules_engine_rule_errors_total',
            'Rule evaluations that failed',
            registry=self.registry
        )

        self.push_failures = Counter(
            'rules_engine_push_failures_total',
            'Alerts that could not be pushed to the realtime hub',
            registry=self.registry
        )

    def start(self):
        """Start HTTP server"""
        if not self.enabled:
            self.logger.debug("Prometheus exporter disabled")
            return
        try:
            self.logger.info(f"Starting Prometheus HTTP server on {self.host}:{self.port}")
            start_http_server(self.port, addr=self.host, registry=self.registry)
            self.running = True
            self.logger.info(f"Metrics available at http://{self.host}:{self.port}/metrics")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus HTTP server: {e}")
            raise

    def stop(self):
        """Stop HTTP server"""
        if self.running:
            self.running = False
            self.logger.info("Prometheus HTTP server stopped")

    def record_cycle(self, duration: float, rule_count: int):
        self.cycles.inc()
        self.cycle_duration.set(duration)
        self.enabled_rules.set(rule_count)

    def record_cycle_failure(self):
        self.cycle_failures.inc()

    def record_alert(self, tenant_slug: str):
        self.alerts_raised.labels(tenant=tenant_slug).inc()

    def record_suppressed(self):
        self.alerts_suppressed.inc()

    def record_rule_error(self):
        self.rule_errors.inc()

    def record_push_failure(self):
        self.push_failures.inc()
