"""
Realtime hub webhook notification channel.
"""

import logging
from typing import Dict

import requests

from rules_engine.alerts.channels.base_channel import BaseChannel
from rules_engine.alerts.storage.base_storage import Alert

logger = logging.getLogger(__name__)


class WebhookChannel(BaseChannel):
    """
    Pushes alerts to the realtime hub over HTTP.

    The hub must expose a plain HTTP endpoint (default
    ``/hub/telemetry/alerts``) that accepts the JSON payload and fans it out
    to the tenant's subscribers. A websocket or SignalR hub route alone
    cannot receive these requests.
    """

    def __init__(self, config: Dict):
        """
        Initialize webhook channel.

        Args:
            config: Realtime configuration dict with url, method, headers, timeout
        """
        self.url = config['url']
        self.method = config.get('method', 'POST').upper()
        self.headers = dict(config.get('headers') or {})
        self.timeout = config.get('timeout', 5)
        self.connected = False

        # Ensure Content-Type is set
        if 'Content-Type' not in self.headers:
            self.headers['Content-Type'] = 'application/json'

        if self.method not in ('POST', 'PUT'):
            raise ValueError(f"Unsupported HTTP method: {self.method}")

        # Pooled connections; a dropped connection is re-opened on the next request
        self.session = requests.Session()
        self.session.headers.update(self.headers)

        logger.info(f"Webhook channel initialized (url: {self.url}, method: {self.method})")

    def connect(self) -> bool:
        """Probe the hub once so an outage is visible at startup"""
        try:
            self.session.head(self.url, timeout=self.timeout)
            self.connected = True
            logger.info(f"Connected to realtime hub at {self.url}")
        except requests.exceptions.RequestException as e:
            self.connected = False
            logger.warning(
                f"Failed to connect to realtime hub at {self.url}: {e}. "
                "Alerts will be stored but not pushed until it is reachable."
            )
        return self.connected

    def publish_alert(self, tenant_slug: str, alert: Alert) -> bool:
        """
        Send webhook notification.

        Args:
            tenant_slug: Owning tenant's slug
            alert: Stored alert

        Returns:
            True if sent successfully
        """
        payload = self.format_payload(tenant_slug, alert)

        try:
            response = self.session.request(
                self.method,
                self.url,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.connected = False
            logger.warning(f"Failed to push alert {alert.id} to realtime hub (will remain stored): {e}")
            return False

        self.connected = True
        logger.debug(f"Pushed alert {alert.id} to tenant:{tenant_slug}")
        return True

    def close(self) -> None:
        self.session.close()
