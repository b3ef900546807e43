"""
Live notification channels for raised alerts.
"""

from rules_engine.alerts.channels.base_channel import BaseChannel
from rules_engine.alerts.channels.webhook_channel import WebhookChannel

__all__ = ['BaseChannel', 'WebhookChannel']
