"""Threshold rule evaluation and alerting for tenant sensor telemetry."""

__version__ = '1.0.0'
