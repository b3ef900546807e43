"""Configuration management"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any

from rules_engine.utils.helpers import is_uuid

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def get_default_config() -> Dict[str, Any]:
    """Get default configuration"""
    return {
        'service': {
            'log_level': 'INFO',
            'log_file': None,
            'log_format': 'text',
        },
        'api': {
            'host': '0.0.0.0',
            'port': 5102,
            'cors_origins': [
                'http://127.0.0.1:5500',
                'http://localhost:5500',
                'http://localhost:5173',
                'http://localhost:5174',
            ],
        },
        'evaluation': {
            'interval_seconds': 10,
            'severity': 'warning',
        },
        'storage': {
            'sqlite_path': './data/rules.db',
        },
        'measurements': {
            'sqlite_path': './data/ingest.db',
            'query_timeout': 5,
        },
        'realtime': {
            'enabled': True,
            'url': 'http://localhost:5103/hub/telemetry/alerts',
            'method': 'POST',
            'headers': {},
            'timeout': 5,
        },
        'tenants': {
            # tenant_id -> slug, for rules created without a tenantSlug
            'slugs': {},
        },
        'prometheus': {
            'enabled': False,
            'host': '0.0.0.0',
            'port': 9100,
        },
    }


def load_config(config_path: str = None) -> Dict[str, Any]:
    """
    Load configuration from file and environment variables

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary
    """
    # Start with defaults
    config = get_default_config()

    # Load from YAML file if provided
    if config_path and Path(config_path).exists():
        try:
            with open(config_path, 'r') as f:
                yaml_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to load config from {config_path}: {e}")
        if yaml_config:
            if not isinstance(yaml_config, dict):
                raise ValueError(f"Config file {config_path} must contain a mapping")
            config = merge_configs(config, yaml_config)

    # Override with environment variables
    config = override_from_env(config)

    # Validate configuration
    validate_config(config)

    return config


def merge_configs(base: Dict, override: Dict) -> Dict:
    """Recursively merge two configuration dictionaries"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result


def _env_flag(name: str) -> bool:
    return os.environ[name].lower() in ('1', 'true', 'yes')


def override_from_env(config: Dict) -> Dict:
    """Override configuration from environment variables"""

    # Service settings
    if 'LOG_LEVEL' in os.environ:
        config['service']['log_level'] = os.environ['LOG_LEVEL'].upper()
    if 'LOG_FILE' in os.environ:
        config['service']['log_file'] = os.environ['LOG_FILE']
    if 'LOG_FORMAT' in os.environ:
        config['service']['log_format'] = os.environ['LOG_FORMAT'].lower()

    # API settings
    if 'API_HOST' in os.environ:
        config['api']['host'] = os.environ['API_HOST']
    if 'API_PORT' in os.environ:
        config['api']['port'] = int(os.environ['API_PORT'])

    # Evaluation loop
    if 'EVALUATION_INTERVAL' in os.environ:
        config['evaluation']['interval_seconds'] = float(os.environ['EVALUATION_INTERVAL'])

    # Databases
    if 'RULES_DB_PATH' in os.environ:
        config['storage']['sqlite_path'] = os.environ['RULES_DB_PATH']
    if 'INGEST_DB_PATH' in os.environ:
        config['measurements']['sqlite_path'] = os.environ['INGEST_DB_PATH']

    # Realtime hub
    if 'REALTIME_HUB_URL' in os.environ:
        config['realtime']['url'] = os.environ['REALTIME_HUB_URL']
    if 'REALTIME_ENABLED' in os.environ:
        config['realtime']['enabled'] = _env_flag('REALTIME_ENABLED')

    # Prometheus settings
    if 'PROMETHEUS_PORT' in os.environ:
        config['prometheus']['port'] = int(os.environ['PROMETHEUS_PORT'])
    if 'PROMETHEUS_ENABLED' in os.environ:
        config['prometheus']['enabled'] = _env_flag('PROMETHEUS_ENABLED')

    return config


def validate_config(config: Dict):
    """
    Validate configuration values

    Raises:
        ValueError: If configuration is invalid
    """
    # Validate log level
    log_level = config['service']['log_level'].upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {log_level}. Must be one of {VALID_LOG_LEVELS}")

    log_format = config['service']['log_format']
    if log_format not in ('text', 'json'):
        raise ValueError(f"Invalid log format: {log_format}. Must be 'text' or 'json'")

    # Validate ports
    for section in ('api', 'prometheus'):
        port = config[section]['port']
        if not (1 <= port <= 65535):
            raise ValueError(f"Invalid {section} port: {port}. Must be between 1 and 65535")

    # Validate evaluation loop
    interval = config['evaluation']['interval_seconds']
    if interval <= 0:
        raise ValueError(f"Invalid interval_seconds: {interval}. Must be > 0")

    valid_severities = ['info', 'warning', 'critical']
    severity = config['evaluation']['severity']
    if severity not in valid_severities:
        raise ValueError(f"Invalid severity: {severity}. Must be one of {valid_severities}")

    # Validate storage
    if not config['storage'].get('sqlite_path'):
        raise ValueError("storage.sqlite_path not set")
    if not config['measurements'].get('sqlite_path'):
        raise ValueError("measurements.sqlite_path not set")

    query_timeout = config['measurements'].get('query_timeout', 5)
    if query_timeout <= 0:
        raise ValueError(f"Invalid query_timeout: {query_timeout}. Must be > 0")

    # Validate realtime hub
    realtime = config['realtime']
    if realtime.get('enabled'):
        if not realtime.get('url'):
            raise ValueError("Realtime hub enabled but url not set")
        if realtime.get('timeout', 5) <= 0:
            raise ValueError(f"Invalid realtime timeout: {realtime['timeout']}. Must be > 0")

    # Validate tenant slug mapping
    slugs = config['tenants'].get('slugs') or {}
    if not isinstance(slugs, dict):
        raise ValueError("tenants.slugs must be a mapping of tenant id to slug")
    for tenant_id, slug in slugs.items():
        if not is_uuid(str(tenant_id)):
            raise ValueError(f"Invalid tenant id in tenants.slugs: {tenant_id}")
        if not slug:
            raise ValueError(f"Empty slug for tenant {tenant_id}")
