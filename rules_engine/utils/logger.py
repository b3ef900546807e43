"""Logging configuration"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

from pythonjsonlogger import jsonlogger

ROOT_LOGGER = 'rules_engine'

# uvicorn is started with log_config=None, so its loggers get our handlers
SERVER_LOGGERS = ('uvicorn', 'uvicorn.error')


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == 'json':
        return jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'name': 'logger', 'asctime': 'timestamp'}
        )
    return logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s - %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S'
    )


def _build_handlers(log_file, formatter: logging.Formatter) -> Tuple[List[logging.Handler], List[str]]:
    handlers = [logging.StreamHandler(sys.stdout)]
    errors = []

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))
        except OSError as e:
            errors.append(f"Failed to setup file logging: {e}")

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers, errors


def setup_logger(config: Dict[str, Any]) -> logging.Logger:
    """
    Setup the service logger tree.

    Every module logger lives under ``rules_engine`` so a single set of
    handlers covers the engine, the stores and the HTTP layer.

    Args:
        config: Configuration dictionary; reads the ``service`` section

    Returns:
        The package root logger
    """
    service = config.get('service', {})
    level = getattr(logging, service.get('log_level', 'INFO').upper(), logging.INFO)
    formatter = _build_formatter(service.get('log_format', 'text'))
    handlers, errors = _build_handlers(service.get('log_file'), formatter)

    logger = logging.getLogger(ROOT_LOGGER)
    for name in (ROOT_LOGGER,) + SERVER_LOGGERS:
        target = logging.getLogger(name)
        target.handlers.clear()
        target.setLevel(level)
        target.propagate = False
        for handler in handlers:
            target.addHandler(handler)

    # Request lines only at WARNING and above
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

    for error in errors:
        logger.warning(error)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(f'{ROOT_LOGGER}.{name}')
