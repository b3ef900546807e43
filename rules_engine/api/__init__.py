"""
HTTP surface for rule administration and alert history.
"""

from rules_engine.api.app import create_app

__all__ = ['create_app']
