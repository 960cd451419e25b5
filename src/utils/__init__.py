"""Utility modules for the cluster integration service."""

from .config_validator import ConfigValidator, get_configuration_summary, validate_configuration
from .logging import setup_logging

__all__ = [
    "setup_logging",
    "ConfigValidator",
    "get_configuration_summary",
    "validate_configuration",
]
