# src/otelpipe/core/__init__.py
"""Settings loading and diagnostic logging setup."""

from otelpipe.core.config import OtlpSettings, load_settings, parse_headers
from otelpipe.core.logging import configure_logging, get_logger

__all__ = [
    "OtlpSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
    "parse_headers",
]
