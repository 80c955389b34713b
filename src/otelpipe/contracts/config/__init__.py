# src/otelpipe/contracts/config/__init__.py
"""Runtime configuration contracts and default registries."""

from otelpipe.contracts.config.defaults import INTERNAL_DEFAULTS, SETTINGS_DEFAULTS, get_internal_default
from otelpipe.contracts.config.runtime import BatchConfig, PeriodicReaderConfig

__all__ = [
    "INTERNAL_DEFAULTS",
    "SETTINGS_DEFAULTS",
    "BatchConfig",
    "PeriodicReaderConfig",
    "get_internal_default",
]
