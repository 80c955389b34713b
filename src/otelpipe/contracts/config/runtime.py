# src/otelpipe/contracts/config/runtime.py
"""Runtime configuration dataclasses.

These dataclasses are what processors and readers actually consume. They
are built either explicitly by the caller or from validated settings.

Design Principles:
1. Frozen (immutable) - fixed for the lifetime of the provider
2. Slots - memory efficient, prevents attribute typos
3. Validated in __post_init__ - invalid combinations fail at build time
4. Factory methods - default(), from_settings()

Durations are float seconds.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from otelpipe.contracts.config.defaults import SETTINGS_DEFAULTS

if TYPE_CHECKING:
    from otelpipe.core.config import BatchSettings, ReaderSettings


@dataclass(frozen=True, slots=True)
class BatchConfig:
    """Configuration of a BatchLogProcessor.

    Attributes:
        max_queue_size: Records buffered before new ones are dropped
        scheduled_delay: Seconds between timer-triggered exports
        max_export_batch_size: Upper bound on records per export call
        max_export_timeout: Seconds an export call may take before it is abandoned

    Invariant: max_export_batch_size <= max_queue_size.
    """

    max_queue_size: int = int(SETTINGS_DEFAULTS["batch"]["max_queue_size"])
    scheduled_delay: float = float(SETTINGS_DEFAULTS["batch"]["scheduled_delay"])
    max_export_batch_size: int = int(SETTINGS_DEFAULTS["batch"]["max_export_batch_size"])
    max_export_timeout: float = float(SETTINGS_DEFAULTS["batch"]["max_export_timeout"])

    def __post_init__(self) -> None:
        if self.max_queue_size < 1:
            raise ValueError(f"max_queue_size must be >= 1, got {self.max_queue_size}")
        if self.max_export_batch_size < 1:
            raise ValueError(f"max_export_batch_size must be >= 1, got {self.max_export_batch_size}")
        if self.max_export_batch_size > self.max_queue_size:
            raise ValueError(
                f"max_export_batch_size ({self.max_export_batch_size}) must be <= max_queue_size ({self.max_queue_size})"
            )
        if self.scheduled_delay <= 0:
            raise ValueError(f"scheduled_delay must be > 0, got {self.scheduled_delay}")
        if self.max_export_timeout <= 0:
            raise ValueError(f"max_export_timeout must be > 0, got {self.max_export_timeout}")

    @classmethod
    def default(cls) -> "BatchConfig":
        """Built-in defaults, ignoring the environment."""
        return cls()

    @classmethod
    def from_settings(cls, settings: "BatchSettings") -> "BatchConfig":
        """Factory from BatchSettings (OTEL_BLRP_* variables)."""
        return cls(
            max_queue_size=settings.max_queue_size,
            scheduled_delay=settings.scheduled_delay,
            max_export_batch_size=settings.max_export_batch_size,
            max_export_timeout=settings.max_export_timeout,
        )


@dataclass(frozen=True, slots=True)
class PeriodicReaderConfig:
    """Configuration of a PeriodicReader.

    Attributes:
        interval: Seconds between collections
        timeout: Seconds one collect+export cycle may take
    """

    interval: float = float(SETTINGS_DEFAULTS["reader"]["interval"])
    timeout: float = float(SETTINGS_DEFAULTS["reader"]["timeout"])

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError(f"interval must be > 0, got {self.interval}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    @classmethod
    def default(cls) -> "PeriodicReaderConfig":
        return cls()

    @classmethod
    def from_settings(cls, settings: "ReaderSettings") -> "PeriodicReaderConfig":
        """Factory from ReaderSettings (OTEL_METRIC_EXPORT_* variables)."""
        return cls(interval=settings.interval, timeout=settings.timeout)
