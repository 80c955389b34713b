# src/otelpipe/contracts/resource.py
"""Resource and instrumentation scope identity types.

A Resource describes the process producing telemetry (service, host,
environment). An InstrumentationScope describes the library inside that
process that produced a given record or instrument. Both are immutable once
built and shared freely between threads without locking.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from otelpipe import __version__

SERVICE_NAME = "service.name"
TELEMETRY_SDK_NAME = "telemetry.sdk.name"
TELEMETRY_SDK_LANGUAGE = "telemetry.sdk.language"
TELEMETRY_SDK_VERSION = "telemetry.sdk.version"


def _freeze(attributes: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(attributes))


@dataclass(frozen=True, slots=True)
class Resource:
    """Process-wide attribute set attached to everything a provider exports.

    Attributes:
        attributes: Read-only attribute mapping
        schema_url: Optional semantic-conventions schema URL
    """

    attributes: Mapping[str, Any] = field(default_factory=dict, hash=False)
    schema_url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _freeze(self.attributes))

    @classmethod
    def create(cls, attributes: Mapping[str, Any], schema_url: str | None = None) -> "Resource":
        """Create a resource from user attributes layered over the SDK defaults."""
        return cls.default().merge(cls(attributes, schema_url))

    @classmethod
    def default(cls) -> "Resource":
        """Resource carrying only SDK identification and the unknown service name."""
        return cls(
            {
                SERVICE_NAME: "unknown_service",
                TELEMETRY_SDK_NAME: "otelpipe",
                TELEMETRY_SDK_LANGUAGE: "python",
                TELEMETRY_SDK_VERSION: __version__,
            }
        )

    @classmethod
    def empty(cls) -> "Resource":
        return cls({})

    def merge(self, other: "Resource") -> "Resource":
        """Return a new resource where ``other``'s attributes win on conflict.

        The schema URL of ``other`` is kept when set, otherwise this one's.
        """
        merged = {**self.attributes, **other.attributes}
        return Resource(merged, other.schema_url or self.schema_url)

    def __len__(self) -> int:
        return len(self.attributes)


@dataclass(frozen=True, slots=True)
class InstrumentationScope:
    """Identity of the library that emitted a record or owns an instrument."""

    name: str
    version: str | None = None
    schema_url: str | None = None
