# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Strategy Categories:
- Attribute values (what OTLP AnyValue can carry)
- Log records and batch configurations
- Instrument kinds and histogram boundaries

Usage:
    from tests.property.conftest import attributes, batch_configs

    @given(attrs=attributes)
    def test_encoding_is_json_safe(attrs: dict) -> None:
        ...
"""

# =============================================================================
# Hypothesis Settings
# =============================================================================
#
# For standardized @settings decorators, import from tests.property.settings:
#   from tests.property.settings import STANDARD_SETTINGS, THREADED_SETTINGS
#
# Tiers: STATE_MACHINE (200), STANDARD (100), THREADED (30), QUICK (20)
# =============================================================================

from __future__ import annotations

from hypothesis import strategies as st

from otelpipe.contracts.config.runtime import BatchConfig
from otelpipe.contracts.enums import InstrumentKind, Severity
from otelpipe.contracts.logs import LogRecord

# OTLP intValue is a signed 64-bit integer
MAX_INT64 = 2**63 - 1
MIN_INT64 = -(2**63)


# =============================================================================
# Attribute Strategies
# =============================================================================

# Primitive attribute values (NaN/Infinity are not valid JSON)
attribute_primitives = (
    st.booleans()
    | st.integers(min_value=MIN_INT64, max_value=MAX_INT64)
    | st.floats(allow_nan=False, allow_infinity=False)
    | st.text(max_size=50)
)

# Homogeneous arrays, as OpenTelemetry attribute arrays are
attribute_arrays = (
    st.lists(st.booleans(), max_size=5)
    | st.lists(st.integers(min_value=MIN_INT64, max_value=MAX_INT64), max_size=5)
    | st.lists(st.text(max_size=20), max_size=5)
)

attribute_values = attribute_primitives | attribute_arrays

attribute_keys = st.text(min_size=1, max_size=30)

attributes = st.dictionaries(keys=attribute_keys, values=attribute_values, max_size=8)

# Log bodies may nest maps and arrays
log_bodies = st.recursive(
    attribute_primitives | st.binary(max_size=32),
    lambda children: st.lists(children, max_size=4) | st.dictionaries(attribute_keys, children, max_size=4),
    max_leaves=20,
)


# =============================================================================
# Log Strategies
# =============================================================================

severities = st.sampled_from(Severity)

log_records = st.builds(
    LogRecord,
    body=log_bodies,
    severity_number=st.none() | severities,
    attributes=attributes,
)

# Batch configs with the timer far out, so only size, flush and shutdown export
batch_configs = st.integers(min_value=1, max_value=32).flatmap(
    lambda batch: st.builds(
        BatchConfig,
        max_queue_size=st.integers(min_value=batch, max_value=256),
        max_export_batch_size=st.just(batch),
        scheduled_delay=st.just(60.0),
        max_export_timeout=st.just(5.0),
    )
)


# =============================================================================
# Metric Strategies
# =============================================================================

instrument_kinds = st.sampled_from(InstrumentKind)

histogram_boundaries = st.lists(
    st.floats(min_value=-1e6, max_value=1e6, allow_nan=False),
    unique=True,
    max_size=12,
).map(lambda bounds: tuple(sorted(bounds)))

measurements = st.integers(min_value=-(10**9), max_value=10**9)
