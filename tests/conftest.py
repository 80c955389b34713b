# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Environment Isolation:
    Every test runs with all OTEL_* variables removed, so settings resolved
    through load_settings() see only what the test itself sets.
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from otelpipe.contracts.resource import InstrumentationScope
from otelpipe.runtime import AsyncioRuntime, ThreadRuntime
from tests.fixtures.runtime import stalled_runtime as _stalled_runtime

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_otel_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove OTEL_* variables inherited from the developer's shell."""
    for key in list(os.environ):
        if key.startswith("OTEL_"):
            monkeypatch.delenv(key)


@pytest.fixture
def runtime() -> Iterator[ThreadRuntime]:
    """A private ThreadRuntime, closed after the test."""
    rt = ThreadRuntime(name="otelpipe-test-runtime")
    yield rt
    rt.close()


@pytest.fixture
def stalled_runtime() -> Iterator[AsyncioRuntime]:
    """Runtime whose event loop never runs during the test.

    Spawned tasks make no progress, so anything sent to a channel stays
    there. Useful to observe queue-full behaviour deterministically.
    """
    with _stalled_runtime() as rt:
        yield rt


@pytest.fixture
def scope() -> InstrumentationScope:
    return InstrumentationScope("tests.scope", "1.0.0")
