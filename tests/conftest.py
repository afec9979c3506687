# tests/conftest.py
"""
Pytest configuration for the Moonwatch suite.

- Registers Hypothesis profiles for local dev and CI.
- Provides a manual clock so scheduler tests never wait on wall time.
- Provides the bundled sample payload and small observation builders.
"""

from __future__ import annotations

import copy
import os

import pytest
from hypothesis import HealthCheck, settings

from moonwatch.models import Observation
from moonwatch.sources import load_sample_payload

# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(deadline=None, max_examples=60, suppress_health_check=[HealthCheck.too_slow]),
)
settings.register_profile(
    "ci",
    settings(deadline=None, max_examples=150, suppress_health_check=[HealthCheck.too_slow]),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────────────────────


class ManualClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, start_ms: int = 0) -> None:
        self.ms = start_ms
        self.slept: list[float] = []

    def now_ms(self) -> int:
        return self.ms

    def advance(self, ms: int) -> None:
        self.ms += ms

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.ms += int(seconds * 1000)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start_ms=1_700_000_000_000)


@pytest.fixture
def sample_payload() -> dict:
    return copy.deepcopy(load_sample_payload())


def obs(ts: int, altitude: float = 10.0, azimuth: float = 180.0, distance: float = 384400.0) -> Observation:
    return Observation(timestamp=ts, altitude=altitude, azimuth=azimuth, distance=distance)


def payload_at(template: dict, ts: int, moon_alt: float = 10.0) -> dict:
    """Copy of template with a new timestamp and moon altitude."""
    data = copy.deepcopy(template)
    data["timestamp"] = ts
    data["moon"]["detailed"]["position"]["altitude"] = moon_alt
    return data
