# tests/test_sources.py
from __future__ import annotations

import math
from collections import Counter

import httpx
import pytest

from conftest import payload_at
from moonwatch.config import DashboardConfig
from moonwatch.history import ValidationError
from moonwatch.models import SourceMode
from moonwatch.sources import (
    API_HOST,
    AuthError,
    LiveSource,
    SimulatedSource,
    TransientError,
    generate_backfill,
    parse_observations,
    select_source,
    simulate_payload,
)

# ─────────────────────────────────────────────────────────────────────────────
# Payload parsing
# ─────────────────────────────────────────────────────────────────────────────


def test_parse_observations_reads_both_bodies(sample_payload: dict) -> None:
    pair = parse_observations(sample_payload)
    assert pair.timestamp == sample_payload["timestamp"]
    assert pair.moon.altitude == pytest.approx(-12.4)
    assert pair.moon.distance == pytest.approx(362100.0)
    assert pair.sun.azimuth == pytest.approx(320.0)
    assert pair.payload is sample_payload


def test_parse_observations_accepts_zero_altitude(sample_payload: dict) -> None:
    sample_payload["moon"]["detailed"]["position"]["altitude"] = 0
    assert parse_observations(sample_payload).moon.altitude == 0.0


@pytest.mark.parametrize("mutate", [
    lambda p: p.pop("timestamp"),
    lambda p: p["moon"]["detailed"].pop("position"),
    lambda p: p["sun"]["position"].update(distance="far"),
    lambda p: p.update(sun=None),
])
def test_parse_observations_rejects_malformed(sample_payload: dict, mutate) -> None:
    mutate(sample_payload)
    with pytest.raises(ValidationError):
        parse_observations(sample_payload)


# ─────────────────────────────────────────────────────────────────────────────
# LiveSource classification
# ─────────────────────────────────────────────────────────────────────────────


def _live(handler) -> LiveSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return LiveSource("k" * 50, 51.4768, -0.0004, client=client)


def test_live_ok_sends_credential(sample_payload: dict) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=sample_payload)

    pair = _live(handler).fetch()

    assert pair.timestamp == sample_payload["timestamp"]
    request = seen[0]
    assert request.url.host == API_HOST
    assert request.url.path == "/advanced"
    assert request.url.params["lat"] == "51.4768"
    assert request.headers["x-rapidapi-key"] == "k" * 50
    assert request.headers["x-rapidapi-host"] == API_HOST


@pytest.mark.parametrize("status,body", [
    (403, {"message": "You are not subscribed to this API."}),
    (401, {"message": "Invalid API key. Go to https://docs.rapidapi.com"}),
    (200, {"error": "Missing API key"}),
    (401, None),
])
def test_live_auth_errors(status: int, body: dict | None) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status, text="unauthorized")
        return httpx.Response(status, json=body)

    with pytest.raises(AuthError):
        _live(handler).fetch()


@pytest.mark.parametrize("response", [
    httpx.Response(500, json={"message": "Internal error"}),
    httpx.Response(429, json={"message": "Too many requests"}),
    httpx.Response(200, text="<html>oops</html>"),
    httpx.Response(200, json={"timestamp": 1, "moon": {}}),
])
def test_live_transient_errors(response: httpx.Response) -> None:
    with pytest.raises(TransientError):
        _live(lambda request: response).fetch()


def test_live_network_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientError):
        _live(handler).fetch()


# ─────────────────────────────────────────────────────────────────────────────
# Simulation
# ─────────────────────────────────────────────────────────────────────────────


def test_simulated_fetch_is_deterministic(sample_payload: dict) -> None:
    source = SimulatedSource(template=sample_payload, clock=lambda: 1_700_000_123.9)
    first, second = source.fetch(), source.fetch()
    assert first == second
    assert first.timestamp == 1_700_000_123


def test_simulated_positions_follow_time_of_day(sample_payload: dict) -> None:
    midnight = 1_700_006_400  # divisible by 86400
    quarter = midnight + 21600
    at_midnight = simulate_payload(sample_payload, midnight)
    at_quarter = simulate_payload(sample_payload, quarter)

    moon0 = at_midnight["moon"]["detailed"]["position"]
    moon6 = at_quarter["moon"]["detailed"]["position"]
    assert moon0["azimuth"] == pytest.approx(0.0)
    assert moon0["altitude"] == pytest.approx(0.0)
    assert moon6["azimuth"] == pytest.approx(90.0)
    assert moon6["altitude"] == pytest.approx(60.0)
    assert moon6["distance"] == pytest.approx(404400.0)
    assert at_quarter["sun"]["position"]["azimuth"] == pytest.approx(270.0)
    assert at_quarter["sun"]["position"]["altitude"] == pytest.approx(50 * math.sin(math.pi / 4))
    assert at_quarter["moon"]["illumination"].endswith("%")
    # the template itself is left untouched
    assert sample_payload["timestamp"] != midnight


def test_backfill_week_at_five_minutes() -> None:
    now = 1_700_000_000
    history = generate_backfill(now, window_seconds=604800, period_seconds=300)

    for series in (history.moon_series, history.sun_series):
        assert len(series) == 2017
        ts = [o.timestamp for o in series]
        assert ts[0] == now - 604800
        assert ts[-1] == now
        assert all(b - a == 300 for a, b in zip(ts, ts[1:]))
    assert history.last_timestamp == now


def test_backfill_distance_steps_once_per_day() -> None:
    history = generate_backfill(1_700_000_000)

    for series, base in ((history.moon_series, 384400.0), (history.sun_series, 149600000.0)):
        distances = [o.distance for o in series]
        steps = {b - a for a, b in zip(distances, distances[1:])}
        assert steps <= {0.0, -10000.0}
        counts = Counter(distances)
        assert all(count <= 288 for count in counts.values())
        assert sorted(counts.values()) == [1] + [288] * 7
        assert distances[-1] == base

    assert {o.altitude for o in history.sun_series} == {-50.0}
    assert {o.azimuth for o in history.sun_series} == {320.0}
    assert all(-30.0 <= o.altitude <= 30.0 for o in history.moon_series)


# ─────────────────────────────────────────────────────────────────────────────
# Source selection
# ─────────────────────────────────────────────────────────────────────────────


def test_select_source_by_credential() -> None:
    config = DashboardConfig()
    assert select_source(None, config) == (None, SourceMode.UNINITIALIZED)

    source, mode = select_source("Demo", config)
    assert mode is SourceMode.SIMULATED
    assert isinstance(source, SimulatedSource)

    source, mode = select_source("x" * 50, config)
    assert mode is SourceMode.LIVE
    assert isinstance(source, LiveSource)
    assert source.latitude == config.latitude


def test_payload_helper_builds_parseable_payload(sample_payload: dict) -> None:
    pair = parse_observations(payload_at(sample_payload, 42, moon_alt=3.5))
    assert pair.timestamp == 42
    assert pair.moon.altitude == 3.5
