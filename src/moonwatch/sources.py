"""Observation sources — the live moon-phase API and a deterministic simulator."""

import copy
import json
import logging
import math
import time
from collections.abc import Callable
from email.utils import formatdate
from pathlib import Path
from typing import Any, Protocol

import httpx
import numpy as np

from moonwatch.config import DEMO_API_KEY, SECONDS_PER_DAY, DashboardConfig
from moonwatch.history import ValidationError, coerce_observation
from moonwatch.models import HistoryStore, Observation, ObservationPair, SourceMode

log = logging.getLogger(__name__)

API_HOST = "moon-phase.p.rapidapi.com"
API_URL = f"https://{API_HOST}/advanced"

_SAMPLE_PAYLOAD_PATH = Path(__file__).parent / "resources" / "sample_payload.json"

MOON_MEAN_DISTANCE_KM = 384400.0
SUN_MEAN_DISTANCE_KM = 149600000.0
LUNAR_MONTH_SECONDS = 29.5 * SECONDS_PER_DAY
BACKFILL_DISTANCE_STEP_KM = 10000.0


class SourceError(Exception):
    """Acquisition failure."""


class AuthError(SourceError):
    """Credential rejected by the live API. The stored key must be discarded."""


class TransientError(SourceError):
    """Network or parse failure. The next scheduled tick retries."""


class ObservationSource(Protocol):
    mode: SourceMode

    def fetch(self) -> ObservationPair: ...


def _lookup(payload: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts. Missing steps yield None."""
    node = payload
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def _read_observation(payload: dict[str, Any], timestamp: Any, prefix: str) -> Observation:
    raw = {
        "timestamp": timestamp,
        "altitude": _lookup(payload, f"{prefix}.altitude"),
        "azimuth": _lookup(payload, f"{prefix}.azimuth"),
        "distance": _lookup(payload, f"{prefix}.distance"),
    }
    obs = coerce_observation(raw)
    if obs is None:
        raise ValidationError(f"Malformed {prefix} reading: {raw}")
    return obs


def parse_observations(payload: Any) -> ObservationPair:
    """Extract the moon and sun readings from an API payload.

    Raises:
        ValidationError: When the timestamp or any position field is missing or not numeric.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Payload is not an object")
    timestamp = payload.get("timestamp")
    moon = _read_observation(payload, timestamp, "moon.detailed.position")
    sun = _read_observation(payload, timestamp, "sun.position")
    return ObservationPair(moon=moon, sun=sun, payload=payload)


class LiveSource:
    """Single GET against the RapidAPI moon-phase endpoint per fetch."""

    mode = SourceMode.LIVE

    def __init__(
        self,
        api_key: str,
        latitude: float,
        longitude: float,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.latitude = latitude
        self.longitude = longitude
        self._owns_client = client is None
        self._client = client or httpx.Client()

    def fetch(self) -> ObservationPair:
        """Fetch and classify one response.

        Raises:
            AuthError: On 401/403 or an error message about the key or subscription.
            TransientError: On network errors, other non-200 answers, or unusable bodies.
        """
        headers = {"x-rapidapi-host": API_HOST, "x-rapidapi-key": self.api_key}
        params = {"lat": self.latitude, "lon": self.longitude}
        try:
            resp = self._client.get(API_URL, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise TransientError(f"Request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        message = ""
        if isinstance(data, dict):
            message = str(data.get("message") or data.get("error") or "")

        if resp.status_code in (401, 403) or "API key" in message or "not subscribed" in message:
            raise AuthError(message or f"HTTP {resp.status_code}")
        if resp.status_code != 200 or message:
            raise TransientError(message or f"HTTP {resp.status_code}")
        if data is None:
            raise TransientError("Response body is not JSON")

        try:
            return parse_observations(data)
        except ValidationError as e:
            raise TransientError(str(e)) from e

    def close(self) -> None:
        """Close the HTTP client if this source created it. Injected clients stay open."""
        if self._owns_client:
            self._client.close()


def load_sample_payload() -> dict[str, Any]:
    with _SAMPLE_PAYLOAD_PATH.open(encoding="utf-8") as f:
        return json.load(f)


def simulate_payload(template: dict[str, Any], now: int) -> dict[str, Any]:
    """Clone template and move the moon and sun to plausible positions for `now`.

    Positions are smooth periodic functions of the time of day; the moon phase
    follows a 29.5-day cycle.
    """
    data = copy.deepcopy(template)
    data["timestamp"] = now
    data["datestamp"] = formatdate(now, usegmt=True)

    day_progress = (now % SECONDS_PER_DAY) / SECONDS_PER_DAY
    wave = math.sin(day_progress * math.pi * 2)

    moon_pos = data.setdefault("moon", {}).setdefault("detailed", {}).setdefault("position", {})
    moon_pos["azimuth"] = (day_progress * 360) % 360
    moon_pos["altitude"] = wave * 60
    moon_pos["distance"] = MOON_MEAN_DISTANCE_KM + wave * 20000

    sun_pos = data.setdefault("sun", {}).setdefault("position", {})
    sun_pos["azimuth"] = (day_progress * 360 + 180) % 360
    sun_pos["altitude"] = math.sin(day_progress * math.pi) * 50
    sun_pos["distance"] = SUN_MEAN_DISTANCE_KM + wave * 2500000

    phase = (now % LUNAR_MONTH_SECONDS) / LUNAR_MONTH_SECONDS
    data["moon"]["phase"] = phase
    data["moon"]["illumination"] = f"{round(phase * 100)}%"
    return data


class SimulatedSource:
    """Deterministic stand-in for the live API, driven by wall-clock time."""

    mode = SourceMode.SIMULATED

    def __init__(
        self,
        template: dict[str, Any] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._template = template if template is not None else load_sample_payload()
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def fetch(self) -> ObservationPair:
        return parse_observations(simulate_payload(self._template, self.now()))


def generate_backfill(
    now_seconds: int,
    window_seconds: int = 7 * SECONDS_PER_DAY,
    period_seconds: int = 300,
) -> HistoryStore:
    """Synthesize a full window of history ending at now_seconds, oldest first.

    window_seconds // period_seconds + 1 points per series (both ends included).
    Distances step by a fixed amount once per simulated day instead of moving
    continuously; the sun is parked below the horizon.

    Args:
        now_seconds: Timestamp of the newest point.
        window_seconds: Depth of the history.
        period_seconds: Spacing between points.

    Returns:
        HistoryStore with last_timestamp = now_seconds.
    """
    steps_per_day = SECONDS_PER_DAY // period_seconds
    steps_back = np.arange(window_seconds // period_seconds, -1, -1)
    timestamps = now_seconds - steps_back * period_seconds
    day_progress = (timestamps % SECONDS_PER_DAY) / SECONDS_PER_DAY
    distance_offset = (steps_back // steps_per_day) * BACKFILL_DISTANCE_STEP_KM

    moon_alt = np.sin(day_progress * np.pi * 2) * 30
    moon_az = (day_progress * 360) % 360
    moon_dist = MOON_MEAN_DISTANCE_KM + distance_offset
    sun_dist = SUN_MEAN_DISTANCE_KM + distance_offset

    moon = tuple(
        Observation(
            timestamp=int(ts), altitude=float(alt), azimuth=float(az), distance=float(dist)
        )
        for ts, alt, az, dist in zip(timestamps, moon_alt, moon_az, moon_dist)
    )
    sun = tuple(
        Observation(timestamp=int(ts), altitude=-50.0, azimuth=320.0, distance=float(dist))
        for ts, dist in zip(timestamps, sun_dist)
    )
    return HistoryStore(moon_series=moon, sun_series=sun, last_timestamp=now_seconds)


def select_source(
    credential: str | None,
    config: DashboardConfig,
    client: httpx.Client | None = None,
) -> tuple[ObservationSource | None, SourceMode]:
    """Pick the source for a stored credential. The demo sentinel selects the simulator."""
    if not credential:
        return None, SourceMode.UNINITIALIZED
    if credential == DEMO_API_KEY:
        return SimulatedSource(), SourceMode.SIMULATED
    return (
        LiveSource(credential, config.latitude, config.longitude, client=client),
        SourceMode.LIVE,
    )
