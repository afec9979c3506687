"""Retention layer — validated, deduplicated, bounded moon/sun history with blob persistence."""

import json
import logging
import math
from collections.abc import Iterable
from typing import Any

from moonwatch.models import (
    HistoryStore,
    IngestResult,
    IngestStatus,
    JoinedRow,
    LoadResult,
    LoadStatus,
    Observation,
)
from moonwatch.storage import BlobStore

log = logging.getLogger(__name__)

HISTORY_KEY = "astronomicalData"
_FIELDS = ("timestamp", "altitude", "azimuth", "distance")


class ValidationError(Exception):
    """Malformed persisted or incoming data."""


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid reading
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def coerce_observation(raw: Any) -> Observation | None:
    """Build an Observation from a mapping or Observation. Returns None if malformed."""
    if isinstance(raw, Observation):
        raw = raw.to_dict()
    if not isinstance(raw, dict):
        return None
    if not all(_is_number(raw.get(name)) for name in _FIELDS):
        return None
    timestamp = raw["timestamp"]
    if isinstance(timestamp, float):
        if not timestamp.is_integer():
            return None
        timestamp = int(timestamp)
    return Observation(
        timestamp=timestamp,
        altitude=float(raw["altitude"]),
        azimuth=float(raw["azimuth"]),
        distance=float(raw["distance"]),
    )


def validate_entries(raw: Iterable[Any]) -> tuple[Observation, ...]:
    """Keep only entries carrying four numeric fields. Idempotent."""
    kept = (coerce_observation(item) for item in raw)
    return tuple(obs for obs in kept if obs is not None)


def _sorted_unique(series: Iterable[Observation]) -> tuple[Observation, ...]:
    """Sort ascending by timestamp; the first entry seen for a timestamp wins."""
    seen: set[int] = set()
    unique: list[Observation] = []
    for obs in series:
        if obs.timestamp in seen:
            continue
        seen.add(obs.timestamp)
        unique.append(obs)
    return tuple(sorted(unique, key=lambda o: o.timestamp))


def to_blob(history: HistoryStore) -> str:
    """Serialise to the persisted JSON shape."""
    return json.dumps(
        {
            "moon": [o.to_dict() for o in history.moon_series],
            "sun": [o.to_dict() for o in history.sun_series],
            "lastTimestamp": history.last_timestamp,
        },
        separators=(",", ":"),
    )


def from_blob(raw: str | None) -> LoadResult:
    """Parse a persisted blob. Never raises.

    Missing blob → EMPTY. Invalid JSON, a non-object, or non-list series →
    FALLBACK with an empty history. Otherwise entries are validated and the
    result is RESTORED, or RECOVERED when any entry had to be dropped.
    """
    if raw is None:
        return LoadResult(HistoryStore(), LoadStatus.EMPTY)
    try:
        data = json.loads(raw)
    except ValueError as e:
        log.warning("Stored history is not valid JSON, starting empty: %s", e)
        return LoadResult(HistoryStore(), LoadStatus.FALLBACK)
    if not isinstance(data, dict):
        log.warning("Stored history is not an object, starting empty")
        return LoadResult(HistoryStore(), LoadStatus.FALLBACK)
    moon_raw, sun_raw = data.get("moon"), data.get("sun")
    if not isinstance(moon_raw, list) or not isinstance(sun_raw, list):
        log.warning("Stored history has no moon/sun lists, starting empty")
        return LoadResult(HistoryStore(), LoadStatus.FALLBACK)

    moon = _sorted_unique(validate_entries(moon_raw))
    sun = _sorted_unique(validate_entries(sun_raw))
    last = data.get("lastTimestamp")
    if not _is_number(last):
        last = None
    elif isinstance(last, float):
        last = int(last)

    dropped = len(moon_raw) + len(sun_raw) - len(moon) - len(sun)
    history = HistoryStore(moon_series=moon, sun_series=sun, last_timestamp=last)
    if dropped:
        log.warning("Dropped %d malformed history entries on load", dropped)
        return LoadResult(history, LoadStatus.RECOVERED, dropped)
    return LoadResult(history, LoadStatus.RESTORED)


def _retain(
    series: tuple[Observation, ...], cutoff: int, max_points: int
) -> tuple[tuple[Observation, ...], int]:
    """Drop entries at or before cutoff, then keep the max_points most recent."""
    windowed = [o for o in series if o.timestamp > cutoff]
    windowed.sort(key=lambda o: o.timestamp)
    if len(windowed) > max_points:
        windowed = windowed[len(windowed) - max_points :]
    return tuple(windowed), len(series) - len(windowed)


class SampleStore:
    """Owns persistence of the history blob and the ingest policy."""

    def __init__(self, blob_store: BlobStore, key: str = HISTORY_KEY) -> None:
        self._blobs = blob_store
        self._key = key

    def load(self) -> LoadResult:
        return from_blob(self._blobs.get(self._key))

    def persist(self, history: HistoryStore) -> None:
        """Write the whole history in a single set() call."""
        # Serialise first so a failure here leaves the stored blob untouched.
        blob = to_blob(history)
        self._blobs.set(self._key, blob)

    def clear(self) -> HistoryStore:
        self._blobs.delete(self._key)
        return HistoryStore()

    def ingest(
        self,
        history: HistoryStore,
        moon_obs: Observation,
        sun_obs: Observation,
        now_seconds: int,
        window_seconds: int,
        max_points: int,
    ) -> IngestResult:
        """Merge one moon/sun sample into history and persist the result.

        The moon timestamp is the only dedupe key: if it already exists in the
        moon series the whole sample is rejected and nothing is written. A sun
        reading whose timestamp is already in the sun series (possible after a
        recovered load) is not appended again; the stored one is kept.

        Steps run in this order: window cutoff, append, sort, capacity cap, then
        dropping malformed entries. A malformed entry among the newest
        max_points therefore still occupies a slot until it is dropped.

        Args:
            history: Current history.
            moon_obs: New moon reading.
            sun_obs: New sun reading.
            now_seconds: Reference time for the retention window.
            window_seconds: Entries with timestamp <= now - window are dropped.
            max_points: Per-series capacity, applied after the window.

        Returns:
            IngestResult carrying the new (or unchanged) history.
        """
        if any(o.timestamp == moon_obs.timestamp for o in history.moon_series):
            log.debug("Skipping duplicate sample at %d", moon_obs.timestamp)
            return IngestResult(history, IngestStatus.REJECTED_DUPLICATE)

        cutoff = now_seconds - window_seconds
        moon_raw = history.moon_series + (moon_obs,)
        sun_raw = history.sun_series
        if all(o.timestamp != sun_obs.timestamp for o in sun_raw):
            sun_raw += (sun_obs,)

        moon_kept, moon_trimmed = _retain(moon_raw, cutoff, max_points)
        sun_kept, sun_trimmed = _retain(sun_raw, cutoff, max_points)
        moon = validate_entries(moon_kept)
        sun = validate_entries(sun_kept)
        dropped_invalid = len(moon_kept) - len(moon) + len(sun_kept) - len(sun)

        updated = HistoryStore(
            moon_series=moon, sun_series=sun, last_timestamp=moon_obs.timestamp
        )
        self.persist(updated)
        log.info(
            "Stored sample at %d (%d moon / %d sun points, %d trimmed)",
            moon_obs.timestamp,
            len(moon),
            len(sun),
            moon_trimmed + sun_trimmed,
        )
        return IngestResult(
            updated,
            IngestStatus.ACCEPTED,
            dropped_invalid=dropped_invalid,
            trimmed=moon_trimmed + sun_trimmed,
        )


def join_series(history: HistoryStore) -> list[JoinedRow]:
    """Pair each moon sample with the sun sample at the same timestamp, newest first."""
    sun_by_ts = {o.timestamp: o for o in history.sun_series}
    rows = [
        JoinedRow(timestamp=m.timestamp, moon=m, sun=sun_by_ts.get(m.timestamp))
        for m in history.moon_series
    ]
    rows.sort(key=lambda r: r.timestamp, reverse=True)
    return rows
