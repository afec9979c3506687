"""Field-level change detection between consecutive payloads."""

from collections import deque
from dataclasses import dataclass
from typing import Any

from moonwatch.models import FieldChange

# (category, dotted path within category, label). Order is display order.
COMPARED_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("moon", "detailed.position.altitude", "Moon altitude (°)"),
    ("moon", "detailed.position.azimuth", "Moon azimuth (°)"),
    ("moon", "detailed.position.distance", "Moon distance (km)"),
    ("moon", "phase", "Moon phase"),
    ("moon", "illumination", "Moon illumination"),
    ("moon", "moonrise", "Moonrise"),
    ("moon", "moonset", "Moonset"),
    ("moon", "next_lunar_eclipse.type", "Next lunar eclipse"),
    ("moon", "next_lunar_eclipse.timestamp", "Next lunar eclipse time"),
    ("sun", "position.altitude", "Sun altitude (°)"),
    ("sun", "position.azimuth", "Sun azimuth (°)"),
    ("sun", "position.distance", "Sun distance (km)"),
    ("sun", "day_length", "Day length"),
    ("sun", "sunrise_timestamp", "Sunrise"),
    ("sun", "sunset_timestamp", "Sunset"),
    ("sun", "solar_noon", "Solar noon"),
    ("sun", "next_solar_eclipse.type", "Next solar eclipse"),
    ("sun", "next_solar_eclipse.timestamp", "Next solar eclipse time"),
)


def _get_path(payload: Any, path: str) -> Any:
    node = payload
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_hint(old_value: Any, new_value: Any) -> str:
    """Scientific notation when either magnitude exceeds 1000, two decimals otherwise."""
    if not (_is_numeric(old_value) and _is_numeric(new_value)):
        return "text"
    if abs(old_value) > 1000 or abs(new_value) > 1000:
        return "scientific"
    return "fixed"


def format_value(value: Any, hint: str) -> str:
    if hint == "scientific" and _is_numeric(value):
        return f"{value:.2e}"
    if hint == "fixed" and _is_numeric(value):
        return f"{value:.2f}"
    return str(value)


def describe(change: FieldChange) -> str:
    """'Label: old → new' using the change's format hint."""
    old = format_value(change.old_value, change.format_hint)
    new = format_value(change.new_value, change.format_hint)
    return f"{change.label}: {old} → {new}"


def diff(new_payload: dict[str, Any], prev_payload: dict[str, Any] | None) -> list[FieldChange]:
    """Compare two payloads over COMPARED_FIELDS.

    Returns an empty list without a previous payload. Fields missing from
    either payload are treated as unchanged.
    """
    if prev_payload is None:
        return []

    changes: list[FieldChange] = []
    for category, path, label in COMPARED_FIELDS:
        old_value = _get_path(prev_payload.get(category), path)
        new_value = _get_path(new_payload.get(category), path)
        if old_value is None or new_value is None or old_value == new_value:
            continue
        changes.append(
            FieldChange(
                label=label,
                old_value=old_value,
                new_value=new_value,
                format_hint=format_hint(old_value, new_value),
            )
        )
    return changes


@dataclass(frozen=True)
class ChangeEntry:
    timestamp: int
    changes: tuple[FieldChange, ...]


class ChangeLog:
    """Newest-first log of recent non-empty diffs."""

    def __init__(self, max_entries: int = 4) -> None:
        self._entries: deque[ChangeEntry] = deque(maxlen=max_entries)

    def record(self, timestamp: int, changes: list[FieldChange]) -> bool:
        if not changes:
            return False
        self._entries.appendleft(ChangeEntry(timestamp=timestamp, changes=tuple(changes)))
        return True

    def entries(self) -> list[ChangeEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
