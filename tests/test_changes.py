# tests/test_changes.py
from __future__ import annotations

import copy

from moonwatch.changes import ChangeLog, describe, diff, format_hint, format_value
from moonwatch.models import FieldChange


def test_no_previous_payload_means_no_changes(sample_payload: dict) -> None:
    assert diff(sample_payload, None) == []


def test_payload_compared_to_itself_is_unchanged(sample_payload: dict) -> None:
    assert diff(sample_payload, sample_payload) == []
    assert diff(sample_payload, copy.deepcopy(sample_payload)) == []


def test_reports_changed_fields_in_display_order(sample_payload: dict) -> None:
    new = copy.deepcopy(sample_payload)
    new["sun"]["sunset_timestamp"] = "16:03"
    new["moon"]["detailed"]["position"]["altitude"] = -10.0
    new["moon"]["detailed"]["position"]["distance"] = 362500.0

    changes = diff(new, sample_payload)

    assert [c.label for c in changes] == [
        "Moon altitude (°)",
        "Moon distance (km)",
        "Sunset",
    ]
    altitude, distance, sunset = changes
    assert (altitude.old_value, altitude.new_value, altitude.format_hint) == (-12.4, -10.0, "fixed")
    assert distance.format_hint == "scientific"
    assert sunset.format_hint == "text"


def test_field_missing_on_either_side_is_not_a_change(sample_payload: dict) -> None:
    new = copy.deepcopy(sample_payload)
    del new["moon"]["moonrise"]
    del new["sun"]["next_solar_eclipse"]
    new["moon"]["phase"] = 0.5
    prev = copy.deepcopy(sample_payload)
    del prev["sun"]["day_length"]
    new["sun"]["day_length"] = "08:00"

    assert [c.label for c in diff(new, prev)] == ["Moon phase"]


def test_eclipse_fields_are_compared(sample_payload: dict) -> None:
    new = copy.deepcopy(sample_payload)
    new["moon"]["next_lunar_eclipse"]["type"] = "Partial Lunar Eclipse"
    new["sun"]["next_solar_eclipse"]["timestamp"] += 86400

    labels = [c.label for c in diff(new, sample_payload)]
    assert labels == ["Next lunar eclipse", "Next solar eclipse time"]


def test_formatting() -> None:
    assert format_hint(12.345, 13) == "fixed"
    assert format_hint(999.0, 1000.5) == "scientific"
    assert format_hint(-2000, 5) == "scientific"
    assert format_hint("08:00", "08:01") == "text"
    assert format_hint(True, False) == "text"
    assert format_value(12.346, "fixed") == "12.35"
    assert format_value(384400.0, "scientific") == "3.84e+05"
    assert format_value("08:00", "text") == "08:00"
    change = FieldChange("Moon distance (km)", 384400.0, 390000.0, "scientific")
    assert describe(change) == "Moon distance (km): 3.84e+05 → 3.90e+05"


def test_change_log_keeps_four_newest_first() -> None:
    log = ChangeLog()
    change = [FieldChange("Moon phase", 0.1, 0.2, "fixed")]

    assert not log.record(0, [])
    for ts in range(1, 7):
        assert log.record(ts, change)

    assert len(log) == 4
    assert [e.timestamp for e in log.entries()] == [6, 5, 4, 3]
    log.clear()
    assert log.entries() == []
