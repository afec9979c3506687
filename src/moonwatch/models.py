"""Data model definitions — explicit boundaries between source, history, and render layers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Observation:
    """One timestamped position reading for a single body."""

    timestamp: int  # Unix epoch seconds
    altitude: float  # Degrees above the horizon (-90..90)
    azimuth: float  # Degrees clockwise from north (0..360)
    distance: float  # Kilometres from the observer

    def to_dict(self) -> dict[str, float]:
        return {
            "timestamp": self.timestamp,
            "altitude": self.altitude,
            "azimuth": self.azimuth,
            "distance": self.distance,
        }


@dataclass(frozen=True)
class ObservationPair:
    """Moon and sun readings parsed from a single payload."""

    moon: Observation
    sun: Observation
    payload: dict[str, Any] = field(compare=False, repr=False)

    @property
    def timestamp(self) -> int:
        return self.moon.timestamp


@dataclass(frozen=True)
class HistoryStore:
    """Rolling history of both series. Only SampleStore.ingest() produces new ones."""

    moon_series: tuple[Observation, ...] = ()
    sun_series: tuple[Observation, ...] = ()
    last_timestamp: int | None = None

    def is_empty(self) -> bool:
        return not self.moon_series and not self.sun_series


@dataclass(frozen=True)
class JoinedRow:
    """One table row: a moon sample and the sun sample sharing its timestamp."""

    timestamp: int
    moon: Observation
    sun: Observation | None


class SourceMode(Enum):
    LIVE = "live"
    SIMULATED = "simulated"
    UNINITIALIZED = "uninitialized"


class SchedulerState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FIRING = "firing"


@dataclass(frozen=True)
class RefreshState:
    """Transient refresh bookkeeping. Rebuilt every session."""

    next_refresh_at_ms: int | None
    source_mode: SourceMode


@dataclass(frozen=True)
class FieldChange:
    """A single field that differs between two consecutive payloads."""

    label: str  # Display label ("Moon altitude (°)")
    old_value: Any
    new_value: Any
    format_hint: str  # "scientific", "fixed", or "text"


class LoadStatus(Enum):
    EMPTY = "empty"  # Nothing persisted yet
    RESTORED = "restored"  # Blob read back without loss
    RECOVERED = "recovered"  # Blob read back, malformed entries dropped
    FALLBACK = "fallback"  # Corrupt or mismatched blob, started empty


@dataclass(frozen=True)
class LoadResult:
    history: HistoryStore
    status: LoadStatus
    dropped: int = 0


class IngestStatus(Enum):
    ACCEPTED = "accepted"
    REJECTED_DUPLICATE = "rejected_duplicate"


@dataclass(frozen=True)
class IngestResult:
    history: HistoryStore
    status: IngestStatus
    dropped_invalid: int = 0  # Entries removed by shape validation
    trimmed: int = 0  # Entries removed by the window or capacity limit

    @property
    def accepted(self) -> bool:
        return self.status is IngestStatus.ACCEPTED
