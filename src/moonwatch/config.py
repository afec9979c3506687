"""Environment-driven configuration. Entry points call load_dotenv() before load_config()."""

import os
from dataclasses import dataclass
from pathlib import Path

_ROOT = Path(__file__).parent.parent.parent

SECONDS_PER_DAY = 86400
DEMO_API_KEY = "Demo"  # Sentinel credential that selects the simulated source
API_KEY_LENGTH = 50


class ConfigError(Exception):
    """Invalid configuration value."""


@dataclass(frozen=True)
class DashboardConfig:
    api_key: str | None = None
    days_shown: int = 7
    samples_per_hour: int = 12  # One sample every 5 minutes
    refresh_interval_ms: int = 5 * 60 * 1000
    latitude: float = 51.4768
    longitude: float = -0.0004
    storage: str = "file"  # "file" or "browser"
    data_path: Path = _ROOT / "results" / "moonwatch.json"
    log_level: str = "INFO"

    @property
    def window_seconds(self) -> int:
        return self.days_shown * SECONDS_PER_DAY

    @property
    def max_points(self) -> int:
        return self.days_shown * self.samples_per_hour * 24

    @property
    def sample_period_seconds(self) -> int:
        return 3600 // self.samples_per_hour


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float, low: float, high: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if not low <= value <= high:
        raise ConfigError(f"{name} must be within [{low}, {high}], got {value}")
    return value


def load_config() -> DashboardConfig:
    """Build a DashboardConfig from MOONWATCH_* environment variables.

    Returns:
        Frozen configuration with defaults for anything unset.

    Raises:
        ConfigError: When a variable is set but malformed or out of range.
    """
    storage = os.environ.get("MOONWATCH_STORAGE", "file").strip().lower()
    if storage not in {"file", "browser"}:
        raise ConfigError(f"MOONWATCH_STORAGE must be 'file' or 'browser', got {storage!r}")

    samples_per_hour = _env_int("MOONWATCH_SAMPLES_PER_HOUR", 12)
    if 3600 % samples_per_hour:
        raise ConfigError("MOONWATCH_SAMPLES_PER_HOUR must divide 3600 evenly")

    data_path = os.environ.get("MOONWATCH_DATA_PATH")
    return DashboardConfig(
        api_key=os.environ.get("MOONWATCH_API_KEY") or None,
        days_shown=_env_int("MOONWATCH_DAYS_SHOWN", 7),
        samples_per_hour=samples_per_hour,
        refresh_interval_ms=_env_int("MOONWATCH_REFRESH_INTERVAL_MS", 5 * 60 * 1000, 1000),
        latitude=_env_float("MOONWATCH_LATITUDE", 51.4768, -90.0, 90.0),
        longitude=_env_float("MOONWATCH_LONGITUDE", -0.0004, -180.0, 180.0),
        storage=storage,
        data_path=Path(data_path) if data_path else DashboardConfig.data_path,
        log_level=os.environ.get("MOONWATCH_LOG_LEVEL", "INFO").upper(),
    )
