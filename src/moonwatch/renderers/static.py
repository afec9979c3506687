"""Matplotlib static PNG renderer."""

from datetime import datetime
from pathlib import Path

import matplotlib.dates as mdates
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from pytz import utc

from moonwatch.models import HistoryStore, Observation

_ROOT = Path(__file__).parent.parent.parent.parent
_BG = "#0d1b35"


def _times(series: tuple[Observation, ...]) -> list[datetime]:
    return [datetime.fromtimestamp(o.timestamp, tz=utc) for o in series]


def render_static_chart(history: HistoryStore, chart_width: int = 12) -> Figure:
    """Render moon movement, sun movement, and distances as three stacked panels.

    Args:
        history: Series to plot.
        chart_width: Output image width in inches.

    Returns:
        matplotlib Figure object.
    """
    fig, (ax_moon, ax_sun, ax_dist) = plt.subplots(
        3, 1, figsize=(chart_width, chart_width * 0.9), sharex=True
    )
    fig.patch.set_facecolor(_BG)

    panels = (
        (ax_moon, history.moon_series, "Moon", ("#4da8da", "#f7d794")),
        (ax_sun, history.sun_series, "Sun", ("#ffc107", "#fd7e14")),
    )
    for ax, series, label, (alt_color, az_color) in panels:
        times = _times(series)
        ax.plot(times, [o.altitude for o in series], color=alt_color, linewidth=1)
        ax.set_ylim(-90, 90)
        ax.set_ylabel(f"{label} altitude (°)", color=alt_color)
        twin = ax.twinx()
        twin.plot(times, [o.azimuth for o in series], color=az_color, linewidth=0.8)
        twin.set_ylim(0, 360)
        twin.set_ylabel(f"{label} azimuth (°)", color=az_color)

    ax_dist.plot(
        _times(history.moon_series),
        [o.distance / 1000 for o in history.moon_series],
        color="#4da8da",
        linewidth=1,
    )
    ax_dist.set_ylabel("Moon distance (thousand km)", color="#4da8da")
    sun_twin = ax_dist.twinx()
    sun_twin.plot(
        _times(history.sun_series),
        [o.distance / 1_000_000 for o in history.sun_series],
        color="#ffc107",
        linewidth=1,
    )
    sun_twin.set_ylabel("Sun distance (million km)", color="#ffc107")
    ax_dist.xaxis.set_major_formatter(mdates.DateFormatter("%m-%d %H:%M", tz=utc))

    for ax in fig.axes:
        ax.set_facecolor(_BG)
        ax.tick_params(colors="#e6e6e6")

    fig.tight_layout()
    return fig


def save_static_chart(history: HistoryStore, output_path: Path | None = None) -> Path:
    """Save the history charts as a PNG file.

    Args:
        history: Series to plot.
        output_path: Destination path. Defaults to results/moonwatch.png.

    Returns:
        Path to the saved file.
    """
    if output_path is None:
        output_path = _ROOT / "results" / "moonwatch.png"

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig = render_static_chart(history)
    fig.savefig(output_path, facecolor=_BG)
    plt.close(fig)
    return output_path
