"""Plotly time-series charts for the moon/sun history.

Timestamps are converted to UTC datetimes; the x range always spans the full
retention window ending at the newest sample.
"""

from datetime import datetime, timedelta

import plotly.graph_objects as go
from plotly.subplots import make_subplots
from pytz import utc

from moonwatch.models import HistoryStore, Observation

_BG = "#0d1b35"
_GRID = "rgba(255, 255, 255, 0.1)"
_TEXT = "#e6e6e6"

MOON_COLORS = ("#4da8da", "#f7d794")  # altitude, azimuth
SUN_COLORS = ("#ffc107", "#fd7e14")


def _times(series: tuple[Observation, ...]) -> list[datetime]:
    return [datetime.fromtimestamp(o.timestamp, tz=utc) for o in series]


def window_range(history: HistoryStore, window_seconds: int) -> list[datetime] | None:
    """[start, end] for the x axis, or None when there is no data."""
    if history.last_timestamp is None:
        return None
    end = datetime.fromtimestamp(history.last_timestamp, tz=utc)
    return [end - timedelta(seconds=window_seconds), end]


def _style(fig: go.Figure, title: str, x_range: list[datetime] | None) -> go.Figure:
    fig.update_layout(
        title=dict(text=title, font=dict(color=_TEXT)),
        paper_bgcolor=_BG,
        plot_bgcolor=_BG,
        font=dict(color=_TEXT),
        margin=dict(l=40, r=40, t=50, b=30),
        height=320,
        legend=dict(orientation="h", y=-0.2),
        hovermode="x unified",
    )
    fig.update_xaxes(gridcolor=_GRID, range=x_range, tickformat="%H:%M")
    fig.update_yaxes(gridcolor=_GRID)
    return fig


def render_position_chart(
    series: tuple[Observation, ...],
    body: str,
    window_seconds: int,
    last_timestamp: int | None = None,
) -> go.Figure:
    """Altitude (left axis, -90..90) and azimuth (right axis, 0..360) over time."""
    colors = MOON_COLORS if body == "moon" else SUN_COLORS
    label = "Moon" if body == "moon" else "Sun"
    times = _times(series)

    fig = make_subplots(specs=[[{"secondary_y": True}]])
    fig.add_trace(
        go.Scatter(
            x=times,
            y=[o.altitude for o in series],
            name=f"{label} Altitude",
            line=dict(color=colors[0], shape="spline"),
            fill="tozeroy",
        ),
        secondary_y=False,
    )
    fig.add_trace(
        go.Scatter(
            x=times,
            y=[o.azimuth for o in series],
            name=f"{label} Azimuth",
            line=dict(color=colors[1], shape="spline"),
        ),
        secondary_y=True,
    )
    fig.update_yaxes(title_text="Altitude (°)", range=[-90, 90], secondary_y=False)
    fig.update_yaxes(
        title_text="Azimuth (°)", range=[0, 360], showgrid=False, secondary_y=True
    )
    x_range = window_range(HistoryStore(last_timestamp=last_timestamp), window_seconds)
    return _style(fig, f"{label} Movement", x_range)


def render_distance_chart(history: HistoryStore, window_seconds: int) -> go.Figure:
    """Moon distance in thousand km (left) and sun distance in million km (right)."""
    fig = make_subplots(specs=[[{"secondary_y": True}]])
    fig.add_trace(
        go.Scatter(
            x=_times(history.moon_series),
            y=[o.distance / 1000 for o in history.moon_series],
            name="Moon Distance",
            line=dict(color=MOON_COLORS[0]),
        ),
        secondary_y=False,
    )
    fig.add_trace(
        go.Scatter(
            x=_times(history.sun_series),
            y=[o.distance / 1_000_000 for o in history.sun_series],
            name="Sun Distance",
            line=dict(color=SUN_COLORS[0]),
        ),
        secondary_y=True,
    )
    fig.update_yaxes(title_text="Moon Distance (thousand km)", secondary_y=False)
    fig.update_yaxes(title_text="Sun Distance (million km)", showgrid=False, secondary_y=True)
    return _style(fig, "Celestial Distances", window_range(history, window_seconds))


def render_history_charts(history: HistoryStore, window_seconds: int) -> dict[str, go.Figure]:
    """All three dashboard charts keyed by 'moon', 'sun', 'distance'."""
    return {
        "moon": render_position_chart(
            history.moon_series, "moon", window_seconds, history.last_timestamp
        ),
        "sun": render_position_chart(
            history.sun_series, "sun", window_seconds, history.last_timestamp
        ),
        "distance": render_distance_chart(history, window_seconds),
    }
