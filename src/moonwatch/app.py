"""Moonwatch — Streamlit dashboard for moon and sun positions."""

import datetime
import logging
from typing import Any

import streamlit as st
from dotenv import load_dotenv
from streamlit_autorefresh import st_autorefresh
from streamlit_js_eval import streamlit_js_eval

load_dotenv()

from moonwatch.browser_storage import BrowserBlobStore  # noqa: E402
from moonwatch.changes import describe  # noqa: E402
from moonwatch.config import load_config  # noqa: E402
from moonwatch.dashboard import Dashboard  # noqa: E402
from moonwatch.history import HISTORY_KEY, join_series  # noqa: E402
from moonwatch.i18n import t  # noqa: E402
from moonwatch.models import SourceMode  # noqa: E402
from moonwatch.renderers.plotly_charts import render_history_charts  # noqa: E402
from moonwatch.storage import CREDENTIAL_KEY, JsonFileBlobStore  # noqa: E402

_BOOTSTRAP_MAX_RUNS = 6
_BOOTSTRAP_RETRY_INTERVAL_MS = 250

config = load_config()
logging.basicConfig(
    level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# --- Language detection (browser-first via streamlit-js-eval) ---
# navigator.language is read once and cached in session_state.
# On the first run the JS call returns None; the rerun fills it in.
if "lang" not in st.session_state:
    _browser_lang: str | None = streamlit_js_eval(
        js_expressions="navigator.language", key="_lang_detect", height=0
    )
    if _browser_lang is not None:
        st.session_state.lang = "ko" if _browser_lang.lower().startswith("ko") else "en"

_lang: str = st.session_state.get("lang", "en")

st.set_page_config(
    page_title=t("page_title", _lang),
    page_icon="🌕",
    layout="wide",
)

st.markdown(
    """
    <style>
    html, body, [data-testid="stAppViewContainer"], [data-testid="stMain"] {
        background-color: #0d1b35 !important;
        color: #e6e6e6;
    }
    [data-testid="stHeader"], [data-testid="stToolbar"] { display: none !important; }
    iframe[title^="streamlit_js_eval"] { display: none !important; }
    .status-dot { display: inline-block; width: 0.7rem; height: 0.7rem; border-radius: 50%; margin-right: 0.4rem; }
    .status-dot.valid { background: #28a745; }
    .status-dot.demo { background: #ffc107; }
    .status-dot.invalid { background: #dc3545; }
    .change-entry { border-left: 2px solid rgba(201,169,110,0.3); padding-left: 0.8rem; margin-bottom: 0.6rem; }
    .change-entry.latest { border-left-color: #c9a96e; }
    .change-time { color: #c9a96e; font-size: 0.85rem; }
    </style>
    """,
    unsafe_allow_html=True,
)

# --- Storage bootstrap ---
if "blob_store" not in st.session_state:
    if config.storage == "browser":
        st.session_state.blob_store = BrowserBlobStore()
        st.session_state.storage_ready = False
        st.session_state.bootstrap_runs = 0
    else:
        st.session_state.blob_store = JsonFileBlobStore(config.data_path)
        st.session_state.storage_ready = True

if not st.session_state.storage_ready:
    retry_needed = st.session_state.blob_store.bootstrap([CREDENTIAL_KEY, HISTORY_KEY])
    st.session_state.bootstrap_runs += 1
    if retry_needed and st.session_state.bootstrap_runs < _BOOTSTRAP_MAX_RUNS:
        st_autorefresh(
            interval=_BOOTSTRAP_RETRY_INTERVAL_MS,
            limit=1,
            key=f"storage_bootstrap_{st.session_state.bootstrap_runs}",
        )
        st.stop()
    st.session_state.storage_ready = True


def _on_update(*_: Any) -> None:
    st.session_state.last_update = datetime.datetime.now()


# --- Dashboard instance (one per browser session) ---
if "dashboard" not in st.session_state:
    _dashboard = Dashboard(config, st.session_state.blob_store, renderer=_on_update)
    st.session_state.dashboard = _dashboard
    st.session_state.last_update = None
    _dashboard.start()

dashboard: Dashboard = st.session_state.dashboard

# One rerun per second keeps the countdown live and pumps the scheduler.
st_autorefresh(interval=1000, key="countdown_tick")
dashboard.scheduler.run_pending()


def _get(payload: dict[str, Any] | None, path: str, default: Any = "—") -> Any:
    node: Any = payload
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def _fmt_date(timestamp: Any) -> str:
    if not isinstance(timestamp, (int, float)):
        return "—"
    return datetime.datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d")


# --- Status bar ---
status_col, update_col, countdown_col = st.columns([2, 2, 2])
with status_col:
    mode = dashboard.source_mode
    if mode is SourceMode.LIVE:
        dot, text = "valid", f"{t('status_valid', _lang)} ({(dashboard.credential or '')[:6]}...)"
    elif mode is SourceMode.SIMULATED:
        dot, text = "demo", f"{t('status_demo', _lang)} · {t('key_preview_demo', _lang)}"
    else:
        dot, text = "invalid", t("status_invalid", _lang)
    st.markdown(f"<span class='status-dot {dot}'></span>{text}", unsafe_allow_html=True)
with update_col:
    if st.session_state.last_update is not None:
        st.caption(t("last_update", _lang).format(time=st.session_state.last_update.strftime("%H:%M:%S")))
with countdown_col:
    remaining = dashboard.scheduler.time_remaining()
    if remaining.total_seconds() > 0:
        total = int(remaining.total_seconds())
        st.caption(t("next_update", _lang).format(minutes=total // 60, seconds=total % 60))

# --- Key entry ---
if dashboard.source_mode is SourceMode.UNINITIALIZED:
    if dashboard.auth_failed:
        st.error(t("error_key_rejected", _lang))
    st.info(t("placeholder", _lang))
    key_col, save_col, demo_col = st.columns([4, 1, 1])
    with key_col:
        api_key = st.text_input(t("label_api_key", _lang), type="password")
    with save_col:
        st.markdown("<div style='height:1.9rem'></div>", unsafe_allow_html=True)
        if st.button(t("btn_save_key", _lang), use_container_width=True):
            if dashboard.save_credential(api_key):
                st.rerun()
            st.error(t("error_key_length", _lang))
    with demo_col:
        st.markdown("<div style='height:1.9rem'></div>", unsafe_allow_html=True)
        if st.button(t("btn_demo", _lang), use_container_width=True):
            dashboard.start_demo()
            st.rerun()
    st.stop()

action_col1, action_col2, _ = st.columns([1, 1, 4])
with action_col1:
    if st.button(t("btn_refresh", _lang), use_container_width=True):
        dashboard.scheduler.trigger_now()
        st.rerun()
with action_col2:
    if st.button(t("btn_remove_key", _lang), use_container_width=True):
        dashboard.remove_credential()
        st.rerun()

# --- Info panels ---
payload = dashboard.latest.payload if dashboard.latest is not None else None
moon_col, sun_col, events_col, viewing_col = st.columns(4)
with moon_col:
    st.subheader(f"{_get(payload, 'moon.emoji', '')} {t('section_moon', _lang)}")
    st.markdown(
        f"Phase: {_get(payload, 'moon.phase_name')} ({_get(payload, 'moon.illumination')})  \n"
        f"Age: {_get(payload, 'moon.age_days')} days  \n"
        f"Next rise: {_get(payload, 'moon.moonrise')}  \n"
        f"Next set: {_get(payload, 'moon.moonset')}  \n"
        f"Zodiac: {_get(payload, 'moon.zodiac.moon_sign')}"
    )
    if dashboard.latest is not None:
        moon = dashboard.latest.moon
        st.markdown(
            f"Distance: {moon.distance / 1000:.0f} thousand km  \n"
            f"Altitude: {moon.altitude:.1f}°  \n"
            f"Azimuth: {moon.azimuth:.1f}°"
        )
with sun_col:
    st.subheader(t("section_sun", _lang))
    st.markdown(
        f"Sunrise: {_get(payload, 'sun.sunrise_timestamp')}  \n"
        f"Sunset: {_get(payload, 'sun.sunset_timestamp')}  \n"
        f"Day length: {_get(payload, 'sun.day_length')}  \n"
        f"Solar noon: {_get(payload, 'sun.solar_noon')}"
    )
with events_col:
    st.subheader(t("section_events", _lang))
    st.markdown(
        f"**Next Solar Eclipse:** {_get(payload, 'sun.next_solar_eclipse.type')}  \n"
        f"{_fmt_date(_get(payload, 'sun.next_solar_eclipse.timestamp', None))}  \n"
        f"**Next Lunar Eclipse:** {_get(payload, 'moon.next_lunar_eclipse.type')}  \n"
        f"{_fmt_date(_get(payload, 'moon.next_lunar_eclipse.timestamp', None))}"
    )
with viewing_col:
    st.subheader(t("section_viewing", _lang))
    st.markdown(
        f"**Visibility:** {_get(payload, 'moon.detailed.visibility.visibility_rating')}  \n"
        f"**Phase quality:** {_get(payload, 'moon.detailed.visibility.viewing_conditions.phase_quality')}  \n"
        f"**Telescope:** {_get(payload, 'moon.detailed.visibility.viewing_conditions.recommended_equipment.telescope')}  \n"
        f"**Best time:** {_get(payload, 'moon.events.optimal_viewing_period.start_time')}"
        f" - {_get(payload, 'moon.events.optimal_viewing_period.end_time')}"
    )
    for rec in _get(payload, "moon.events.optimal_viewing_period.recommendations", []):
        st.markdown(f"• {rec}")

# --- Change log ---
entries = dashboard.change_log.entries()
if entries:
    st.subheader(t("section_changes", _lang))
    for index, entry in enumerate(entries):
        items = "".join(f"<li>{describe(c)}</li>" for c in entry.changes)
        when = datetime.datetime.fromtimestamp(entry.timestamp).strftime("%H:%M:%S")
        st.markdown(
            f"<div class='change-entry{' latest' if index == 0 else ''}'>"
            f"<div class='change-time'>Time: {when}</div><ul class='mb-0'>{items}</ul></div>",
            unsafe_allow_html=True,
        )

# --- Charts ---
if not dashboard.history.is_empty():
    charts = render_history_charts(dashboard.history, config.window_seconds)
    chart_col1, chart_col2 = st.columns(2)
    with chart_col1:
        st.plotly_chart(charts["moon"], use_container_width=True)
    with chart_col2:
        st.plotly_chart(charts["sun"], use_container_width=True)
    st.plotly_chart(charts["distance"], use_container_width=True)

    # --- Data table ---
    st.subheader(t("section_table", _lang))
    rows = [
        {
            "Time": datetime.datetime.fromtimestamp(row.timestamp).strftime("%Y-%m-%d %H:%M"),
            "Moon alt (°)": round(row.moon.altitude, 2),
            "Moon az (°)": round(row.moon.azimuth, 2),
            "Moon dist (thousand km)": round(row.moon.distance / 1000, 2),
            "Sun alt (°)": round(row.sun.altitude, 2) if row.sun else None,
            "Sun az (°)": round(row.sun.azimuth, 2) if row.sun else None,
            "Sun dist (million km)": round(row.sun.distance / 1_000_000, 2) if row.sun else None,
        }
        for row in join_series(dashboard.history)
    ]
    st.dataframe(rows, use_container_width=True, hide_index=True, height=320)
