"""Headless poller: keeps the JSON history file current and redraws a PNG after each sample.

Configure through MOONWATCH_* variables (or a .env file), then run:
    uv run moonwatch-watch
"""

import logging

from dotenv import load_dotenv

from moonwatch.config import load_config
from moonwatch.dashboard import Dashboard
from moonwatch.models import FieldChange, HistoryStore, ObservationPair, SourceMode
from moonwatch.renderers.static import save_static_chart
from moonwatch.storage import JsonFileBlobStore

log = logging.getLogger("moonwatch.watch")


def _save_chart(history: HistoryStore, pair: ObservationPair, changes: list[FieldChange]) -> None:
    path = save_static_chart(history)
    log.info("Sample %d: %d changes, chart saved to %s", pair.timestamp, len(changes), path)


def main() -> None:
    load_dotenv()
    config = load_config()
    logging.basicConfig(
        level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    dashboard = Dashboard(config, JsonFileBlobStore(config.data_path), renderer=_save_chart)
    if dashboard.source_mode is SourceMode.UNINITIALIZED:
        raise SystemExit("No API key stored. Set MOONWATCH_API_KEY (or 'Demo').")

    log.info(
        "Polling every %ds, keeping %d points per series in %s",
        config.refresh_interval_ms // 1000,
        config.max_points,
        config.data_path,
    )
    dashboard.start()
    try:
        dashboard.scheduler.run_forever()
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
    finally:
        dashboard.close()


if __name__ == "__main__":
    main()
