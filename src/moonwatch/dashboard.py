"""Wiring between the scheduler, the active source, the history, and a renderer."""

import logging
from collections.abc import Callable

import httpx

from moonwatch.changes import ChangeLog, diff
from moonwatch.config import DEMO_API_KEY, DashboardConfig
from moonwatch.history import SampleStore
from moonwatch.models import (
    FieldChange,
    HistoryStore,
    IngestResult,
    LoadResult,
    ObservationPair,
    RefreshState,
    SourceMode,
)
from moonwatch.scheduler import Clock, RefreshScheduler, SystemClock
from moonwatch.sources import (
    AuthError,
    LiveSource,
    ObservationSource,
    SimulatedSource,
    TransientError,
    generate_backfill,
    select_source,
)
from moonwatch.storage import BlobStore, CredentialStore

log = logging.getLogger(__name__)

Renderer = Callable[[HistoryStore, ObservationPair, list[FieldChange]], None]


class Dashboard:
    """One dashboard session. Holds no module-level state; callers own the instance."""

    def __init__(
        self,
        config: DashboardConfig,
        blob_store: BlobStore,
        renderer: Renderer | None = None,
        clock: Clock | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self.samples = SampleStore(blob_store)
        self.credentials = CredentialStore(blob_store)
        self.scheduler = RefreshScheduler(self.refresh, clock or SystemClock())
        self.change_log = ChangeLog()
        self.renderer = renderer
        self._http_client = http_client

        self.load_result: LoadResult = self.samples.load()
        self.history: HistoryStore = self.load_result.history
        self.latest: ObservationPair | None = None
        self.last_changes: list[FieldChange] = []
        self.auth_failed = False
        self._backfilled = False

        if self.credentials.get() is None and config.api_key:
            self.credentials.save(config.api_key)
        self._source: ObservationSource | None = None
        self._mode = SourceMode.UNINITIALIZED
        self._select_source()

    @property
    def credential(self) -> str | None:
        return self.credentials.get()

    @property
    def source(self) -> ObservationSource | None:
        return self._source

    @property
    def source_mode(self) -> SourceMode:
        return self._mode

    @property
    def refresh_state(self) -> RefreshState:
        return RefreshState(
            next_refresh_at_ms=self.scheduler.next_deadline_ms, source_mode=self._mode
        )

    def _select_source(self) -> None:
        self._close_source()
        self._source, self._mode = select_source(
            self.credential, self.config, client=self._http_client
        )
        log.info("Source mode: %s", self._mode.value)

    # --- Credential lifecycle ---

    def save_credential(self, api_key: str) -> bool:
        """Store a new key and refresh immediately. Returns False if the key is rejected."""
        if not self.credentials.save(api_key):
            return False
        self.auth_failed = False
        self._select_source()
        self.scheduler.trigger_now()
        return True

    def start_demo(self) -> None:
        self.save_credential(DEMO_API_KEY)

    def remove_credential(self) -> None:
        """Forget the key and the stored history."""
        self.credentials.clear()
        self.history = self.samples.clear()
        self.latest = None
        self.last_changes = []
        self.change_log.clear()
        self._backfilled = False
        self._select_source()

    # --- Refresh loop ---

    def start(self) -> None:
        self.scheduler.start(self.config.refresh_interval_ms)

    def stop(self) -> None:
        self.scheduler.stop()

    def close(self) -> None:
        """Stop refreshing and release the live source's HTTP client."""
        self.stop()
        self._close_source()
        self._source = None

    def _close_source(self) -> None:
        if isinstance(self._source, LiveSource):
            self._source.close()

    def refresh(self) -> IngestResult | None:
        """Acquire one sample and push it through ingest, diff, and the renderer.

        Returns the ingest result, or None when nothing was ingested. Never raises
        for source failures.
        """
        source = self._source
        if source is None:
            log.debug("No credential stored; skipping refresh")
            return None

        if isinstance(source, SimulatedSource) and not self._backfilled:
            self._seed_backfill(source)

        try:
            pair = source.fetch()
        except AuthError as e:
            log.warning("API key rejected (%s); clearing it", e)
            self.credentials.clear()
            self.auth_failed = True
            self._select_source()
            return None
        except TransientError as e:
            log.warning("Fetch failed, keeping previous data: %s", e)
            return None

        return self.accept(pair)

    def accept(self, pair: ObservationPair) -> IngestResult:
        """Ingest a fetched pair. The payload timestamp is the window reference time."""
        result = self.samples.ingest(
            self.history,
            pair.moon,
            pair.sun,
            now_seconds=pair.timestamp,
            window_seconds=self.config.window_seconds,
            max_points=self.config.max_points,
        )
        if not result.accepted:
            return result

        self.history = result.history
        prev_payload = self.latest.payload if self.latest is not None else None
        self.last_changes = diff(pair.payload, prev_payload)
        self.change_log.record(pair.timestamp, self.last_changes)
        self.latest = pair
        if self.renderer is not None:
            self.renderer(self.history, pair, self.last_changes)
        return result

    def _seed_backfill(self, source: SimulatedSource) -> None:
        # End one period early so the first simulated sample is not a duplicate.
        self.history = generate_backfill(
            source.now() - self.config.sample_period_seconds,
            window_seconds=self.config.window_seconds,
            period_seconds=self.config.sample_period_seconds,
        )
        self.samples.persist(self.history)
        self._backfilled = True
        log.info("Seeded %d simulated points per series", len(self.history.moon_series))
