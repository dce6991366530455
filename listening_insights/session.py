"""
Listening Insights - Listening Session
Owns the loaded history, the active date window and the aggregate table built for it.

The window and its aggregates are published together as one immutable snapshot,
so readers never see a new window paired with stale aggregates. Window changes
coming from a dragged slider are debounced: each request cancels the pending
recompute and schedules a new one, and only the last request is ever published.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .aggregator import aggregate
from .events import DateWindow, EventStore
from .track_insights import TrackInsights, analyze_track

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.2


@dataclass(frozen=True)
class AggregateSnapshot:
    """A date window and the aggregate table computed for it."""
    window: Optional[DateWindow]
    aggregates: tuple
    version: int = 0

    def to_dict(self):
        return {
            "window": self.window.to_dict() if self.window else None,
            "version": self.version,
            "aggregates": [a.to_dict() for a in self.aggregates],
        }


class ListeningSession:
    """
    Thin stateful shell around the pure analytics functions.

    Usage:
        session = ListeningSession(debounce_seconds=0.2)
        session.load(store)
        session.request_window(DateWindow(start='2023-01-01'))   # inside a running loop
        snapshot = await session.flush()
    """

    def __init__(self, debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS):
        self.debounce_seconds = debounce_seconds
        self._store = EventStore()
        self._snapshot = AggregateSnapshot(window=None, aggregates=())
        self._pending: Optional[asyncio.Task] = None

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def snapshot(self) -> AggregateSnapshot:
        return self._snapshot

    @property
    def has_data(self) -> bool:
        return len(self._store) > 0

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @staticmethod
    def _aggregate(store: EventStore, window: Optional[DateWindow]) -> tuple:
        # Reads no session state, so it may run in a worker thread
        started = time.perf_counter()
        aggregates = tuple(aggregate(store, window))
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Aggregated {len(store)} events into {len(aggregates)} tracks in {elapsed_ms:.1f} ms")
        return aggregates

    def _publish(self, store: EventStore, window: Optional[DateWindow], aggregates: tuple) -> AggregateSnapshot:
        self._store = store
        self._snapshot = AggregateSnapshot(window=window, aggregates=aggregates, version=self._snapshot.version + 1)
        return self._snapshot

    def load(self, store: EventStore) -> AggregateSnapshot:
        """Replace the history; the window resets to unbounded."""
        self.cancel_pending()
        return self._publish(store, None, self._aggregate(store, None))

    async def load_async(self, store: EventStore) -> AggregateSnapshot:
        """Same as load(), with the aggregation run in the default executor.

        Pending window requests are cancelled on the loop thread before the work is handed off.
        """
        self.cancel_pending()
        loop = asyncio.get_running_loop()
        aggregates = await loop.run_in_executor(None, self._aggregate, store, None)
        return self._publish(store, None, aggregates)

    def reset(self) -> None:
        self.cancel_pending()
        self._store = EventStore()
        self._snapshot = AggregateSnapshot(window=None, aggregates=(), version=self._snapshot.version + 1)

    def set_window(self, window: Optional[DateWindow]) -> AggregateSnapshot:
        """Recompute immediately for a new window, superseding any pending request."""
        self.cancel_pending()
        return self._publish(self._store, window, self._aggregate(self._store, window))

    def cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def request_window(self, window: Optional[DateWindow]) -> asyncio.Task:
        """Schedule a debounced recompute. Must be called from a running event loop."""
        self.cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(self._debounced_recompute(window))
        return self._pending

    async def _debounced_recompute(self, window: Optional[DateWindow]) -> None:
        me = asyncio.current_task()
        try:
            await asyncio.sleep(self.debounce_seconds)
            store = self._store
            loop = asyncio.get_running_loop()
            aggregates = await loop.run_in_executor(None, self._aggregate, store, window)
            # A load() or newer request may have landed while the executor ran
            if self._pending is me and store is self._store:
                self._publish(store, window, aggregates)
        finally:
            if self._pending is me:
                self._pending = None

    async def flush(self) -> AggregateSnapshot:
        """Wait until no recompute is pending and return the published snapshot."""
        while self._pending is not None and not self._pending.done():
            await asyncio.wait({self._pending})
        return self._snapshot

    def track_insights(self, track_id: str) -> Optional[TrackInsights]:
        """Single-track profiles over the full history, regardless of the window."""
        return analyze_track(self._store, track_id)
