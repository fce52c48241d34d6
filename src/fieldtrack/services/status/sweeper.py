"""Periodic staleness sweep and retention eviction."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from ...models.domain import utc_now
from ...persistence.event_store import EventStore
from ...persistence.representatives import RepresentativeDirectory
from .resolver import StatusResolver

logger = logging.getLogger(__name__)


class StatusSweeper:
    """Background thread that re-resolves every representative on a fixed interval.

    A staleness transition (a visit or shift ageing past the limit) produces no
    event of its own, so only this sweep surfaces it to subscribers.
    """

    def __init__(
        self,
        resolver: StatusResolver,
        store: EventStore,
        directory: RepresentativeDirectory,
        *,
        interval_seconds: float,
        retention: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.resolver = resolver
        self.store = store
        self.directory = directory
        self.interval_seconds = interval_seconds
        self.retention = retention
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="status-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Status sweeper started (interval={self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Status sweeper stopped")

    def run_once(self) -> int:
        scheduled = self.resolver.sweep(self.directory.ids())
        self.store.evict_expired(self.clock() - self.retention)
        return scheduled

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("Status sweep failed")
