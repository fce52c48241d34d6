"""Wires the store, resolver, sweeper and query services into one runtime."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..config import Settings, settings as default_settings
from ..db import get_supabase_client
from ..models.domain import utc_now
from ..persistence.event_store import EventStore
from ..persistence.journal import EventJournal, SupabaseJournal
from ..persistence.representatives import RepresentativeDirectory
from .ingest import IngestService
from .performance import PerformanceAggregator
from .queries import TrackingQueries
from .status import StatusResolver, StatusSweeper

logger = logging.getLogger(__name__)


class TrackingRuntime:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        journal: Optional[EventJournal] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or default_settings
        self.clock = clock
        self.journal = journal
        self.store = EventStore(
            journal,
            max_retries=self.settings.store_max_retries,
            backoff_seconds=self.settings.store_backoff_seconds,
            sleep=sleep,
        )
        self.directory = RepresentativeDirectory()
        self.resolver = StatusResolver(self.store, self.settings, clock=clock)
        self.ingest = IngestService(self.store, self.directory, self.resolver, self.settings, clock=clock)
        self.aggregator = PerformanceAggregator(self.store, self.directory, self.settings, clock=clock)
        self.queries = TrackingQueries(
            self.store, self.directory, self.resolver, self.aggregator, self.settings, clock=clock
        )
        self.sweeper = StatusSweeper(
            self.resolver,
            self.store,
            self.directory,
            interval_seconds=self.settings.sweep_interval_seconds,
            retention=timedelta(days=self.settings.retention_days),
            clock=clock,
        )

    def replay_journal(self) -> int:
        """Reload the retention window from the journal into memory."""

        if self.journal is None:
            return 0
        since = self.clock() - timedelta(days=self.settings.retention_days)
        loaded = self.store.load(self.journal.replay(since))
        for representative_id in self.store.representative_ids():
            self.directory.ensure(representative_id)
        logger.info(f"Replayed {loaded} events from journal")
        return loaded

    def start(self, *, run_sweeper: bool = True) -> None:
        if self.journal is not None and self.settings.journal_replay_on_startup:
            self.replay_journal()
        self.resolver.sweep(self.store.representative_ids())
        if run_sweeper:
            self.sweeper.start()

    def stop(self) -> None:
        self.sweeper.stop(timeout=5.0)
        self.resolver.shutdown()
        self.aggregator.shutdown()


def build_runtime(settings: Optional[Settings] = None) -> TrackingRuntime:
    """Create a runtime, journaling to Supabase when credentials are configured."""

    settings = settings or default_settings
    client = get_supabase_client(settings.supabase_url, settings.supabase_key)
    journal = SupabaseJournal(client, settings.journal_table) if client is not None else None
    if journal is None:
        logger.warning("No event journal configured; accepted events will not survive a restart")
    return TrackingRuntime(settings, journal=journal)
