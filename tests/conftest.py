import pytest

from fieldtrack.config import Settings
from fieldtrack.services.runtime import TrackingRuntime

from factories import FixedClock


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url=None,
        supabase_key=None,
        sweep_interval_seconds=0.01,
        store_backoff_seconds=0.0,
    )


@pytest.fixture
def runtime(settings: Settings, clock: FixedClock):
    runtime = TrackingRuntime(settings, clock=clock)
    yield runtime
    runtime.stop()
