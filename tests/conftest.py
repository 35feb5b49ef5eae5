import pytest
from helpers.backend import FakeBackend, FakeClock

from query_monitor.services.fetch_coordinator import FetchCoordinator


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_coordinator(clock):
    """Factory for opened coordinators wired to a fake clock."""

    def _make(backend: FakeBackend, **kwargs) -> FetchCoordinator:
        kwargs.setdefault("min_interval", 5.0)
        kwargs.setdefault("rate_limit_penalty", 30.0)
        kwargs.setdefault("auto_refresh_interval", 3600.0)
        return FetchCoordinator(backend, clock=clock, **kwargs).open()

    return _make
