"""
Pytest configuration and shared fixtures

Common fixtures used across multiple test files are defined here.
"""
import itertools

import pytest

from localstore import ClientConfig, DocumentStore, EventNotifier, LocalClient


class FakeClock:
    """Deterministic clock producing strictly increasing ISO-8601 timestamps"""

    def __init__(self):
        self._ticks = itertools.count(1)
        self.last = None

    def __call__(self) -> str:
        tick = next(self._ticks)
        self.last = f"2024-01-01T00:{tick // 60:02d}:{tick % 60:02d}.000000Z"
        return self.last


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return DocumentStore(clock=clock)


@pytest.fixture
def notifier():
    return EventNotifier()


@pytest.fixture
def recorded(notifier):
    """List filled with every event the notifier emits"""
    events = []
    notifier.subscribe(events.append)
    return events


@pytest.fixture
def assets_dir(tmp_path):
    return tmp_path / "local_assets"


@pytest.fixture
def client_config(assets_dir):
    return ClientConfig(dataset="test", log_level="debug", assets_directory=str(assets_dir))


@pytest.fixture
def client(client_config, clock):
    return LocalClient(client_config, clock=clock)


@pytest.fixture
def client_events(client):
    """List filled with every event the client emits"""
    events = []
    client.notifier.subscribe(events.append)
    return events
