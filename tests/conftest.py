import pytest
from coldcall.registry import CallRegistry

from events import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return CallRegistry(clock=clock)


@pytest.fixture
def notifications(registry):
    """Every (event, call_id) the registry fans out, in order."""
    seen = []
    registry.subscribe(lambda event, call: seen.append((event, call.id)))
    return seen
