import pytest

from pinpad.node import PeerPad
from pinpad.store import create_store
from pinpad.transport import MemoryHub, MemoryTransport

from .helpers import FakeClock


@pytest.fixture
def hub():
    return MemoryHub()


@pytest.fixture
async def make_pad(hub):
    """Factory for PeerPads sharing one in-process hub; all are left on teardown."""
    created = []

    def make(initial_text: str = "") -> PeerPad:
        pad = PeerPad(lambda: MemoryTransport(hub), initial_text)
        created.append(pad)
        return pad

    yield make

    for pad in created:
        await pad.leave()


@pytest.fixture
async def connected_pair(make_pad):
    """A host and a guest already in one session."""
    host = make_pad()
    guest = make_pad()
    pin = await host.create_session()
    await guest.join_session(pin)
    return host, guest


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def store(tmp_path, clock):
    client = create_store(tmp_path, clock=clock)
    await client.open()
    yield client
    await client.close()
