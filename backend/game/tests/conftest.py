import pytest

from game.peer.loopback import LoopbackNetwork
from game.tests.helpers.sessions import make_session
from shared.db.connection import Database
from shared.db.room_directory import SqliteRoomDirectory


@pytest.fixture
def network() -> LoopbackNetwork:
    return LoopbackNetwork()


@pytest.fixture
def directory():
    db = Database(":memory:")
    db.connect()
    yield SqliteRoomDirectory(db)
    db.close()


@pytest.fixture
async def host(network, directory):
    session, notices = make_session(network, directory, "alice")
    yield session, notices
    await session.leave()


@pytest.fixture
async def guest(network, directory):
    session, notices = make_session(network, directory, "bob")
    yield session, notices
    await session.leave()
