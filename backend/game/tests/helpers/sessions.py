import asyncio
from collections.abc import Callable

from game.peer.link import LinkRole, PeerLink
from game.peer.loopback import LoopbackNetwork
from game.session.controller import SessionController
from game.session.models import NoticeKind, SessionNotice
from game.session.settings import PeerSettings
from shared.dal.room_directory import RoomDirectory

WAIT_TIMEOUT = 2.0


class NoticeRecorder:
    """Collects the notices one SessionController emits."""

    def __init__(self) -> None:
        self.notices: list[SessionNotice] = []

    def __call__(self, notice: SessionNotice) -> None:
        self.notices.append(notice)

    def kinds(self) -> list[NoticeKind]:
        return [n.kind for n in self.notices]

    def of(self, kind: NoticeKind) -> list[SessionNotice]:
        return [n for n in self.notices if n.kind == kind]


async def wait_until(predicate: Callable[[], bool], timeout: float = WAIT_TIMEOUT) -> None:
    """Yield to the event loop until predicate holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


def make_session(
    network: LoopbackNetwork,
    directory: RoomDirectory | None,
    name: str,
    *,
    settings: PeerSettings | None = None,
) -> tuple[SessionController, NoticeRecorder]:
    recorder = NoticeRecorder()

    def link_factory(role: LinkRole) -> PeerLink:
        return network.link(role)

    session = SessionController(
        link_factory,
        directory=directory,
        player_name=name,
        player_id=f"id-{name}",
        settings=settings or PeerSettings(),
        on_notice=recorder,
    )
    return session, recorder
