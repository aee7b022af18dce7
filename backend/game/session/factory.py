"""
Wiring for one peer process.

Builds a SessionController from PeerSettings: TCP peer links, the lobby's
HTTP room directory and the player id stored on this machine. Tests and
embedded callers pass their own directory or identity store instead.
"""

from pathlib import Path

import structlog

from game.logic.enums import GameType
from game.logic.rules import get_rule_engine
from game.peer.link import LinkRole, PeerLink
from game.peer.tcp import TcpPeerLink
from game.session.controller import LinkFactory, NoticeCallback, SessionController
from game.session.settings import PeerSettings
from shared.dal.http_room_directory import HttpRoomDirectory
from shared.dal.room_directory import RoomDirectory
from shared.identity import FileIdentityStore, IdentityStore, get_or_create_player_id
from shared.logging import setup_logging

logger = structlog.get_logger()


def tcp_link_factory(settings: PeerSettings) -> LinkFactory:
    def create(role: LinkRole) -> PeerLink:
        return TcpPeerLink(
            role,
            bind_host=settings.bind_host,
            advertise_host=settings.advertise_host,
            port=settings.port if role == LinkRole.HOST else 0,
            connect_timeout=settings.connect_timeout,
            handshake_timeout=settings.handshake_timeout,
        )

    return create


def configure_peer_logging(settings: PeerSettings) -> Path | None:
    return setup_logging(log_dir=settings.log_dir, component="peer")


def create_session(
    game_type: GameType | str,
    settings: PeerSettings | None = None,
    *,
    directory: RoomDirectory | None = None,
    identity_store: IdentityStore | None = None,
    link_factory: LinkFactory | None = None,
    on_notice: NoticeCallback | None = None,
) -> SessionController:
    """Build a session for game_type.

    The player id is loaded from (or first written to) the identity store,
    one id per game type.
    """
    if settings is None:
        settings = PeerSettings()
    if directory is None:
        directory = HttpRoomDirectory(settings.lobby_url, timeout=settings.connect_timeout)
    if identity_store is None:
        identity_store = FileIdentityStore(settings.identity_path)

    engine = get_rule_engine(game_type)
    player_id = get_or_create_player_id(identity_store, engine.game_type.value)
    logger.info("peer session ready", game_type=game_type, player_id=player_id)
    return SessionController(
        link_factory or tcp_link_factory(settings),
        directory=directory,
        player_name=settings.player_name,
        player_id=player_id,
        settings=settings,
        on_notice=on_notice,
    )
