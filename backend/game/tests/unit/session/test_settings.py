import pytest
from pydantic import ValidationError

from game.session.settings import PeerSettings


class TestPeerSettings:
    def test_defaults(self):
        settings = PeerSettings()
        assert settings.heartbeat_timeout > settings.heartbeat_interval
        assert settings.room_keepalive_interval == 300.0
        assert settings.port == 0

    def test_values_from_env(self, monkeypatch):
        monkeypatch.setenv("PEER_PLAYER_NAME", "alice")
        monkeypatch.setenv("PEER_PORT", "4100")
        monkeypatch.setenv("PEER_LOBBY_URL", "http://lobby.example:8710")
        settings = PeerSettings()
        assert settings.player_name == "alice"
        assert settings.port == 4100
        assert settings.lobby_url == "http://lobby.example:8710"

    def test_zero_interval_rejected(self):
        with pytest.raises(ValidationError, match="heartbeat_interval"):
            PeerSettings(heartbeat_interval=0)

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValidationError, match="connect_timeout"):
            PeerSettings(connect_timeout=-1)

    def test_timeout_must_exceed_interval(self):
        with pytest.raises(ValidationError, match="heartbeat_timeout"):
            PeerSettings(heartbeat_interval=10, heartbeat_timeout=10)

    def test_port_out_of_range_rejected(self):
        with pytest.raises(ValidationError, match="port"):
            PeerSettings(port=70000)

    def test_empty_player_name_rejected(self):
        with pytest.raises(ValidationError, match="player_name"):
            PeerSettings(player_name="")
