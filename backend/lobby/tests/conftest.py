"""Shared fixtures for lobby tests."""

import pytest
from starlette.testclient import TestClient

from lobby.server.app import create_app
from lobby.server.settings import LobbyServerSettings


@pytest.fixture
def lobby_settings() -> LobbyServerSettings:
    return LobbyServerSettings(database_path=":memory:", reaper_interval_seconds=3600)


@pytest.fixture
def client(lobby_settings):
    with TestClient(create_app(settings=lobby_settings)) as test_client:
        yield test_client
