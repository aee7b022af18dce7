"""Persistent local player identity.

A player id is generated the first time a game type is played on this
machine and reused afterwards, one id per game type. Storage is injected
through IdentityStore so tests and embedded callers can keep ids in memory.
The file-backed store writes a small JSON object atomically with
owner-only permissions (0o600).
"""

import contextlib
import json
import os
import secrets
import tempfile
import time
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()

_IDENTITY_DIR_MODE = 0o700
_IDENTITY_FILE_MODE = 0o600

PLAYER_ID_PREFIX = "player_"


def identity_key(game_type: str) -> str:
    return f"game_player_id_{game_type}"


def generate_player_id() -> str:
    """Return a new id of the form ``player_<epoch-millis>_<random>``."""
    return f"{PLAYER_ID_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(5)}"


class IdentityStore(Protocol):
    """Key/value storage for locally generated identifiers."""

    def load(self, key: str) -> str | None: ...

    def save(self, key: str, value: str) -> None: ...


class MemoryIdentityStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def load(self, key: str) -> str | None:
        return self._values.get(key)

    def save(self, key: str, value: str) -> None:
        self._values[key] = value


class FileIdentityStore:
    """Stores identifiers in a single JSON object on disk.

    A missing or unreadable file behaves like an empty store; the next save
    replaces it.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    def _read_all(self) -> dict[str, str]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("identity file unreadable, starting fresh", path=str(self._path))
            return {}
        if not isinstance(data, dict):
            logger.warning("identity file is not a JSON object, starting fresh", path=str(self._path))
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def load(self, key: str) -> str | None:
        return self._read_all().get(key)

    def save(self, key: str, value: str) -> None:
        values = self._read_all()
        values[key] = value
        payload = json.dumps(values, sort_keys=True, indent=2).encode("utf-8")

        directory = self._path.parent
        directory.mkdir(mode=_IDENTITY_DIR_MODE, parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=str(directory), suffix=".tmp", prefix=".identity_")
        fd_owned = True
        try:
            with os.fdopen(fd, "wb") as f:
                fd_owned = False  # os.fdopen took ownership; it will close fd
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _IDENTITY_FILE_MODE)  # noqa: PTH101
            Path(tmp_path).replace(self._path)
        except BaseException:
            if fd_owned:
                with contextlib.suppress(OSError):
                    os.close(fd)
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise


def get_or_create_player_id(store: IdentityStore, game_type: str) -> str:
    """Return the stored player id for game_type, generating and saving one if absent."""
    key = identity_key(game_type)
    existing = store.load(key)
    if existing:
        return existing
    player_id = generate_player_id()
    store.save(key, player_id)
    logger.info("generated player id", game_type=game_type, player_id=player_id)
    return player_id
