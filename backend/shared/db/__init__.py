"""SQLite database layer: connection management and repository implementations."""

from shared.db.connection import Database
from shared.db.room_directory import SqliteRoomDirectory

__all__ = [
    "Database",
    "SqliteRoomDirectory",
]
