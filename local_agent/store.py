#!/usr/bin/env python3
"""
Durable state for grinsh: conversation messages, learned tools, the Homebrew
package cache, key/value preferences and the input history audit log.

One SQLite file per user. Every sqlite3 error leaves this module as
``StoreError`` so callers never depend on the storage engine.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    role      TEXT NOT NULL,
    content   TEXT NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS tools (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT '',
    usage       TEXT NOT NULL DEFAULT '',
    examples    TEXT NOT NULL DEFAULT '',
    learned_at  TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS brew_cache (
    name        TEXT PRIMARY KEY,
    installed   INTEGER NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    updated_at  TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS preferences (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS history (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    input     TEXT NOT NULL,
    timestamp TEXT NOT NULL
);
"""


class StoreError(RuntimeError):
    """A read or write against the database failed."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_ts(raw: str) -> datetime:
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Message:
    id: int
    role: str
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class ToolRecord:
    id: int
    name: str
    description: str
    usage: str
    examples: str
    learned_at: datetime


@dataclass(frozen=True)
class PackageCacheEntry:
    name: str
    installed: bool
    description: str
    updated_at: datetime

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or _now()) - self.updated_at).total_seconds()


@dataclass(frozen=True)
class HistoryEntry:
    id: int
    input: str
    timestamp: datetime


class Store:
    def __init__(self, conn: sqlite3.Connection, path: str = ":memory:"):
        self._conn = conn
        self.path = path

    @classmethod
    def open(cls, path: str | Path) -> Store:
        """Open (creating if needed) the database at *path* and ensure the schema."""
        target = str(path)
        try:
            if target != ":memory:":
                Path(target).expanduser().parent.mkdir(parents=True, exist_ok=True)
                target = str(Path(target).expanduser())
            conn = sqlite3.connect(target)
            conn.row_factory = sqlite3.Row
            conn.executescript(SCHEMA)
            conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Could not open database at {target}: {e}") from e
        logger.info("Opened store at %s", target)
        return cls(conn, target)

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error as e:
            logger.warning("Failed to close store: %s", e)

    def __enter__(self) -> Store:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def append_message(self, role: str, content: str) -> int:
        with self._tx() as db:
            cur = db.execute(
                "INSERT INTO messages (role, content, timestamp) VALUES (?, ?, ?)",
                (role, content, _ts(_now())),
            )
            return int(cur.lastrowid)

    def recent_messages(self, limit: int) -> List[Message]:
        """The newest *limit* messages, returned oldest first."""
        with self._tx() as db:
            rows = db.execute(
                "SELECT id, role, content, timestamp FROM messages ORDER BY id DESC LIMIT ?",
                (int(limit),),
            ).fetchall()
        rows.reverse()
        return [Message(r["id"], r["role"], r["content"], _parse_ts(r["timestamp"])) for r in rows]

    def clear_messages(self) -> None:
        with self._tx() as db:
            db.execute("DELETE FROM messages")

    # ------------------------------------------------------------------
    # Learned tools
    # ------------------------------------------------------------------

    def upsert_tool(self, name: str, description: str, usage: str, examples: str = "") -> None:
        with self._tx() as db:
            db.execute(
                "INSERT OR REPLACE INTO tools (name, description, usage, examples, learned_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (name, description, usage, examples, _ts(_now())),
            )

    def get_tool(self, name: str) -> Optional[ToolRecord]:
        with self._tx() as db:
            row = db.execute(
                "SELECT id, name, description, usage, examples, learned_at FROM tools WHERE name = ?",
                (name,),
            ).fetchone()
        return self._tool(row) if row else None

    def all_tools(self) -> List[ToolRecord]:
        with self._tx() as db:
            rows = db.execute(
                "SELECT id, name, description, usage, examples, learned_at FROM tools ORDER BY name"
            ).fetchall()
        return [self._tool(r) for r in rows]

    @staticmethod
    def _tool(row: sqlite3.Row) -> ToolRecord:
        return ToolRecord(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            usage=row["usage"],
            examples=row["examples"],
            learned_at=_parse_ts(row["learned_at"]),
        )

    # ------------------------------------------------------------------
    # Homebrew package cache
    # ------------------------------------------------------------------

    def get_package_cache(self, name: str) -> Optional[PackageCacheEntry]:
        with self._tx() as db:
            row = db.execute(
                "SELECT name, installed, description, updated_at FROM brew_cache WHERE name = ?",
                (name,),
            ).fetchone()
        if row is None:
            return None
        return PackageCacheEntry(
            name=row["name"],
            installed=bool(row["installed"]),
            description=row["description"],
            updated_at=_parse_ts(row["updated_at"]),
        )

    def upsert_package_cache(
        self,
        name: str,
        installed: bool,
        description: str = "",
        updated_at: Optional[datetime] = None,
    ) -> None:
        with self._tx() as db:
            db.execute(
                "INSERT OR REPLACE INTO brew_cache (name, installed, description, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (name, 1 if installed else 0, description, _ts(updated_at or _now())),
            )

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def get_preference(self, key: str) -> Optional[str]:
        with self._tx() as db:
            row = db.execute("SELECT value FROM preferences WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_preference(self, key: str, value: str) -> None:
        with self._tx() as db:
            db.execute("INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)", (key, value))

    # ------------------------------------------------------------------
    # Input history
    # ------------------------------------------------------------------

    def append_history(self, text: str) -> None:
        with self._tx() as db:
            db.execute("INSERT INTO history (input, timestamp) VALUES (?, ?)", (text, _ts(_now())))

    def recent_history(self, limit: int = 100) -> List[HistoryEntry]:
        with self._tx() as db:
            rows = db.execute(
                "SELECT id, input, timestamp FROM history ORDER BY id DESC LIMIT ?",
                (int(limit),),
            ).fetchall()
        rows.reverse()
        return [HistoryEntry(r["id"], r["input"], _parse_ts(r["timestamp"])) for r in rows]
