"""
Authentication session: the persisted token and the context that owns it.

``SessionStore`` keeps at most one token in a single-row SQLite table so it
survives restarts. ``Session`` is the context object handed to every client
and controller; it falls back to an in-memory token when the store fails.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path

from machine_monitor.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class SessionStore:
    """SQLite-backed storage for the single authentication token."""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS session (
        slot INTEGER PRIMARY KEY CHECK (slot = 0),
        token TEXT NOT NULL,
        saved_at TEXT NOT NULL
    );
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        # One critical section per call; save/load/clear never interleave.
        self._lock = asyncio.Lock()

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.executescript(self.SCHEMA)
        return conn

    async def save(self, token: str) -> None:
        """Persist the token, replacing any previous one."""
        async with self._lock:
            try:
                with closing(self._connect()) as conn, conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO session (slot, token, saved_at) VALUES (0, ?, ?)",
                        (token, datetime.now().isoformat()),
                    )
            except (sqlite3.Error, OSError) as e:
                raise StorageUnavailable(f"Could not save session to {self.db_path}: {e}") from e

    async def load(self) -> str | None:
        """Return the persisted token, if any."""
        async with self._lock:
            if not self.db_path.exists():
                return None
            try:
                with closing(self._connect()) as conn:
                    row = conn.execute("SELECT token FROM session WHERE slot = 0").fetchone()
            except (sqlite3.Error, OSError) as e:
                raise StorageUnavailable(f"Could not load session from {self.db_path}: {e}") from e
            return row[0] if row else None

    async def clear(self) -> None:
        """Remove the persisted token."""
        async with self._lock:
            if not self.db_path.exists():
                return
            try:
                with closing(self._connect()) as conn, conn:
                    conn.execute("DELETE FROM session")
            except (sqlite3.Error, OSError) as e:
                raise StorageUnavailable(f"Could not clear session in {self.db_path}: {e}") from e


class MemorySessionStore:
    """Process-local token storage with the ``SessionStore`` interface."""

    def __init__(self, token: str | None = None):
        self._token = token
        self._lock = asyncio.Lock()

    async def save(self, token: str) -> None:
        async with self._lock:
            self._token = token

    async def load(self) -> str | None:
        async with self._lock:
            return self._token

    async def clear(self) -> None:
        async with self._lock:
            self._token = None


class Session:
    """
    The authentication context shared by clients and controllers.

    Holds the current bearer token. Storage failures never propagate: the
    token is kept in memory for the rest of the process and the failure is
    recorded in ``storage_warning``.
    """

    def __init__(self, store: SessionStore | MemorySessionStore | None = None):
        self.store = store if store is not None else MemorySessionStore()
        self._token: str | None = None
        self.persisted = True
        self.storage_warning: str | None = None

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def auth_headers(self) -> dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def _degrade(self, error: StorageUnavailable) -> None:
        logger.warning("Session storage unavailable, keeping token in memory only: %s", error)
        self.persisted = False
        self.storage_warning = error.message

    async def restore(self) -> str | None:
        """Adopt the token persisted by a previous process, if any."""
        try:
            self._token = await self.store.load()
        except StorageUnavailable as e:
            self._degrade(e)
            self._token = None
        return self._token

    async def begin(self, token: str) -> None:
        """Adopt a freshly issued token and persist it."""
        self._token = token
        if not self.persisted:
            return
        try:
            await self.store.save(token)
        except StorageUnavailable as e:
            self._degrade(e)

    async def end(self) -> None:
        """Drop the token from memory and storage."""
        self._token = None
        if not self.persisted:
            return
        try:
            await self.store.clear()
        except StorageUnavailable as e:
            self._degrade(e)
