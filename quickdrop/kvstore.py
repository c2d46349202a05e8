"""
SQLite key-value cache used as the blob store backend.

Offers a small Redis-like surface (strings with optional expiry, plus sets)
on top of aiosqlite. Every public call opens its own connection and runs in
its own transaction, so each operation is atomic on its own while nothing
spans more than one key. Expired rows are invisible to readers immediately
and are physically removed by ``purge_expired``.
"""

from __future__ import annotations

import json
import math
import time
from pathlib import Path
from typing import Callable

import aiosqlite

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    kind        TEXT    NOT NULL DEFAULT 'string',
    value       TEXT    NOT NULL,
    expires_at  REAL
);

CREATE INDEX IF NOT EXISTS kv_expires_at ON kv (expires_at);
"""

# Row is visible when it has no expiry or the expiry is still ahead.
_LIVE = "(expires_at IS NULL OR expires_at > ?)"


class KVError(Exception):
    """Raised for invalid operations against the key-value cache."""
    pass


class ValueTooLargeError(KVError):
    """Raised when a value exceeds the per-key payload ceiling."""

    def __init__(self, key: str, size: int, limit: int):
        super().__init__(f"Value for {key!r} is {size} bytes, limit is {limit} bytes")
        self.key = key
        self.size = size
        self.limit = limit


class KVStore:
    def __init__(
        self,
        path: Path | str,
        max_value_size: int = 1024 * 1024,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path)
        self.max_value_size = max_value_size
        self.timeout = timeout
        self.clock = clock

    def _connect(self):
        return aiosqlite.connect(self.path, timeout=self.timeout)

    async def init_db(self) -> None:
        """Create the database directory and tables if they don't exist."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.executescript(SCHEMA)
            await db.commit()

    # ---------------------------------------------------------------------------
    # String operations
    # ---------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Return the value at *key*, or ``None`` if missing or expired."""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT kind, value FROM kv WHERE key = ? AND {_LIVE}",
                (key, self.clock()),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        if row[0] != "string":
            raise KVError(f"Key {key!r} holds a {row[0]}, not a string")
        return row[1]

    async def set(self, key: str, value: str, ex: int | None = None, pxat: int | None = None) -> None:
        """Store *value* at *key*, replacing any previous value and expiry.

        ``ex`` is the time-to-live in seconds and ``pxat`` an absolute expiry
        in epoch milliseconds; with neither the key is kept forever.
        """
        size = len(value.encode("utf-8"))
        if size > self.max_value_size:
            raise ValueTooLargeError(key, size, self.max_value_size)
        if ex is not None and pxat is not None:
            raise KVError("ex and pxat are mutually exclusive")
        if ex is not None and ex <= 0:
            raise KVError(f"Invalid expire time {ex} for {key!r}")

        now = self.clock()
        if pxat is not None:
            expires_at = pxat / 1000
            if expires_at <= now:
                raise KVError(f"Expiry {pxat} for {key!r} is not in the future")
        else:
            expires_at = now + ex if ex is not None else None
        async with self._connect() as db:
            await db.execute(
                """
                INSERT INTO kv (key, kind, value, expires_at) VALUES (?, 'string', ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    kind = 'string', value = excluded.value, expires_at = excluded.expires_at
                """,
                (key, value, expires_at),
            )
            await db.commit()

    async def delete(self, *keys: str) -> int:
        """Delete *keys*. Returns how many of them were live. Missing keys are ignored."""
        if not keys:
            return 0
        placeholders = ",".join("?" for _ in keys)
        async with self._connect() as db:
            cursor = await db.execute(
                f"DELETE FROM kv WHERE key IN ({placeholders}) AND {_LIVE}",
                (*keys, self.clock()),
            )
            deleted = cursor.rowcount
            # Expired leftovers for the same keys go too
            await db.execute(f"DELETE FROM kv WHERE key IN ({placeholders})", keys)
            await db.commit()
        return deleted

    async def exists(self, key: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT 1 FROM kv WHERE key = ? AND {_LIVE}", (key, self.clock())
            )
            return await cursor.fetchone() is not None

    # ---------------------------------------------------------------------------
    # Expiry
    # ---------------------------------------------------------------------------

    async def ttl(self, key: str) -> int:
        """Remaining time-to-live in seconds.

        Returns ``-2`` if the key does not exist and ``-1`` if it has no expiry.
        """
        now = self.clock()
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT expires_at FROM kv WHERE key = ? AND {_LIVE}", (key, now)
            )
            row = await cursor.fetchone()
        if row is None:
            return -2
        if row[0] is None:
            return -1
        return math.ceil(row[0] - now)

    async def expire(self, key: str, seconds: int) -> bool:
        """Set a time-to-live on an existing key. Returns ``False`` if the key is missing."""
        now = self.clock()
        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE kv SET expires_at = ? WHERE key = ? AND {_LIVE}",
                (now + seconds, key, now),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def purge_expired(self) -> int:
        """Physically remove expired rows. Returns the number of rows removed."""
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self.clock(),),
            )
            await db.commit()
            return cursor.rowcount

    # ---------------------------------------------------------------------------
    # Set operations
    # ---------------------------------------------------------------------------

    async def _read_set(self, db, key: str, now: float) -> tuple[set[str], float | None]:
        cursor = await db.execute(
            f"SELECT kind, value, expires_at FROM kv WHERE key = ? AND {_LIVE}", (key, now)
        )
        row = await cursor.fetchone()
        if row is None:
            return set(), None
        if row[0] != "set":
            raise KVError(f"Key {key!r} holds a {row[0]}, not a set")
        return set(json.loads(row[1])), row[2]

    async def _update_set(self, key: str, change: Callable[[set[str]], int]) -> int:
        now = self.clock()
        async with self._connect() as db:
            # Read-modify-write must not interleave with other writers
            await db.execute("BEGIN IMMEDIATE")
            try:
                members, expires_at = await self._read_set(db, key, now)
                changed = change(members)
                if members:
                    await db.execute(
                        """
                        INSERT INTO kv (key, kind, value, expires_at) VALUES (?, 'set', ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            kind = 'set', value = excluded.value, expires_at = excluded.expires_at
                        """,
                        (key, json.dumps(sorted(members)), expires_at),
                    )
                else:
                    # An empty set does not exist
                    await db.execute("DELETE FROM kv WHERE key = ?", (key,))
                await db.commit()
            except BaseException:
                await db.rollback()
                raise
        return changed

    async def sadd(self, key: str, *members: str) -> int:
        """Add *members* to the set at *key*. Returns how many were new."""
        def add(current: set[str]) -> int:
            before = len(current)
            current.update(members)
            return len(current) - before

        return await self._update_set(key, add)

    async def srem(self, key: str, *members: str) -> int:
        """Remove *members* from the set at *key*. Returns how many were present."""
        def remove(current: set[str]) -> int:
            before = len(current)
            current.difference_update(members)
            return before - len(current)

        return await self._update_set(key, remove)

    async def smembers(self, key: str) -> set[str]:
        async with self._connect() as db:
            members, _ = await self._read_set(db, key, self.clock())
        return members

    async def sismember(self, key: str, member: str) -> bool:
        return member in await self.smembers(key)

