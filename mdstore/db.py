"""
Storage backends.
None of the services deal directly with SQLite or process memory; they go
through a backend that hands out dict-like tables by name.

Two implementations share one interface:
- SqliteBackend: one SQLite table per name with (key TEXT, value TEXT JSON),
  WAL mode, busy_timeout and retry with exponential backoff.
- MemoryBackend: process-local dicts, used for demo mode and tests.
"""

from __future__ import annotations

import copy
import json
import os
import re
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path

from loguru import logger


class DuplicateKeyError(Exception):
    """Raised when a unique key is already taken."""

    def __init__(self, table: str, key: str):
        super().__init__(f"{table}: key already exists: {key}")
        self.table = table
        self.key = key


# Valid table name pattern to prevent SQL injection
_VALID_TABLENAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _check_tablename(tablename: str) -> None:
    if not _VALID_TABLENAME_RE.match(tablename):
        raise ValueError(
            f"Invalid table name '{tablename}': must be alphanumeric with underscores, starting with letter or underscore"
        )


def _is_lock_error(exc: sqlite3.OperationalError) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


# -----------------------------------------------------------------------------
# Native SQLite dict-like wrapper


class SqliteKV:
    """
    A dict-like interface over a SQLite table with (key TEXT, value TEXT).
    Values are stored as JSON. Statements run in autocommit mode unless
    wrapped in `transaction()`.
    """

    def __init__(
        self,
        db_path: str,
        tablename: str,
        *,
        timeout: float = 30,
        max_retries: int = 5,
        retry_base_sleep: float = 0.2,
    ):
        _check_tablename(tablename)

        self.db_path = db_path
        self.tablename = tablename
        self.max_retries = max(1, int(max_retries))
        self.retry_base_sleep = float(retry_base_sleep)
        self._conn = None
        self._closed = False

        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        self._conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False, isolation_level=None)
        self._conn.execute(f"PRAGMA busy_timeout={int(timeout * 1000)}")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        try:
            self._conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.OperationalError:
            # Another process may hold a lock while switching journal mode.
            pass
        self._execute_with_retry(f"CREATE TABLE IF NOT EXISTS {tablename} (key TEXT PRIMARY KEY, value TEXT)")

    @staticmethod
    def _encode(obj) -> str:
        return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))

    @staticmethod
    def _decode(data):
        if data is None:
            return None
        return json.loads(data)

    def _execute_with_retry(self, sql: str, params=()):
        for attempt in range(self.max_retries):
            try:
                return self._conn.execute(sql, params)
            except sqlite3.OperationalError as exc:
                if _is_lock_error(exc) and attempt < self.max_retries - 1:
                    time.sleep(self.retry_base_sleep * (2**attempt))
                    continue
                raise

    def __getitem__(self, key: str):
        cursor = self._execute_with_retry(f"SELECT value FROM {self.tablename} WHERE key = ?", (key,))
        row = cursor.fetchone()
        if row is None:
            raise KeyError(key)
        return self._decode(row[0])

    def __setitem__(self, key: str, value):
        self._execute_with_retry(
            f"INSERT OR REPLACE INTO {self.tablename} (key, value) VALUES (?, ?)",
            (key, self._encode(value)),
        )

    def __delitem__(self, key: str):
        cursor = self._execute_with_retry(f"DELETE FROM {self.tablename} WHERE key = ?", (key,))
        if cursor.rowcount == 0:
            raise KeyError(key)

    def __contains__(self, key: str) -> bool:
        cursor = self._execute_with_retry(f"SELECT 1 FROM {self.tablename} WHERE key = ? LIMIT 1", (key,))
        return cursor.fetchone() is not None

    def __len__(self) -> int:
        cursor = self._execute_with_retry(f"SELECT COUNT(*) FROM {self.tablename}")
        return cursor.fetchone()[0]

    def __iter__(self):
        return self.keys()

    def get(self, key: str, default=None):
        """Get value by key, return default if not found."""
        try:
            return self[key]
        except KeyError:
            return default

    def insert_new(self, key: str, value) -> bool:
        """Insert only if the key is absent. Returns False when it already exists."""
        cursor = self._execute_with_retry(
            f"INSERT OR IGNORE INTO {self.tablename} (key, value) VALUES (?, ?)",
            (key, self._encode(value)),
        )
        return cursor.rowcount == 1

    def pop(self, key: str, default=None):
        value = self.get(key, default)
        self._execute_with_retry(f"DELETE FROM {self.tablename} WHERE key = ?", (key,))
        return value

    def keys(self):
        """Iterate over all keys in insertion order."""
        cursor = self._execute_with_retry(f"SELECT key FROM {self.tablename} ORDER BY rowid")
        for row in cursor.fetchall():
            yield row[0]

    def values(self):
        cursor = self._execute_with_retry(f"SELECT value FROM {self.tablename} ORDER BY rowid")
        for row in cursor.fetchall():
            yield self._decode(row[0])

    def items(self):
        cursor = self._execute_with_retry(f"SELECT key, value FROM {self.tablename} ORDER BY rowid")
        for row in cursor.fetchall():
            yield row[0], self._decode(row[1])

    def get_many(self, keys: list) -> dict:
        """Batch get multiple keys. Returns {key: value} for found keys."""
        if not keys:
            return {}
        result = {}
        # SQLite has a limit on the number of variables, chunk if needed
        chunk_size = 500
        for i in range(0, len(keys), chunk_size):
            chunk = keys[i : i + chunk_size]
            placeholders = ",".join("?" * len(chunk))
            cursor = self._execute_with_retry(
                f"SELECT key, value FROM {self.tablename} WHERE key IN ({placeholders})",
                tuple(chunk),
            )
            for row in cursor.fetchall():
                result[row[0]] = self._decode(row[1])
        return result

    def set_many(self, mapping: dict):
        """Batch set multiple key-value pairs in a single transaction."""
        if not mapping:
            return
        with self.transaction():
            for key, value in mapping.items():
                self[key] = value

    def items_with_prefix(self, prefix: str):
        """Iterate over (key, value) pairs where key starts with the given prefix."""
        # substr comparison avoids LIKE wildcards inside user-supplied prefixes
        cursor = self._execute_with_retry(
            f"SELECT key, value FROM {self.tablename} WHERE substr(key, 1, ?) = ? ORDER BY rowid",
            (len(prefix), prefix),
        )
        for row in cursor.fetchall():
            yield row[0], self._decode(row[1])

    def keys_with_prefix(self, prefix: str):
        for key, _ in self.items_with_prefix(prefix):
            yield key

    @contextmanager
    def transaction(self, mode: str = "IMMEDIATE"):
        """Execute multiple operations in a single SQLite transaction.

        Used for read-modify-write updates that must not lose concurrent writes.
        """
        mode_u = (mode or "IMMEDIATE").upper()
        if mode_u not in ("DEFERRED", "IMMEDIATE", "EXCLUSIVE"):
            raise ValueError(f"Invalid transaction mode: {mode}")

        self._execute_with_retry(f"BEGIN {mode_u}")
        try:
            yield self
        except BaseException:
            try:
                self._conn.execute("ROLLBACK")
            except sqlite3.Error:
                logger.opt(exception=True).warning(f"Rollback failed on {self.tablename}")
            raise
        else:
            self._execute_with_retry("COMMIT")

    def close(self):
        """Close the database connection."""
        conn = getattr(self, "_conn", None)
        if conn is not None and not getattr(self, "_closed", True):
            try:
                conn.close()
            finally:
                self._closed = True
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __del__(self):
        self.close()


# -----------------------------------------------------------------------------
# In-memory dict-like table


class MemoryKV:
    """
    Same interface as SqliteKV over a plain dict.
    Values are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, tablename: str):
        _check_tablename(tablename)
        self.tablename = tablename
        self._data: dict = {}
        self._lock = threading.RLock()

    def __getitem__(self, key: str):
        with self._lock:
            return copy.deepcopy(self._data[key])

    def __setitem__(self, key: str, value):
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def __delitem__(self, key: str):
        with self._lock:
            del self._data[key]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self):
        return self.keys()

    def get(self, key: str, default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def insert_new(self, key: str, value) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = copy.deepcopy(value)
            return True

    def pop(self, key: str, default=None):
        with self._lock:
            return self._data.pop(key, default)

    def keys(self):
        with self._lock:
            snapshot = list(self._data.keys())
        yield from snapshot

    def values(self):
        for _, value in self.items():
            yield value

    def items(self):
        with self._lock:
            snapshot = copy.deepcopy(list(self._data.items()))
        yield from snapshot

    def get_many(self, keys: list) -> dict:
        with self._lock:
            return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    def set_many(self, mapping: dict):
        with self.transaction():
            for key, value in mapping.items():
                self[key] = value

    def items_with_prefix(self, prefix: str):
        for key, value in self.items():
            if key.startswith(prefix):
                yield key, value

    def keys_with_prefix(self, prefix: str):
        for key in self.keys():
            if key.startswith(prefix):
                yield key

    @contextmanager
    def transaction(self, mode: str = "IMMEDIATE"):
        """Hold the table lock; restore the previous contents on error."""
        with self._lock:
            snapshot = copy.deepcopy(self._data)
            try:
                yield self
            except BaseException:
                self._data = snapshot
                raise

    def close(self):
        # Tables live as long as their backend
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


# -----------------------------------------------------------------------------
# Backends


class SqliteBackend:
    """Opens SqliteKV tables inside a single database file."""

    kind = "sqlite"

    def __init__(
        self,
        db_path: str | Path,
        *,
        timeout: float = 30,
        max_retries: int = 5,
        retry_base_sleep: float = 0.2,
    ):
        self.db_path = str(db_path)
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_sleep = retry_base_sleep

    def open(self, tablename: str) -> SqliteKV:
        return SqliteKV(
            self.db_path,
            tablename,
            timeout=self.timeout,
            max_retries=self.max_retries,
            retry_base_sleep=self.retry_base_sleep,
        )

    def __repr__(self) -> str:
        return f"SqliteBackend({self.db_path!r})"


class MemoryBackend:
    """Keeps MemoryKV tables for the lifetime of the backend object."""

    kind = "memory"

    def __init__(self):
        self._tables: dict[str, MemoryKV] = {}
        self._lock = threading.Lock()

    def open(self, tablename: str) -> MemoryKV:
        with self._lock:
            table = self._tables.get(tablename)
            if table is None:
                table = MemoryKV(tablename)
                self._tables[tablename] = table
            return table

    def __repr__(self) -> str:
        return f"MemoryBackend(tables={sorted(self._tables)})"


def open_backend(db_settings) -> SqliteBackend | MemoryBackend:
    """Build the backend described by DatabaseSettings."""
    path = db_settings.sqlite_path
    if path is None:
        logger.info("No database configured, using in-memory demo backend")
        return MemoryBackend()
    logger.info(f"Using SQLite database at {path}")
    return SqliteBackend(
        path,
        timeout=db_settings.timeout,
        max_retries=db_settings.max_retries,
        retry_base_sleep=db_settings.retry_base_sleep,
    )
