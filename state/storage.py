"""
Key/Value Storage
=================
Byte-keyed stores with write transactions. Writes made through a WriteTx are
only visible to other readers after ``commit()``; reads through the
transaction see its own pending writes first.

Backends: an in-memory dict and a SQLite file. PrefixedDatabase namespaces
every key so several process trees can share one store.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

_DELETED = object()

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key BLOB PRIMARY KEY,
    value BLOB NOT NULL
);
"""

# ============================================================================
# EXCEPTIONS
# ============================================================================


class StorageError(Exception):
    """Base exception for storage operations"""
    pass


class TransactionClosedError(StorageError):
    """Raised when a committed or discarded transaction is used again"""
    pass


# ============================================================================
# INTERFACES
# ============================================================================


class WriteTx:
    """Buffered set of writes applied atomically on commit"""

    def __init__(self, database: 'Database'):
        self._database = database
        self._pending: Dict[bytes, object] = {}
        self._closed = False

    def _require_open(self):
        if self._closed:
            raise TransactionClosedError("transaction already closed")

    def get(self, key: bytes) -> Optional[bytes]:
        self._require_open()
        if key in self._pending:
            value = self._pending[key]
            return None if value is _DELETED else value
        return self._database.get(key)

    def set(self, key: bytes, value: bytes):
        self._require_open()
        self._pending[bytes(key)] = bytes(value)

    def delete(self, key: bytes):
        self._require_open()
        self._pending[bytes(key)] = _DELETED

    def commit(self):
        self._require_open()
        writes = {k: (None if v is _DELETED else v)
                  for k, v in self._pending.items()}
        self._database._apply(writes)
        self._closed = True
        self._pending = {}

    def discard(self):
        self._pending = {}
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> 'WriteTx':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._closed:
            self.discard()


class Database(ABC):
    """Byte key/value store"""

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """Committed value for key, or None"""

    @abstractmethod
    def _apply(self, writes: Dict[bytes, Optional[bytes]]):
        """Atomically apply writes; None values delete"""

    def write_tx(self) -> WriteTx:
        return WriteTx(self)

    def close(self):
        pass


# ============================================================================
# BACKENDS
# ============================================================================


class MemoryDatabase(Database):
    """Dict-backed store, useful for tests and ephemeral sequencers"""

    def __init__(self):
        self._data: Dict[bytes, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(bytes(key))

    def _apply(self, writes: Dict[bytes, Optional[bytes]]):
        with self._lock:
            for key, value in writes.items():
                if value is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class SQLiteDatabase(Database):
    """Single-table SQLite store; each commit is one SQL transaction"""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.execute(CREATE_TABLE_SQL)
        self._conn.commit()
        logger.info(f"Opened state database at {self.db_path}")

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?", (bytes(key),)).fetchone()
        return bytes(row[0]) if row else None

    def _apply(self, writes: Dict[bytes, Optional[bytes]]):
        upserts = [(k, v) for k, v in writes.items() if v is not None]
        deletes = [(k,) for k, v in writes.items() if v is None]
        with self._lock:
            with self._conn:
                if upserts:
                    self._conn.executemany(
                        "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", upserts)
                if deletes:
                    self._conn.executemany("DELETE FROM kv WHERE key = ?", deletes)

    def close(self):
        with self._lock:
            self._conn.close()
        logger.info(f"Closed state database at {self.db_path}")


class PrefixedDatabase(Database):
    """View of another database with every key prefixed"""

    def __init__(self, database: Database, prefix: bytes):
        self._database = database
        self.prefix = bytes(prefix)

    def get(self, key: bytes) -> Optional[bytes]:
        return self._database.get(self.prefix + bytes(key))

    def _apply(self, writes: Dict[bytes, Optional[bytes]]):
        self._database._apply(
            {self.prefix + key: value for key, value in writes.items()})

    def close(self):
        """No-op: the underlying database belongs to whoever opened it"""
        pass
