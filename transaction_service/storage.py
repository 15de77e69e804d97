"""
Storage Backend Module

Provides the abstract storage interface and implementations for in-memory
(testing), SQLite (single node persistence) and PostgreSQL. Records are
JSON documents keyed by id; monetary values are stored as Decimal strings.

Every backend serializes units of work on a connection-level lock held for
the whole atomic() block, so one request's commit or rollback can never
include another request's writes.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Set, Tuple, Union
from decimal import Decimal
from datetime import datetime, timezone
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager


SEQUENCES_TABLE = "sequences"


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = str(value)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary"""
        if 'created_at' in data and isinstance(data['created_at'], str):
            data['created_at'] = datetime.fromisoformat(data['created_at'])
        if 'updated_at' in data and isinstance(data['updated_at'], str):
            data['updated_at'] = datetime.fromisoformat(data['updated_at'])

        return cls(**data)


class StorageInterface(ABC):
    """
    Abstract interface for storage backends.

    Implementations must set ``self._lock`` to a re-entrant lock guarding
    their connection; atomic() holds it for the duration of the block.
    """

    _lock: threading.RLock

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str, for_update: bool = False) -> Optional[Dict[str, Any]]:
        """Load a record; for_update takes a row lock where the backend has them"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def next_sequence(self, name: str) -> int:
        """Return the next value of a named, monotonically increasing counter (starts at 1)"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """All writes inside the block are committed together or not at all"""
        with self._lock:
            self.begin_transaction()
            try:
                yield
                self.commit()
            except BaseException:
                self.rollback()
                raise


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing and single-process use"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = threading.RLock()
        # (table, record_id, previous value or None) for writes made inside a transaction
        self._journal: Optional[List[Tuple[str, str, Optional[Dict[str, Any]]]]] = None
        self._sequence_journal: Dict[str, int] = {}

    def _ensure_table(self, table: str) -> None:
        if table not in self._data:
            self._data[table] = {}

    def _record_undo(self, table: str, record_id: str) -> None:
        if self._journal is not None:
            self._journal.append((table, record_id, self._data[table].get(record_id)))

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            self._record_undo(table, record_id)
            # Deep copy to prevent external mutation
            self._data[table][record_id] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, record_id: str, for_update: bool = False) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record:
                return json.loads(json.dumps(record))
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            return [json.loads(json.dumps(record)) for record in self._data[table].values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                self._record_undo(table, record_id)
                del self._data[table][record_id]
                return True
            return False

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            return [
                json.loads(json.dumps(record))
                for record in self._data[table].values()
                if _matches(record, filters)
            ]

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._ensure_table(table)
            for record_id in list(self._data[table]):
                self._record_undo(table, record_id)
            self._data[table] = {}

    def next_sequence(self, name: str) -> int:
        with self._lock:
            current = self._sequences.get(name, 0)
            if self._journal is not None and name not in self._sequence_journal:
                self._sequence_journal[name] = current
            self._sequences[name] = current + 1
            return current + 1

    def begin_transaction(self) -> None:
        with self._lock:
            if self._journal is None:
                self._journal = []
                self._sequence_journal = {}

    def commit(self) -> None:
        with self._lock:
            self._journal = None
            self._sequence_journal = {}

    def rollback(self) -> None:
        with self._lock:
            if self._journal is None:
                return
            for table, record_id, previous in reversed(self._journal):
                if previous is None:
                    self._data[table].pop(record_id, None)
                else:
                    self._data[table][record_id] = previous
            self._sequences.update(self._sequence_journal)
            self._journal = None
            self._sequence_journal = {}

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False
        self._tables: Set[str] = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {SEQUENCES_TABLE} (
                    name TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                )
            """)
            self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._connection.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_created_at
            ON {table}(created_at)
        """)
        # DDL inside a transaction is rolled back with it, so only remember committed tables
        if not self._in_transaction:
            self._connection.commit()
            self._tables.add(table)

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(data, default=str)

            self._connection.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (record_id, data_json, record_id, now, now))
            self._autocommit()

    def load(self, table: str, record_id: str, for_update: bool = False) -> Optional[Dict[str, Any]]:
        # SQLite has no row locks; begin_transaction() already holds the database write lock
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (record_id,))
            row = cursor.fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} ORDER BY created_at
            """)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                DELETE FROM {table} WHERE id = ?
            """, (record_id,))
            self._autocommit()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT 1 FROM {table} WHERE id = ? LIMIT 1
            """, (record_id,))
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """)
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")
            self._autocommit()

    def next_sequence(self, name: str) -> int:
        with self._lock:
            self._connection.execute(f"""
                INSERT INTO {SEQUENCES_TABLE} (name, value) VALUES (?, 1)
                ON CONFLICT(name) DO UPDATE SET value = value + 1
            """, (name,))
            cursor = self._connection.execute(f"""
                SELECT value FROM {SEQUENCES_TABLE} WHERE name = ?
            """, (name,))
            value = cursor.fetchone()['value']
            self._autocommit()
            return value

    def begin_transaction(self) -> None:
        with self._lock:
            if not self._in_transaction:
                # IMMEDIATE takes the write lock up front so reads inside the
                # unit of work cannot go stale under another connection
                self._connection.execute("BEGIN IMMEDIATE")
                self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class PostgreSQLStorage(StorageInterface):
    """PostgreSQL storage backend with ACID transaction support"""

    def __init__(self, connection_string: str):
        try:
            import psycopg2
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        self._connection = None
        self._lock = threading.RLock()
        self._in_transaction = False
        self._tables: Set[str] = set()
        self._connect()
        self._ensure_sequences()

    def _connect(self) -> None:
        with self._lock:
            self._connection = self.psycopg2.connect(
                self.connection_string,
                cursor_factory=self.extras.RealDictCursor
            )
            self._connection.autocommit = False  # We handle transactions manually

    def _ensure_sequences(self) -> None:
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(f"""
                    CREATE TABLE IF NOT EXISTS {SEQUENCES_TABLE} (
                        name TEXT PRIMARY KEY,
                        value BIGINT NOT NULL
                    )
                """)
                self._connection.commit()
            finally:
                cursor.close()

    def _ensure_table(self, table: str) -> None:
        if table in self._tables:
            return
        cursor = self._connection.cursor()
        try:
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data JSONB NOT NULL,
                    created_at TIMESTAMP DEFAULT NOW(),
                    updated_at TIMESTAMP DEFAULT NOW()
                )
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_data
                ON {table} USING gin(data)
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            if not self._in_transaction:
                self._connection.commit()
                self._tables.add(table)
        finally:
            cursor.close()

    def _execute(self, sql: str, params: tuple = ()) -> Any:
        cursor = self._connection.cursor()
        cursor.execute(sql, params)
        return cursor

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc)
            cursor = self._execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    data = EXCLUDED.data,
                    updated_at = EXCLUDED.updated_at
            """, (record_id, json.dumps(data, default=str), now, now))
            cursor.close()
            self._autocommit()

    def load(self, table: str, record_id: str, for_update: bool = False) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            lock_clause = " FOR UPDATE" if for_update and self._in_transaction else ""
            cursor = self._execute(
                f"SELECT data FROM {table} WHERE id = %s{lock_clause}", (record_id,)
            )
            try:
                row = cursor.fetchone()
                return dict(row['data']) if row else None
            finally:
                cursor.close()

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            cursor = self._execute(f"SELECT data FROM {table} ORDER BY created_at")
            try:
                return [dict(row['data']) for row in cursor.fetchall()]
            finally:
                cursor.close()

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._execute(f"DELETE FROM {table} WHERE id = %s", (record_id,))
            try:
                self._autocommit()
                return cursor.rowcount > 0
            finally:
                cursor.close()

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._execute(f"SELECT 1 FROM {table} WHERE id = %s LIMIT 1", (record_id,))
            try:
                return cursor.fetchone() is not None
            finally:
                cursor.close()

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using JSONB operators"""
        if not filters:
            return self.load_all(table)
        with self._lock:
            self._ensure_table(table)
            conditions = []
            params: List[Any] = []
            for key, value in filters.items():
                conditions.append("data ->> %s = %s")
                params.extend([key, str(value)])
            cursor = self._execute(f"""
                SELECT data FROM {table}
                WHERE {" AND ".join(conditions)}
                ORDER BY created_at
            """, tuple(params))
            try:
                return [dict(row['data']) for row in cursor.fetchall()]
            finally:
                cursor.close()

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            cursor = self._execute(f"SELECT COUNT(*) as count FROM {table}")
            try:
                return cursor.fetchone()['count']
            finally:
                cursor.close()

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._ensure_table(table)
            self._execute(f"DELETE FROM {table}").close()
            self._autocommit()

    def next_sequence(self, name: str) -> int:
        with self._lock:
            cursor = self._execute(f"""
                INSERT INTO {SEQUENCES_TABLE} (name, value) VALUES (%s, 1)
                ON CONFLICT (name) DO UPDATE SET value = {SEQUENCES_TABLE}.value + 1
                RETURNING value
            """, (name,))
            try:
                value = cursor.fetchone()['value']
            finally:
                cursor.close()
            self._autocommit()
            return int(value)

    def begin_transaction(self) -> None:
        with self._lock:
            if not self._in_transaction:
                # PostgreSQL transactions start automatically
                self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a URL.

    memory://                  -> InMemoryStorage
    sqlite:///path/to/file.db  -> SQLiteStorage (sqlite:///:memory: for a private in-memory db)
    postgresql://...           -> PostgreSQLStorage
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite:///"):
        return SQLiteStorage(database_url[len("sqlite:///"):] or ":memory:")
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLStorage(database_url)
    raise ValueError(f"Unsupported database URL: {database_url}")
