"""
Purpose: Key-value record stores.
What it does:
Each store holds one collection of plain dict records keyed by a key field
(trips by "id", settings by "id", signal cache by "key").

Operations: get(key), get_all(), put(record) (upsert), delete(key).

Two backends:
- InMemoryRecordStore: dict-backed, for tests and short-lived processes
- SqliteRecordStore: one table per collection, records stored as JSON

Rule: Stores know nothing about record shapes beyond the key field.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol
import copy
import json
import logging
import re
import sqlite3

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class RecordStore(Protocol):
    def get(self, key: str) -> Optional[Record]: ...

    def get_all(self) -> List[Record]: ...

    def put(self, record: Record) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryRecordStore:
    """
    Dict-backed store. Records are copied on the way in and out so callers
    never share mutable state with the store.
    """

    def __init__(self, key_field: str = "id"):
        self.key_field = key_field
        self._records: Dict[str, Record] = {}

    def get(self, key: str) -> Optional[Record]:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def get_all(self) -> List[Record]:
        return [copy.deepcopy(record) for record in self._records.values()]

    def put(self, record: Record) -> None:
        key = record.get(self.key_field)
        if key is None:
            raise KeyError(f"record has no '{self.key_field}' field")
        self._records[key] = copy.deepcopy(record)

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def __len__(self) -> int:
        return len(self._records)


_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SqliteRecordStore:
    """SQLite-backed store: one table per collection, JSON-encoded records."""

    def __init__(self, db_path: Path, table: str, key_field: str = "id"):
        if not _TABLE_NAME.match(table):
            raise ValueError(f"invalid table name: {table!r}")

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.table = table
        self.key_field = key_field

        self._init_schema()
        logger.info("record store '%s' initialized at %s", table, self.db_path)

    def _init_schema(self):
        with self._get_connection() as conn:
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {self.table} ("
                " key TEXT PRIMARY KEY,"
                " record TEXT NOT NULL,"
                " updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP"
                ")"
            )
            conn.commit()

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(str(self.db_path))
        try:
            yield conn
        finally:
            conn.close()

    def get(self, key: str) -> Optional[Record]:
        with self._get_connection() as conn:
            row = conn.execute(f"SELECT record FROM {self.table} WHERE key = ?", (key,)).fetchone()
        return json.loads(row[0]) if row else None

    def get_all(self) -> List[Record]:
        with self._get_connection() as conn:
            rows = conn.execute(f"SELECT record FROM {self.table}").fetchall()
        return [json.loads(row[0]) for row in rows]

    def put(self, record: Record) -> None:
        key = record.get(self.key_field)
        if key is None:
            raise KeyError(f"record has no '{self.key_field}' field")

        with self._get_connection() as conn:
            conn.execute(
                f"INSERT INTO {self.table} (key, record, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
                "ON CONFLICT(key) DO UPDATE SET record = excluded.record, updated_at = excluded.updated_at",
                (key, json.dumps(record)),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
            conn.commit()
