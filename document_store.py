"""Document store: whole-document get/set keyed by collection and id.

Provides the same small API over two backends:
  - SQLiteDocumentStore: JSON documents in the ``documents`` table
  - InMemoryDocumentStore: a dict, for local runs without a database file

Usage:
    store = SQLiteDocumentStore(path)
    store.set("users", "42", {...})      # full overwrite
    doc = store.get("users", "42")       # dict or None

There are no partial updates, queries or transactions: the last writer wins.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from datetime import datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    """The store could not be reached or returned something unreadable."""


# ── Protocol ───────────────────────────────────────────────

class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...
    def set(self, collection: str, doc_id: str, value: dict[str, Any]) -> None: ...


# ── In-Memory Implementation ──────────────────────────────

class InMemoryDocumentStore:
    """Dict-backed store; values are deep-copied in and out."""

    def __init__(self) -> None:
        self._docs: dict[tuple[str, str], dict] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._docs.get((collection, str(doc_id)))
            return copy.deepcopy(doc) if doc is not None else None

    def set(self, collection: str, doc_id: str, value: dict[str, Any]) -> None:
        with self._lock:
            self._docs[(collection, str(doc_id))] = copy.deepcopy(value)


# ── SQLite Implementation ─────────────────────────────────

class SQLiteDocumentStore:
    """JSON documents in SQLite.

    Opens its own short-lived connection per call instead of using the
    request-bound ``get_db()``, because debounced writes run on scheduler
    threads outside any app context.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute(
            "CREATE TABLE IF NOT EXISTS documents ("
            " collection TEXT NOT NULL,"
            " doc_id TEXT NOT NULL,"
            " body TEXT NOT NULL,"
            " updated_at TEXT NOT NULL DEFAULT '',"
            " PRIMARY KEY (collection, doc_id))"
        )
        return conn

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT body FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, str(doc_id)),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise DocumentStoreError(f"read {collection}/{doc_id} failed: {e}") from e

        if row is None:
            return None
        try:
            return json.loads(row["body"])
        except json.JSONDecodeError as e:
            raise DocumentStoreError(f"corrupt document {collection}/{doc_id}") from e

    def set(self, collection: str, doc_id: str, value: dict[str, Any]) -> None:
        body = json.dumps(value)
        try:
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT INTO documents (collection, doc_id, body, updated_at) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(collection, doc_id) DO UPDATE SET body = excluded.body, "
                    "updated_at = excluded.updated_at",
                    (collection, str(doc_id), body, datetime.now().isoformat()),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise DocumentStoreError(f"write {collection}/{doc_id} failed: {e}") from e
