"""
SQLite-backed document store.

Documents are JSON objects addressed by slash-joined paths that alternate
collection and document segments, e.g. ``archives/{uid}/movies/{movieId}``.
Besides per-document reads and writes the store supports collection and
document listeners: every committed write re-reads the affected collection
and pushes the full snapshot to each registered listener.

Single-document writes are linearized by the store lock. There are no
multi-document transactions; callers that touch two documents issue two
independent writes.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Mapping
from uuid import uuid4

from .errors import NotFound, StoreError

logger = logging.getLogger(__name__)

DOCUMENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    path        TEXT PRIMARY KEY,
    collection  TEXT NOT NULL,
    doc_id      TEXT NOT NULL,
    data        TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

INDEX_SQL = "CREATE INDEX IF NOT EXISTS ix_documents_collection ON documents (collection, doc_id);"


class _ServerTimestamp:
    """Sentinel replaced by the store's clock when a document is written."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def document_path(*segments: Any) -> str:
    """Join path segments, validating that they address a document."""
    path = "/".join(str(s).strip("/") for s in segments)
    parts = _split(path)
    if len(parts) % 2 != 0:
        raise ValueError(f"Not a document path: {path!r}")
    return path


def collection_path(*segments: Any) -> str:
    """Join path segments, validating that they address a collection."""
    path = "/".join(str(s).strip("/") for s in segments)
    parts = _split(path)
    if len(parts) % 2 != 1:
        raise ValueError(f"Not a collection path: {path!r}")
    return path


def _split(path: str) -> list[str]:
    parts = path.split("/")
    if not path or any(not p for p in parts):
        raise ValueError(f"Invalid path: {path!r}")
    return parts


def _default_clock() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Value of type {type(value).__name__} is not storable")


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    path: str
    data: dict | None

    @property
    def exists(self) -> bool:
        return self.data is not None

    def to_dict(self) -> dict:
        return dict(self.data or {})

    def get(self, field: str, default: Any = None) -> Any:
        return (self.data or {}).get(field, default)


class ListenerRegistration:
    """
    Handle for a standing listener.

    `unsubscribe()` guarantees that no callback runs after it returns. A
    listener that hits an error reports it once through `on_error` and is
    then removed; nothing re-establishes it.
    """

    def __init__(
        self,
        store: "DocumentStore",
        target: str,
        kind: str,
        on_snapshot: Callable[[Any], None],
        on_error: Callable[[Exception], None] | None = None,
    ):
        self._store = store
        self.target = target
        self.kind = kind
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._store._remove_listener(self)

    def __call__(self) -> None:
        self.unsubscribe()

    def _deliver(self, snapshot: Any) -> None:
        with self._lock:
            if not self._active:
                return
            try:
                self._on_snapshot(snapshot)
            except Exception:
                logger.exception(f"Listener callback failed for {self.kind} {self.target}")

    def _fail(self, error: Exception) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            try:
                if self._on_error is not None:
                    self._on_error(error)
            except Exception:
                logger.exception(f"Listener error callback failed for {self.kind} {self.target}")
        self._store._remove_listener(self)


class DocumentStore:
    """Schemaless document store with listeners, persisted in one SQLite file."""

    def __init__(self, db_path: str = ":memory:", clock: Callable[[], str] | None = None):
        self.db_path = db_path
        self._clock = clock or _default_clock
        self._lock = threading.RLock()
        self._listeners: list[ListenerRegistration] = []
        # Held across snapshot read and delivery so listeners see snapshots in commit order
        self._dispatch_lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(db_path, timeout=30.0, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA busy_timeout = 30000")
            if db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(DOCUMENTS_TABLE_SQL)
            self._conn.execute(INDEX_SQL)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open document store at {db_path}: {exc}") from exc
        logger.info(f"Document store opened at {db_path}")

    # ----- internals -----
    @contextmanager
    def _guard(self, op: str, path: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            logger.error(f"Store {op} failed for {path}: {exc}")
            raise StoreError(f"{op} failed for {path}: {exc}") from exc

    def _stamp(self, data: Mapping[str, Any], now: str) -> dict:
        out = {}
        for key, value in data.items():
            if value is SERVER_TIMESTAMP:
                out[key] = now
            elif isinstance(value, Mapping):
                out[key] = self._stamp(value, now)
            else:
                out[key] = value
        return out

    def _read(self, path: str) -> dict | None:
        row = self._conn.execute("SELECT data FROM documents WHERE path = ?", (path,)).fetchone()
        return json.loads(row["data"]) if row else None

    def _write(self, path: str, data: dict, now: str) -> None:
        parts = _split(path)
        self._conn.execute(
            """
            INSERT INTO documents (path, collection, doc_id, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
            """,
            (path, "/".join(parts[:-1]), parts[-1], json.dumps(data, default=_json_default), now, now),
        )

    def _read_collection(self, collection: str) -> list[DocumentSnapshot]:
        with self._lock:
            with self._guard("list", collection):
                rows = self._conn.execute(
                    "SELECT path, doc_id, data FROM documents WHERE collection = ? ORDER BY doc_id",
                    (collection,),
                ).fetchall()
        return [DocumentSnapshot(row["doc_id"], row["path"], json.loads(row["data"])) for row in rows]

    def _read_document(self, path: str) -> DocumentSnapshot:
        with self._lock:
            with self._guard("get", path):
                data = self._read(path)
        return DocumentSnapshot(_split(path)[-1], path, data)

    def _notify(self, path: str) -> None:
        """Push fresh snapshots to listeners of the written document and its collection."""
        collection = "/".join(_split(path)[:-1])
        with self._lock:
            targets = [
                reg for reg in self._listeners
                if (reg.kind == "collection" and reg.target == collection)
                or (reg.kind == "document" and reg.target == path)
            ]
        for reg in targets:
            self._dispatch(reg)

    def _dispatch(self, reg: ListenerRegistration) -> None:
        # Never taken while holding self._lock; writers release it before notifying
        with self._dispatch_lock:
            try:
                if reg.kind == "collection":
                    snapshot: Any = self._read_collection(reg.target)
                else:
                    snapshot = self._read_document(reg.target)
            except StoreError as exc:
                reg._fail(exc)
                return
            reg._deliver(snapshot)

    def _remove_listener(self, reg: ListenerRegistration) -> None:
        with self._lock:
            if reg in self._listeners:
                self._listeners.remove(reg)

    # ----- documents -----
    def get(self, path: str) -> dict | None:
        """Return the document's data, or None if it does not exist."""
        document_path(path)
        return self._read_document(path).data

    def set(self, path: str, data: Mapping[str, Any], merge: bool = False) -> None:
        """
        Write a document.

        With ``merge=True`` only the top-level fields present in ``data`` are
        replaced; other fields of an existing document are kept.
        """
        document_path(path)
        with self._lock:
            with self._guard("set", path):
                now = self._clock()
                payload = self._stamp(data, now)
                if merge:
                    existing = self._read(path) or {}
                    existing.update(payload)
                    payload = existing
                self._write(path, payload, now)
                self._conn.commit()
        self._notify(path)

    def update(self, path: str, data: Mapping[str, Any]) -> None:
        """Merge fields into an existing document; NotFound if it is missing."""
        document_path(path)
        with self._lock:
            with self._guard("update", path):
                existing = self._read(path)
                if existing is None:
                    raise NotFound(f"No document at {path}")
                now = self._clock()
                existing.update(self._stamp(data, now))
                self._write(path, existing, now)
                self._conn.commit()
        self._notify(path)

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        """Create a document with a generated id in ``collection``; return the id."""
        collection_path(collection)
        doc_id = uuid4().hex[:20]
        self.set(f"{collection}/{doc_id}", data)
        return doc_id

    def delete(self, path: str) -> bool:
        """Delete a document. Returns False when there was nothing to delete."""
        document_path(path)
        with self._lock:
            with self._guard("delete", path):
                cur = self._conn.execute("DELETE FROM documents WHERE path = ?", (path,))
                self._conn.commit()
                deleted = cur.rowcount > 0
        if deleted:
            self._notify(path)
        return deleted

    def increment(self, path: str, field: str, amount: int = 1) -> int:
        """Atomically add ``amount`` to a numeric field and return the new value."""
        document_path(path)
        with self._lock:
            with self._guard("increment", path):
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    existing = self._read(path)
                    if existing is None:
                        raise NotFound(f"No document at {path}")
                    value = int(existing.get(field) or 0) + amount
                    existing[field] = value
                    self._write(path, existing, self._clock())
                    self._conn.commit()
                except BaseException:
                    self._conn.rollback()
                    raise
        self._notify(path)
        return value

    # ----- collections -----
    def list_collection(self, collection: str) -> list[DocumentSnapshot]:
        collection_path(collection)
        return self._read_collection(collection)

    def query(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[DocumentSnapshot]:
        """Equality-filtered, optionally ordered read of a collection."""
        docs = self.list_collection(collection)
        if where:
            docs = [d for d in docs if all(d.get(k) == v for k, v in where.items())]
        if order_by:
            present = [d for d in docs if d.get(order_by) is not None]
            missing = [d for d in docs if d.get(order_by) is None]
            present.sort(key=lambda d: d.get(order_by), reverse=descending)
            docs = present + missing
        if limit is not None:
            docs = docs[:limit]
        return docs

    # ----- listeners -----
    def subscribe(
        self,
        collection: str,
        on_snapshot: Callable[[list[DocumentSnapshot]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> ListenerRegistration:
        """Listen to a collection. The current snapshot is delivered immediately."""
        collection_path(collection)
        reg = ListenerRegistration(self, collection, "collection", on_snapshot, on_error)
        with self._lock:
            self._listeners.append(reg)
        self._dispatch(reg)
        return reg

    def subscribe_document(
        self,
        path: str,
        on_snapshot: Callable[[DocumentSnapshot], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> ListenerRegistration:
        """Listen to a single document. The current snapshot is delivered immediately."""
        document_path(path)
        reg = ListenerRegistration(self, path, "document", on_snapshot, on_error)
        with self._lock:
            self._listeners.append(reg)
        self._dispatch(reg)
        return reg

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def close(self) -> None:
        with self._lock:
            for reg in list(self._listeners):
                reg.unsubscribe()
            self._conn.close()
