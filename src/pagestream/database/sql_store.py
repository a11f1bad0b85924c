"""SQLite-backed implementation of the document store contract."""

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..errors import StoreError
from ..store.base import (
    DocumentSnapshot,
    SnapshotListener,
    SortDirection,
    StoreCursor,
    Unsubscribe,
)
from ..utils.id_generator import new_document_id
from ..utils.logging import get_logger
from .document_repo import (
    delete_document_row,
    find_document,
    insert_document,
    load_document_data,
    query_document_page,
    upsert_document,
)
from .sqlite_client import get_session_factory, session_context

logger = get_logger(__name__)


class SqlDocumentStore:
    """
    Document store over a single SQLite ``documents`` table.

    Repository calls run in a worker thread so the event loop stays free and
    callers can bound them with a timeout. Writes made through this store are
    pushed to ``watch_document`` listeners of the same process, on the event
    loop. Range queries are one-shot reads.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._listeners: Dict[Tuple[str, str], List[SnapshotListener]] = defaultdict(list)

    @classmethod
    def from_path(cls, sqlite_path: str) -> "SqlDocumentStore":
        return cls(get_session_factory(sqlite_path))

    async def range_query(
        self,
        path: str,
        sort_field: str,
        direction: SortDirection,
        limit: int,
        after: Optional[StoreCursor] = None,
    ) -> List[DocumentSnapshot]:
        snapshots = await asyncio.to_thread(self._range_query, path, sort_field, direction, limit, after)
        logger.debug(f"Range query {path} by {sort_field} {direction.value} returned {len(snapshots)} document(s)")
        return snapshots

    def _range_query(
        self,
        path: str,
        sort_field: str,
        direction: SortDirection,
        limit: int,
        after: Optional[StoreCursor],
    ) -> List[DocumentSnapshot]:
        try:
            with session_context(self._session_factory) as session:
                rows = query_document_page(session, path, sort_field, direction, limit, after=after)
                return [
                    DocumentSnapshot(
                        doc_id=row.doc_id,
                        data=load_document_data(row.data_json),
                        cursor=StoreCursor(sort_key=sort_key, doc_id=row.doc_id),
                    )
                    for row, sort_key in rows
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"Range query on {path} failed: {e}") from e

    def watch_document(self, path: str, doc_id: str, listener: SnapshotListener) -> Unsubscribe:
        """Register a listener; the current snapshot is read and delivered before returning."""
        key = (path, doc_id)
        self._listeners[key].append(listener)

        def _unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        try:
            listener(self._read_snapshot(path, doc_id))
        except Exception:
            _unsubscribe()
            raise
        return _unsubscribe

    async def set_document(self, path: str, doc_id: str, value: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, path, doc_id, value, upsert_document, "set")
        await self._notify(path, doc_id)

    async def add_document(self, path: str, value: Dict[str, Any]) -> str:
        doc_id = new_document_id()
        await asyncio.to_thread(self._write, path, doc_id, value, insert_document, "add")
        await self._notify(path, doc_id)
        return doc_id

    async def delete_document(self, path: str, doc_id: str) -> None:
        deleted = await asyncio.to_thread(self._delete, path, doc_id)
        if deleted:
            await self._notify(path, doc_id)

    def _write(self, path: str, doc_id: str, value: Dict[str, Any], write_row, operation: str) -> None:
        try:
            with session_context(self._session_factory) as session:
                write_row(session, path, doc_id, value)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to {operation} {path}/{doc_id}: {e}") from e

    def _delete(self, path: str, doc_id: str) -> bool:
        try:
            with session_context(self._session_factory) as session:
                deleted = delete_document_row(session, path, doc_id)
                session.commit()
                return deleted
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete {path}/{doc_id}: {e}") from e

    def _read_snapshot(self, path: str, doc_id: str) -> DocumentSnapshot:
        try:
            with session_context(self._session_factory) as session:
                row = find_document(session, path, doc_id)
                data = load_document_data(row.data_json) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read {path}/{doc_id}: {e}") from e
        return DocumentSnapshot(doc_id=doc_id, data=data)

    async def _notify(self, path: str, doc_id: str) -> None:
        # Runs after the write is committed: failures here are logged, never raised to the writer.
        if not self._listeners.get((path, doc_id)):
            return
        try:
            snapshot = await asyncio.to_thread(self._read_snapshot, path, doc_id)
        except StoreError as e:
            logger.warning(f"Change notification for {path}/{doc_id} skipped: {e}")
            return
        for listener in list(self._listeners.get((path, doc_id), [])):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Listener for {path}/{doc_id} failed: {e}", exc_info=True)
