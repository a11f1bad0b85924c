"""Repository functions for document persistence and ordered page queries."""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from ..database.schema import Document
from ..store.base import SortDirection, StoreCursor, StoreTimestamp
from ..utils.time import to_store_timestamp

TIMESTAMP_TAG = "__timestamp__"

_FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def dump_document_data(value: Dict[str, Any]) -> str:
    """
    Serialize a document body to JSON text.

    ``datetime`` and ``StoreTimestamp`` values are stored as
    ``{"__timestamp__": "<fixed-width UTC>"}`` so they can be ordered and
    recognized on the way back out.
    """
    def _default(obj: Any) -> Any:
        if isinstance(obj, StoreTimestamp):
            return {TIMESTAMP_TAG: obj.value}
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                obj = obj.replace(tzinfo=timezone.utc)
            return {TIMESTAMP_TAG: to_store_timestamp(obj)}
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

    return json.dumps(value, default=_default, sort_keys=True)


def load_document_data(data_json: str) -> Dict[str, Any]:
    """Deserialize JSON text, turning tagged timestamps into ``StoreTimestamp``."""
    def _hook(obj: Dict[str, Any]) -> Any:
        if len(obj) == 1 and TIMESTAMP_TAG in obj:
            return StoreTimestamp(obj[TIMESTAMP_TAG])
        return obj

    return json.loads(data_json, object_hook=_hook)


def _sort_expression(sort_field: str):
    if not _FIELD_NAME_RE.match(sort_field):
        raise ValueError(f"Invalid sort field: {sort_field!r}")
    # Tagged timestamps sort by their text value, everything else by its JSON value.
    return func.coalesce(
        func.json_extract(Document.data_json, f"$.{sort_field}.{TIMESTAMP_TAG}"),
        func.json_extract(Document.data_json, f"$.{sort_field}"),
    )


def _after_clause(sort_expr, direction: SortDirection, after: StoreCursor):
    """Strictly-after condition for (sort_key, doc_id) ordering; SQLite puts NULLs first in ASC."""
    key = after.sort_key
    if direction == SortDirection.ASC:
        if key is None:
            return or_(
                sort_expr.isnot(None),
                and_(sort_expr.is_(None), Document.doc_id > after.doc_id),
            )
        return or_(
            sort_expr > key,
            and_(sort_expr == key, Document.doc_id > after.doc_id),
        )
    if key is None:
        return and_(sort_expr.is_(None), Document.doc_id < after.doc_id)
    return or_(
        sort_expr < key,
        sort_expr.is_(None),
        and_(sort_expr == key, Document.doc_id < after.doc_id),
    )


def query_document_page(
    session: Session,
    collection: str,
    sort_field: str,
    direction: SortDirection,
    limit: int,
    after: Optional[StoreCursor] = None,
) -> List[Tuple[Document, Any]]:
    """
    Query one page of documents ordered by a JSON field.

    Args:
        session: SQLAlchemy session
        collection: Owner-scoped collection path
        sort_field: Top-level document field to order by
        direction: Sort direction
        limit: Maximum number of documents to return
        after: Continue strictly after this cursor (None starts at the beginning)

    Returns:
        List of (Document row, sort key) tuples, ordered by sort key then doc_id
    """
    sort_expr = _sort_expression(sort_field)
    q = session.query(Document, sort_expr.label("sort_key")).filter(Document.collection == collection)

    if after is not None:
        q = q.filter(_after_clause(sort_expr, direction, after))

    if direction == SortDirection.DESC:
        q = q.order_by(sort_expr.desc(), Document.doc_id.desc())
    else:
        q = q.order_by(sort_expr.asc(), Document.doc_id.asc())

    return [(row, sort_key) for row, sort_key in q.limit(limit).all()]


def find_document(session: Session, collection: str, doc_id: str) -> Optional[Document]:
    """Find document by collection and ID."""
    return (
        session.query(Document)
        .filter(Document.collection == collection, Document.doc_id == doc_id)
        .first()
    )


def upsert_document(
    session: Session,
    collection: str,
    doc_id: str,
    value: Dict[str, Any],
) -> Document:
    """
    Replace the body of a document, creating it if missing.

    Args:
        session: SQLAlchemy session
        collection: Owner-scoped collection path
        doc_id: Document ID
        value: Full document body (previous fields are not merged)

    Returns:
        Document row (not committed)
    """
    now_iso = datetime.now(timezone.utc).isoformat()
    row = find_document(session, collection, doc_id)
    if row is None:
        row = Document(
            collection=collection,
            doc_id=doc_id,
            created_at_utc=now_iso,
        )
    row.data_json = dump_document_data(value)
    row.updated_at_utc = now_iso
    session.add(row)
    return row


def insert_document(
    session: Session,
    collection: str,
    doc_id: str,
    value: Dict[str, Any],
) -> Document:
    """Create a new document row (not committed)."""
    now_iso = datetime.now(timezone.utc).isoformat()
    row = Document(
        collection=collection,
        doc_id=doc_id,
        data_json=dump_document_data(value),
        created_at_utc=now_iso,
        updated_at_utc=now_iso,
    )
    session.add(row)
    return row


def delete_document_row(session: Session, collection: str, doc_id: str) -> bool:
    """
    Delete a document row if present.

    Returns:
        True if a row was deleted, False if it did not exist
    """
    row = find_document(session, collection, doc_id)
    if row is None:
        return False
    session.delete(row)
    return True
