"""Mapping from store snapshots to domain records."""

from typing import Any, Dict, Type, TypeVar

from ..records.models import Record
from ..store.base import DocumentSnapshot, StoreTimestamp

R = TypeVar("R", bound=Record)


def normalize_timestamps(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``data`` with top-level ``StoreTimestamp`` values converted to ``datetime``."""
    return {
        key: value.to_datetime() if isinstance(value, StoreTimestamp) else value
        for key, value in data.items()
    }


def document_to_record(snapshot: DocumentSnapshot, record_type: Type[R]) -> R:
    """
    Convert a document snapshot to a record.

    The store identifier and cursor are attached; date fields missing from
    the document stay None.

    Args:
        snapshot: Existing document snapshot
        record_type: Record model to validate into

    Returns:
        Record instance

    Raises:
        ValueError: If the snapshot is for a missing document
    """
    if not snapshot.exists:
        raise ValueError(f"Document {snapshot.doc_id} does not exist")
    data = normalize_timestamps(snapshot.data)
    data["id"] = snapshot.doc_id
    data["cursor"] = snapshot.cursor
    return record_type.model_validate(data)
