"""Store contract: what the paginated engine needs from a document store.

The engine never interprets a ``StoreCursor``; it only hands one back to the
store to continue a range query. Timestamps inside documents travel as
``StoreTimestamp`` values and are converted to ``datetime`` by the record mapper.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..utils.time import parse_store_timestamp

OWNER_NAMESPACE = "owner"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class StoreCursor:
    """Position of one document inside a sorted result set."""
    sort_key: Any
    doc_id: str


@dataclass(frozen=True)
class StoreTimestamp:
    """Store-native timestamp (fixed-width UTC text)."""
    value: str

    def to_datetime(self) -> datetime:
        return parse_store_timestamp(self.value)


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time copy of one document; ``data`` is None when it does not exist."""
    doc_id: str
    data: Optional[Dict[str, Any]]
    cursor: Optional[StoreCursor] = None

    @property
    def exists(self) -> bool:
        return self.data is not None


SnapshotListener = Callable[[DocumentSnapshot], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    async def range_query(
        self,
        path: str,
        sort_field: str,
        direction: SortDirection,
        limit: int,
        after: Optional[StoreCursor] = None,
    ) -> List[DocumentSnapshot]:
        """Return at most ``limit`` documents ordered by ``sort_field``, strictly after ``after``."""
        ...

    def watch_document(self, path: str, doc_id: str, listener: SnapshotListener) -> Unsubscribe:
        """Deliver the current snapshot, then one snapshot per change, until unsubscribed."""
        ...

    async def set_document(self, path: str, doc_id: str, value: Dict[str, Any]) -> None:
        ...

    async def add_document(self, path: str, value: Dict[str, Any]) -> str:
        ...

    async def delete_document(self, path: str, doc_id: str) -> None:
        ...


def owner_scoped_path(owner_id: str, path: str) -> str:
    """
    Build the owner-scoped collection address.

    Args:
        owner_id: Stable owner key
        path: Collection path relative to the owner

    Returns:
        ``owner/{owner_id}/{path}``
    """
    return f"{OWNER_NAMESPACE}/{owner_id}/{path.strip('/')}"


async def first_snapshot(store: DocumentStore, path: str, doc_id: str) -> DocumentSnapshot:
    """
    Take exactly one snapshot from a document's change stream.

    Subscribes, waits for the first emission and unsubscribes, also when the
    caller is cancelled (e.g. by a timeout).
    """
    first: asyncio.Future = asyncio.get_running_loop().create_future()

    def _on_snapshot(snapshot: DocumentSnapshot) -> None:
        if not first.done():
            first.set_result(snapshot)

    unsubscribe = store.watch_document(path, doc_id, _on_snapshot)
    try:
        return await first
    finally:
        unsubscribe()
