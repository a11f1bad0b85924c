from .base import (
    DocumentSnapshot,
    DocumentStore,
    SortDirection,
    StoreCursor,
    StoreTimestamp,
    first_snapshot,
    owner_scoped_path,
)

__all__ = [
    "DocumentSnapshot",
    "DocumentStore",
    "SortDirection",
    "StoreCursor",
    "StoreTimestamp",
    "first_snapshot",
    "owner_scoped_path",
]
