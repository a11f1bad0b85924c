"""Address history: where the owner lived, newest first."""

from typing import Any, Mapping, Optional

from ..query.engine import DEFAULT_FETCH_TIMEOUT_SECONDS, PaginatedStream
from ..records.models import AddressRecord
from ..store.base import DocumentStore

ADDRESS_HISTORY_PATH = "address-history"
ADDRESS_SORT_FIELD = "start"
ADDRESS_SEARCH_FIELDS = ("location_name", "address")


class AddressHistory(PaginatedStream[AddressRecord]):
    def __init__(
        self,
        store: DocumentStore,
        owner_id: str,
        *,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        query_defaults: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(
            store,
            owner_id,
            AddressRecord,
            search_fields=ADDRESS_SEARCH_FIELDS,
            fetch_timeout=fetch_timeout,
            query_defaults=query_defaults,
        )

    async def start(self, search_value: str = "") -> None:
        """Load the first page, most recent address first."""
        await self.init(
            ADDRESS_HISTORY_PATH,
            ADDRESS_SORT_FIELD,
            {"reverse": True, "prepend": False, "search_value": search_value},
        )
