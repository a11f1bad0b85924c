"""Trips list with search by name."""

from typing import Any, Mapping, Optional

from ..query.engine import DEFAULT_FETCH_TIMEOUT_SECONDS, PaginatedStream
from ..records.models import TripRecord
from ..store.base import DocumentStore

TRIPS_PATH = "trips"
TRIP_SORT_FIELD = "start"
TRIP_SEARCH_FIELDS = ("purpose", "city", "state", "country")
TRIP_EXPORT_COLUMNS = ["start", "end", "country", "state", "city", "purpose"]


class TripsList(PaginatedStream[TripRecord]):
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
            TripRecord,
            search_fields=TRIP_SEARCH_FIELDS,
            fetch_timeout=fetch_timeout,
            query_defaults=query_defaults,
        )

    async def search_by_name(self, search_value: Optional[str] = None) -> None:
        """Restart the list, newest trip first, filtered by ``search_value``."""
        value = search_value.lower() if search_value else ""
        await self.init(
            TRIPS_PATH,
            TRIP_SORT_FIELD,
            {"reverse": True, "prepend": False, "search_value": value},
        )
