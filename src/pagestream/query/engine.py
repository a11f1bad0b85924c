"""Paginated stream engine: cursor pagination over an owner-scoped collection.

State machine over ``loading`` / ``done``:

- Idle (not loading, not done): ``load_more`` issues a fetch.
- Loading: ``load_more`` is a no-op; ``refresh`` resets and fetches again.
- Exhausted (done): ``load_more`` is a no-op until the next ``refresh``/``init``.

Every ``refresh`` bumps a generation counter. A fetch whose generation is no
longer current when it resolves is discarded, so a slow page from before a
refresh never lands in the fresh state.
"""

import asyncio
from typing import Any, Awaitable, Dict, Generic, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from pydantic import ValidationError

from ..errors import ConfigurationError, FetchTimeoutError, OwnerKeyError, StoreError
from ..records.models import Record
from ..store.base import DocumentSnapshot, DocumentStore, StoreCursor, first_snapshot, owner_scoped_path
from ..utils.logging import get_logger
from .config import QueryConfig
from .mapping import document_to_record
from .observable import ObservableValue, publish
from .projection import AccumulatedView

logger = get_logger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0

R = TypeVar("R", bound=Record)

T = TypeVar("T")


class PaginatedStream(Generic[R]):
    """
    Incrementally loaded, search-filtered view over one sorted collection.

    Observable state: ``loading``, ``done``, ``error`` and the current
    ``raw_page``. Consumers read ``data``, the filtered accumulation of every
    page fetched since the last refresh.

    Args:
        store: Document store implementation
        owner_id: Owner key all collections are scoped under
        record_type: Record model documents are mapped to
        search_fields: Record fields matched against the search value
        fetch_timeout: Seconds to wait for a store response
        query_defaults: Overrides for the built-in query option defaults

    Raises:
        OwnerKeyError: If ``owner_id`` is empty
    """

    def __init__(
        self,
        store: DocumentStore,
        owner_id: str,
        record_type: Type[R] = Record,
        *,
        search_fields: Sequence[str] = (),
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        query_defaults: Optional[Mapping[str, Any]] = None,
    ):
        if not owner_id or not str(owner_id).strip():
            raise OwnerKeyError("An owner key is required to scope collection queries")
        if fetch_timeout <= 0:
            raise ConfigurationError(f"fetch_timeout must be positive, got {fetch_timeout}")

        self._store = store
        self.owner_id = str(owner_id).strip()
        self._record_type = record_type
        self._search_fields = tuple(search_fields)
        self._fetch_timeout = fetch_timeout
        self._query_defaults = dict(query_defaults or {})

        self.loading: ObservableValue[bool] = ObservableValue(False)
        self.done: ObservableValue[bool] = ObservableValue(False)
        self.error: ObservableValue[Optional[Exception]] = ObservableValue(None)

        self._query: Optional[QueryConfig] = None
        self._raw_page: ObservableValue[List[R]] = ObservableValue([])
        self._data: Optional[AccumulatedView] = None
        self._generation = 0

    @property
    def query(self) -> Optional[QueryConfig]:
        return self._query

    @property
    def raw_page(self) -> ObservableValue[List[R]]:
        return self._raw_page

    @property
    def data(self) -> ObservableValue[List[R]]:
        """Filtered accumulated records; replaced by every refresh."""
        if self._data is None:
            raise ConfigurationError("init() must be called before reading data")
        return self._data

    @property
    def results(self) -> List[R]:
        return list(self.data.value)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def collection_path(self) -> str:
        return owner_scoped_path(self.owner_id, self._require_query().path)

    async def init(self, path: str, sort_field: str, options: Optional[Mapping[str, Any]] = None) -> None:
        """
        Replace the query and start over.

        Args:
            path: Collection path, relative to the owner
            sort_field: Field to order by
            options: Any of page_size, reverse, prepend, search_value, filter_enabled;
                unspecified options take their defaults

        Raises:
            ConfigurationError: On unknown options or invalid values
        """
        self._query = QueryConfig.from_options(path, sort_field, options, defaults=self._query_defaults)
        logger.debug(f"Query set: {self._query}")
        await self.refresh()

    async def refresh(self) -> None:
        """Discard all pages and state, then fetch the first page."""
        query = self._require_query()
        self._generation += 1

        if self._data is not None:
            self._data.detach()
        self._raw_page.close()

        self._raw_page = ObservableValue([])
        self._data = AccumulatedView(self._raw_page, query, self._search_fields)
        publish((self.done, False), (self.loading, False), (self.error, None))

        await self._map_and_update(after=None)

    async def load_more(self) -> bool:
        """
        Fetch the page after the current boundary record; no-op while loading or done.

        Returns:
            True if a fetch was issued, False if the call was a no-op
        """
        self._require_query()
        return await self._map_and_update(after=self._boundary_cursor())

    async def wait_until_idle(self) -> None:
        """Return once no fetch is in flight."""
        if not self.loading.value:
            return
        idle = asyncio.Event()
        unsubscribe = self.loading.subscribe(lambda loading: idle.set() if not loading else None)
        try:
            await idle.wait()
        finally:
            unsubscribe()

    def _boundary_cursor(self) -> Optional[StoreCursor]:
        current = self._raw_page.value
        if not current:
            return None
        boundary = current[0] if self._query.prepend else current[-1]
        return boundary.cursor

    async def _map_and_update(self, after: Optional[StoreCursor]) -> bool:
        if self.done.value or self.loading.value:
            logger.debug(
                f"Fetch skipped for {self.collection_path} "
                f"(loading={self.loading.value}, done={self.done.value})"
            )
            return False

        query = self._query
        path = self.collection_path
        generation = self._generation
        raw_page = self._raw_page

        self.loading.set(True)
        try:
            snapshots = await self._with_timeout(
                self._store.range_query(
                    path,
                    query.sort_field,
                    query.direction,
                    query.page_size,
                    after=after,
                ),
                f"Range query on {path}",
            )
            records = self._map_page(snapshots)
        except (FetchTimeoutError, StoreError) as e:
            self._fetch_failed(generation, e)
            return True

        if generation != self._generation:
            logger.debug(
                f"Discarding stale page of {len(records)} record(s) for {path} "
                f"(generation {generation}, current {self._generation})"
            )
            return True

        if query.prepend:
            records.reverse()

        assignments = [(raw_page, records), (self.loading, False), (self.error, None)]
        if not records:
            assignments.append((self.done, True))
            logger.debug(f"No more records in {path}")
        publish(*assignments)
        return True

    def _map_page(self, snapshots: List[DocumentSnapshot]) -> List[R]:
        try:
            return [document_to_record(snapshot, self._record_type) for snapshot in snapshots]
        except ValidationError as e:
            raise StoreError(f"Malformed document in {self.collection_path}: {e}") from e

    def _fetch_failed(self, generation: int, error: Exception) -> None:
        if generation != self._generation:
            logger.debug(f"Ignoring failure of superseded fetch (generation {generation}): {error}")
            return
        logger.warning(f"Fetch failed for {self.collection_path}: {error}")
        publish((self.loading, False), (self.error, error))

    async def _with_timeout(self, awaitable: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._fetch_timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(operation, self._fetch_timeout) from e

    async def get(self, doc_id: str) -> Optional[R]:
        """
        Read one document from the collection.

        Takes the first snapshot of the store's change stream and unsubscribes.

        Returns:
            Record, or None if the document does not exist

        Raises:
            FetchTimeoutError: If no snapshot arrives in time
            StoreError: On store failure
        """
        path = self.collection_path
        snapshot = await self._with_timeout(
            first_snapshot(self._store, path, doc_id),
            f"Get {path}/{doc_id}",
        )
        if not snapshot.exists:
            return None
        try:
            return document_to_record(snapshot, self._record_type)
        except ValidationError as e:
            raise StoreError(f"Malformed document {path}/{doc_id}: {e}") from e

    async def create(self, value: Union[Record, Mapping[str, Any]]) -> str:
        """Add a document and return its new ID. Pages already loaded are not updated."""
        path = self.collection_path
        doc_id = await self._with_timeout(
            self._store.add_document(path, _document_body(value)),
            f"Create in {path}",
        )
        logger.debug(f"Created {path}/{doc_id}")
        return doc_id

    async def update(self, doc_id: str, value: Union[Record, Mapping[str, Any]]) -> None:
        """Replace a document's body (created if missing)."""
        path = self.collection_path
        await self._with_timeout(
            self._store.set_document(path, doc_id, _document_body(value)),
            f"Update {path}/{doc_id}",
        )
        logger.debug(f"Updated {path}/{doc_id}")

    async def delete(self, doc_id: str) -> None:
        path = self.collection_path
        await self._with_timeout(
            self._store.delete_document(path, doc_id),
            f"Delete {path}/{doc_id}",
        )
        logger.debug(f"Deleted {path}/{doc_id}")

    def close(self) -> None:
        """Detach the current view and drop all subscribers."""
        if self._data is not None:
            self._data.detach()
        for observable in (self._raw_page, self.loading, self.done, self.error):
            observable.close()

    def _require_query(self) -> QueryConfig:
        if self._query is None:
            raise ConfigurationError("init() must be called before using the stream")
        return self._query


def _document_body(value: Union[Record, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(value, Record):
        return value.document_body()
    body = dict(value)
    body.pop("id", None)
    body.pop("cursor", None)
    return body
