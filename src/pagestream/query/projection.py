"""Search filtering and accumulation of fetched pages.

The filter and fold functions are pure; ``AccumulatedView`` applies them to
every page pushed through one raw-page stream. A view lives exactly as long
as that stream: a refresh builds a new stream and a new view, which is the
only way accumulated records are ever dropped.
"""

from typing import Any, Callable, Iterable, List, Sequence, TypeVar

from ..records.models import Record
from .config import QueryConfig
from .observable import ObservableValue

R = TypeVar("R", bound=Record)


def contains_case_insensitive(value: Any, search_value: str) -> bool:
    """True if ``search_value`` occurs in ``value`` ignoring case; an empty search always matches."""
    if not search_value:
        return True
    if value is None:
        return False
    return search_value.casefold() in str(value).casefold()


def matches_search(record: Record, search_value: str, fields: Sequence[str]) -> bool:
    """True if any designated field contains the search value."""
    if not search_value:
        return True
    return any(contains_case_insensitive(getattr(record, field, None), search_value) for field in fields)


def filter_batch(records: Iterable[R], config: QueryConfig, fields: Sequence[str]) -> List[R]:
    if not config.filter_enabled:
        return list(records)
    return [record for record in records if matches_search(record, config.search_value, fields)]


def fold_batch(accumulated: List[R], batch: List[R], prepend: bool) -> List[R]:
    return batch + accumulated if prepend else accumulated + batch


def accumulate(pages: Iterable[List[R]], config: QueryConfig, fields: Sequence[str]) -> List[R]:
    """Recompute the accumulated sequence from a sequence of raw pages."""
    result: List[R] = []
    for page in pages:
        result = fold_batch(result, filter_batch(page, config, fields), config.prepend)
    return result


class AccumulatedView(ObservableValue[List[R]]):
    """Running filtered fold over one raw-page stream."""

    def __init__(
        self,
        raw_pages: ObservableValue[List[R]],
        config: QueryConfig,
        search_fields: Sequence[str],
    ):
        super().__init__([])
        self._config = config
        self._search_fields = tuple(search_fields)
        self._unsubscribe: Callable[[], None] = raw_pages.subscribe(self._on_page)

    def _on_page(self, page: List[R]) -> None:
        batch = filter_batch(page, self._config, self._search_fields)
        self.set(fold_batch(self.value, batch, self._config.prepend))

    def detach(self) -> None:
        """Stop following the raw-page stream and drop subscribers."""
        self._unsubscribe()
        self.close()
