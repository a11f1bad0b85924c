from .config import QueryConfig
from .engine import DEFAULT_FETCH_TIMEOUT_SECONDS, PaginatedStream
from .observable import ObservableValue

__all__ = [
    "DEFAULT_FETCH_TIMEOUT_SECONDS",
    "ObservableValue",
    "PaginatedStream",
    "QueryConfig",
]
