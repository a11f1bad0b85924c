"""Query configuration: the descriptor of one refresh cycle."""

from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ConfigurationError
from ..store.base import SortDirection

DEFAULT_PAGE_SIZE = 50

QUERY_OPTION_DEFAULTS: Dict[str, Any] = {
    "page_size": DEFAULT_PAGE_SIZE,
    "reverse": False,
    "prepend": True,
    "search_value": "",
    "filter_enabled": True,
}


class QueryConfig(BaseModel):
    """What to fetch and how to fold it.

    Replaced wholesale by ``PaginatedStream.init``; never mutated.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(min_length=1)  # collection path, relative to the owner
    sort_field: str = Field(min_length=1, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, gt=0)
    reverse: bool = False  # sort descending
    prepend: bool = True  # new pages go before the accumulated results
    search_value: str = ""
    filter_enabled: bool = True

    @property
    def direction(self) -> SortDirection:
        return SortDirection.DESC if self.reverse else SortDirection.ASC

    @classmethod
    def from_options(
        cls,
        path: str,
        sort_field: str,
        options: Optional[Mapping[str, Any]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> "QueryConfig":
        """
        Build a config by merging caller options over the documented defaults.

        Args:
            path: Collection path
            sort_field: Field to order by
            options: Any of page_size, reverse, prepend, search_value, filter_enabled
            defaults: Overrides for the built-in defaults (e.g. page_size from config file)

        Returns:
            QueryConfig

        Raises:
            ConfigurationError: On unknown options or invalid values
        """
        options = dict(options or {})
        unknown = sorted(set(options) - set(QUERY_OPTION_DEFAULTS))
        if unknown:
            raise ConfigurationError(f"Unknown query option(s): {', '.join(unknown)}")

        merged = {
            **QUERY_OPTION_DEFAULTS,
            **{k: v for k, v in (defaults or {}).items() if k in QUERY_OPTION_DEFAULTS},
            **options,
        }
        if merged["search_value"] is None:
            merged["search_value"] = ""
        try:
            return cls(path=path, sort_field=sort_field, **merged)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid query configuration: {e}") from e
