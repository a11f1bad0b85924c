"""pagestream: paginated, search-filtered live views over an owner-scoped document store."""

__version__ = "0.3.0"
