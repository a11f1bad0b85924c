"""Exception hierarchy for pagestream."""


class PagestreamError(Exception):
    """Base class for all pagestream errors."""


class ConfigurationError(PagestreamError, ValueError):
    """Invalid query options, config file content or engine construction arguments."""


class OwnerKeyError(ConfigurationError):
    """No owner key could be resolved, so no collection can be scoped."""


class StoreError(PagestreamError):
    """The backing document store rejected or failed an operation."""


class FetchTimeoutError(PagestreamError, TimeoutError):
    """A store request did not produce its first snapshot in time."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(f"{operation} did not complete within {timeout_seconds}s")
        self.operation = operation
        self.timeout_seconds = timeout_seconds
