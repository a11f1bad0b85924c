"""Time utilities for UTC timestamp formatting."""

from datetime import datetime, timezone

# Fixed-width layout so stored timestamps sort lexicographically.
STORE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now_z() -> str:
    """
    Get current UTC time as ISO 8601 string with Z suffix.
    
    Returns:
        ISO 8601 UTC timestamp ending with 'Z' (e.g., '2025-12-23T00:27:07.804867Z')
    """
    return to_utc_z(datetime.now(timezone.utc))


def to_utc_z(dt: datetime) -> str:
    """
    Convert datetime to ISO 8601 UTC string with Z suffix.
    
    Args:
        dt: Datetime object (must be timezone-aware)
        
    Returns:
        ISO 8601 UTC timestamp ending with 'Z'
        
    Raises:
        ValueError: If datetime is naive (not timezone-aware)
    """
    if dt.tzinfo is None:
        raise ValueError(
            f"Naive datetime not allowed. Got {dt}. "
            "Use datetime.now(timezone.utc) or dt.replace(tzinfo=timezone.utc)"
        )
    
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat().replace('+00:00', 'Z')


def to_store_timestamp(dt: datetime) -> str:
    """
    Convert datetime to the fixed-width UTC string used inside stored documents.

    Unlike ``to_utc_z`` the microsecond part is always present, so two stored
    values compare the same way as text and as instants.

    Raises:
        ValueError: If datetime is naive (not timezone-aware)
    """
    if dt.tzinfo is None:
        raise ValueError(
            f"Naive datetime not allowed. Got {dt}. "
            "Use datetime.now(timezone.utc) or dt.replace(tzinfo=timezone.utc)"
        )
    return dt.astimezone(timezone.utc).strftime(STORE_TIMESTAMP_FORMAT)


def parse_store_timestamp(value: str) -> datetime:
    """Parse a stored timestamp string back into an aware UTC datetime."""
    return datetime.strptime(value, STORE_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
