from .models import (
    EMPTY_ADDRESS,
    EMPTY_TRIP,
    AddressRecord,
    Record,
    TripRecord,
)

__all__ = [
    "EMPTY_ADDRESS",
    "EMPTY_TRIP",
    "AddressRecord",
    "Record",
    "TripRecord",
]
