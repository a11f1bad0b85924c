from .addresses import ADDRESS_HISTORY_PATH, AddressHistory
from .trips import TRIPS_PATH, TripsList

__all__ = [
    "ADDRESS_HISTORY_PATH",
    "TRIPS_PATH",
    "AddressHistory",
    "TripsList",
]
