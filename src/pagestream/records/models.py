from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..store.base import StoreCursor


class Record(BaseModel):
    """Immutable snapshot of one stored document.

    ``cursor`` belongs to the store and is only handed back to it to request
    the next page. It is excluded from dumps so records can be written back
    or exported as plain data.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    id: str
    cursor: Optional[StoreCursor] = Field(default=None, exclude=True, repr=False)

    def document_body(self) -> Dict[str, Any]:
        """Fields to store for this record (without id and cursor)."""
        return self.model_dump(exclude={"id"})


class AddressRecord(Record):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    location_name: str = ""
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    address: str = ""


class TripRecord(Record):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    purpose: str = ""


# Templates for new-entry forms; id is assigned by the store on create.
EMPTY_ADDRESS: Dict[str, Any] = AddressRecord(id="").document_body()
EMPTY_TRIP: Dict[str, Any] = TripRecord(id="").document_body()
