# app/schemas.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

class ListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    title: Optional[str] = None
    image_url: Optional[str] = None
    status: str
    queued_for_processing: bool
    claimed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class QueueUrlRequest(BaseModel):
    url: str

class QueueUrlResponse(BaseModel):
    message: str
    id: str
    action: Literal["created", "updated"]

class ProcessApprovedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    listing_ids: List[str] = Field(default_factory=list, alias="listingIds")


class EventCandidate(BaseModel):
    """One event as proposed by the extraction service; unknown keys are dropped."""
    model_config = ConfigDict(extra="ignore")

    event_id: Optional[str] = None
    event_name: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    date_text: Optional[str] = None
    location_text: Optional[str] = None
    description: Optional[str] = None
    price: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    primary_lat: Optional[float] = None
    primary_lng: Optional[float] = None
    coordinates: Optional[str] = None
    categories: Optional[List[int]] = None
    image_url: Optional[str] = None

    @field_validator("event_id", "price", "start_date", "end_date", mode="before")
    @classmethod
    def _stringify(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)

    def point(self) -> Optional[str]:
        """Coordinates in PostgreSQL point text form, "(lng,lat)"."""
        if self.coordinates:
            return self.coordinates
        if self.primary_lat is not None and self.primary_lng is not None:
            return f"({self.primary_lng},{self.primary_lat})"
        return None


class ExtractionResult(BaseModel):
    """Envelope returned by an extractor; candidates stay raw until each is persisted."""
    success: bool
    events: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None

    @field_validator("events", mode="before")
    @classmethod
    def _raw_candidates(cls, v):
        if v is None:
            return []
        if isinstance(v, list):
            return [e.model_dump(exclude_none=True) if isinstance(e, EventCandidate) else e for e in v]
        return v


class ExtractionRequest(BaseModel):
    markdown: Optional[str] = None
    url: Optional[str] = None


class ItemResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: Literal["completed", "error"]
    events_inserted: Optional[int] = Field(default=None, alias="eventsInserted")
    insert_errors: Optional[List[str]] = Field(default=None, alias="insertErrors")
    error: Optional[str] = None

class BatchResult(BaseModel):
    message: str
    results: Optional[List[ItemResult]] = None
