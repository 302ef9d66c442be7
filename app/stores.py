# app/stores.py
"""Listing and event stores handed to the pipeline.

The pipeline only talks to these two objects, never to a session directly,
so tests can swap in doubles. Listings are returned as plain snapshots so the
pipeline never touches an expired ORM instance after a failed commit.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.orm import Session
from . import crud
from .models import Listing


@dataclass(frozen=True)
class QueuedListing:
    id: str
    url: str
    title: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_orm(cls, obj: Listing) -> "QueuedListing":
        return cls(id=obj.id, url=obj.url, title=obj.title, image_url=obj.image_url, created_at=obj.created_at)


class ListingStore:
    def __init__(self, db: Session):
        self.db = db

    def select_queued(self, limit: int) -> List[QueuedListing]:
        return [QueuedListing.from_orm(o) for o in crud.select_queued_listings(self.db, limit)]

    def select_approved(self, listing_ids: Sequence[str], limit: int) -> List[QueuedListing]:
        return [QueuedListing.from_orm(o) for o in crud.select_approved_listings(self.db, listing_ids, limit)]

    def claim(self, listing_id: str, require_queued: bool = True) -> bool:
        return crud.claim_listing(self.db, listing_id, require_queued=require_queued)

    def finalize(self, listing_id: str, status: str) -> bool:
        return crud.finalize_listing(self.db, listing_id, status)

    def release_stale_claims(self, lease_seconds: int, now: datetime) -> int:
        return crud.release_stale_claims(self.db, now - timedelta(seconds=lease_seconds))


class EventStore:
    def __init__(self, db: Session):
        self.db = db

    def insert(self, data: Dict[str, Any]) -> Any:
        return crud.insert_event(self.db, data).id
