# app/models.py
"""SQLAlchemy ORM models for persisted entities.

`Listing` rows are crawler-discovered pages waiting for enrichment; `Event`
rows are the structured records the pipeline derives from them.
"""
import uuid
from sqlalchemy import Boolean, Column, Integer, Text, Numeric, TIMESTAMP, JSON, func, false, Index
from sqlalchemy.dialects.postgresql import JSONB
from .db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

LISTING_PENDING = "pending"
LISTING_APPROVED = "approved"
LISTING_PROCESSED = "processed"
LISTING_ERROR = "error"

# statuses the queue selector and the claim accept
CLAIMABLE_STATUSES = (LISTING_APPROVED, LISTING_ERROR)


def _new_id():
    return str(uuid.uuid4())


class Listing(Base):
    __tablename__ = "scraped_listings"
    id = Column(Text, primary_key=True, default=_new_id)
    url = Column(Text, nullable=False, unique=True, index=True)
    title = Column(Text)
    image_url = Column(Text)
    status = Column(Text, nullable=False, default=LISTING_PENDING, server_default=LISTING_PENDING)
    queued_for_processing = Column(Boolean, nullable=False, default=False, server_default=false())
    claimed_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class Event(Base):
    __tablename__ = "events"
    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Text)
    event_name = Column(Text, nullable=False)
    start_date = Column(Text)
    end_date = Column(Text)
    date_text = Column(Text)
    location_text = Column(Text)
    coordinates = Column(Text)
    price = Column(Text)
    price_min = Column(Numeric)
    price_max = Column(Numeric)
    description = Column(Text)
    categories = Column(JSONType)
    image_url = Column(Text)
    page_url = Column(Text, index=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

Index("idx_listings_queue", Listing.status, Listing.queued_for_processing, Listing.created_at)
