# app/crud.py
"""CRUD operations for `Listing` and `Event` entities.

Every write here is a single-record statement committed on its own; the
pipeline relies on that to keep partial progress (claimed but not finalized,
some events inserted) recoverable.
"""
from datetime import datetime
from sqlalchemy import select, update, and_
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional, Sequence
from .models import Listing, Event, LISTING_APPROVED, CLAIMABLE_STATUSES
from .utils import utcnow

def _commit(db: Session):
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

def get_listing(db: Session, listing_id: str):
    return db.query(Listing).filter(Listing.id == listing_id).first()

def get_listing_by_url(db: Session, url: str):
    return db.query(Listing).filter(Listing.url == url).first()

def list_listings(db: Session, skip: int = 0, limit: int = 50, filters: Dict = None):
    q = db.query(Listing)
    if filters:
        conds = []
        if filters.get("status"):
            conds.append(Listing.status == filters["status"])
        if filters.get("queued") is not None:
            conds.append(Listing.queued_for_processing == filters["queued"])
        if conds:
            q = q.filter(and_(*conds))
    total = q.count()
    items = q.order_by(Listing.created_at.asc()).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

def select_queued_listings(db: Session, limit: int) -> List[Listing]:
    stmt = (
        select(Listing)
        .where(Listing.status.in_(CLAIMABLE_STATUSES), Listing.queued_for_processing.is_(True))
        .order_by(Listing.created_at.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt))

def select_approved_listings(db: Session, listing_ids: Sequence[str], limit: int) -> List[Listing]:
    stmt = (
        select(Listing)
        .where(Listing.id.in_(list(listing_ids)), Listing.status == LISTING_APPROVED)
        .order_by(Listing.created_at.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt))

def claim_listing(db: Session, listing_id: str, require_queued: bool = True) -> bool:
    """Compare-and-swap claim; True only for the caller whose update matched."""
    now = utcnow()
    conds = [
        Listing.id == listing_id,
        Listing.status.in_(CLAIMABLE_STATUSES),
        Listing.claimed_at.is_(None),
    ]
    if require_queued:
        conds.append(Listing.queued_for_processing.is_(True))
    stmt = (
        update(Listing)
        .where(*conds)
        .values(queued_for_processing=False, claimed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    _commit(db)
    return res.rowcount == 1

def finalize_listing(db: Session, listing_id: str, status: str) -> bool:
    stmt = (
        update(Listing)
        .where(Listing.id == listing_id)
        .values(status=status, queued_for_processing=False, claimed_at=None, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    _commit(db)
    return res.rowcount == 1

def release_stale_claims(db: Session, claimed_before: datetime) -> int:
    """Re-queue listings whose claim started before `claimed_before` and never finalized."""
    stmt = (
        update(Listing)
        .where(Listing.claimed_at.is_not(None), Listing.claimed_at < claimed_before)
        .values(queued_for_processing=True, claimed_at=None, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    _commit(db)
    return res.rowcount

def approve_listing(db: Session, listing_id: str) -> Optional[Listing]:
    obj = get_listing(db, listing_id)
    if not obj:
        return None
    obj.status = LISTING_APPROVED
    obj.queued_for_processing = True
    obj.updated_at = utcnow()
    _commit(db)
    db.refresh(obj)
    return obj

def queue_url(db: Session, url: str):
    """Approve and queue `url`, creating the listing if needed. Returns (listing, action)."""
    obj = get_listing_by_url(db, url)
    if obj:
        return approve_listing(db, obj.id), "updated"
    now = utcnow()
    obj = Listing(
        title=f"Direct URL: {url}",
        url=url,
        image_url=None,
        status=LISTING_APPROVED,
        queued_for_processing=True,
        created_at=now,
        updated_at=now,
    )
    db.add(obj)
    _commit(db)
    db.refresh(obj)
    return obj, "created"

def insert_event(db: Session, data: Dict[str, Any]) -> Event:
    obj = Event(**data)
    db.add(obj)
    _commit(db)
    return obj
