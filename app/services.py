# app/services.py
from sqlalchemy.orm import Session
from typing import Optional, Sequence
from .config import Settings, get_settings
from .db import SessionLocal
from .pipeline import PipelineRunner
from .schemas import BatchResult
from .stores import EventStore, ListingStore
from .utils import logger

def build_runner(db: Session, settings: Optional[Settings] = None, **overrides) -> PipelineRunner:
    return PipelineRunner(
        settings or get_settings(),
        ListingStore(db),
        EventStore(db),
        **overrides
    )

def process_queue(db: Session, listing_ids: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> BatchResult:
    return build_runner(db, settings).run(listing_ids=listing_ids)

def process_queue_job():
    """Scheduler entry point: drain one batch with a private session."""
    db = SessionLocal()
    try:
        result = process_queue(db)
        logger.info("Scheduled run: %s", result.message)
    except Exception:
        logger.exception("Scheduled queue processing failed")
    finally:
        db.close()
