# app/api/routes.py
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import crud, schemas
from ..config import Settings, get_settings
from ..db import get_db
from ..errors import ConfigurationError, ExtractionError
from ..extractors import OpenAIExtractor
from ..fetchers import check_url
from ..pipeline import NO_ITEMS_MESSAGE
from ..services import build_runner
from ..utils import logger

router = APIRouter()

def error_response(message: str, status_code: int):
    return JSONResponse({"error": message}, status_code=status_code)

def get_pipeline_runner(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    return build_runner(db, settings)

def get_ai_extractor(settings: Settings = Depends(get_settings)):
    if not settings.openai_api_key:
        return None
    return OpenAIExtractor(settings.openai_api_key, model=settings.openai_model, timeout=settings.extract_timeout_seconds)

def batch_response(result: schemas.BatchResult):
    return JSONResponse(result.model_dump(by_alias=True, exclude_none=True))

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/listings", response_model=List[schemas.ListingOut])
def listings(
    skip: int = 0,
    limit: int = 20,
    status: Optional[str] = None,
    queued: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    res = crud.list_listings(db, skip=skip, limit=limit, filters={"status": status, "queued": queued})
    return res["items"]


@router.get("/listings/{listing_id}", response_model=schemas.ListingOut)
def get_listing(listing_id: str, db: Session = Depends(get_db)):
    obj = crud.get_listing(db, listing_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Listing not found")
    return obj


@router.post("/listings/{listing_id}/approve", response_model=schemas.ListingOut)
def approve_listing(listing_id: str, db: Session = Depends(get_db)):
    obj = crud.approve_listing(db, listing_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Listing not found")
    return obj


@router.post("/queue", response_model=schemas.QueueUrlResponse)
def add_to_queue(payload: schemas.QueueUrlRequest, db: Session = Depends(get_db)):
    if check_url(payload.url):
        return error_response("Invalid URL format", 400)
    try:
        obj, action = crud.queue_url(db, payload.url)
    except Exception:
        logger.exception("Failed to queue %s", payload.url)
        return error_response("Failed to add URL to queue", 500)
    message = (
        "URL already exists and has been queued for processing"
        if action == "updated"
        else "URL added to processing queue successfully"
    )
    return {"message": message, "id": obj.id, "action": action}


@router.post("/process-queue")
def process_queue(runner=Depends(get_pipeline_runner)):
    try:
        result = runner.run()
    except ConfigurationError as e:
        logger.error("Queue processing not configured: %s", e)
        return error_response(str(e), 500)
    except Exception as e:
        logger.exception("Queue processing failed: %s", e)
        return error_response(str(e) or "Queue processing failed", 500)
    return batch_response(result)


@router.post("/process-approved")
def process_approved(payload: schemas.ProcessApprovedRequest, runner=Depends(get_pipeline_runner)):
    if not payload.listing_ids:
        return error_response("No listing IDs provided", 400)
    try:
        result = runner.run(listing_ids=payload.listing_ids)
    except ConfigurationError as e:
        logger.error("Approved processing not configured: %s", e)
        return error_response(str(e), 500)
    except Exception as e:
        logger.exception("Approved processing failed: %s", e)
        return error_response(str(e) or "Failed to process approved listings", 500)
    if result.message == NO_ITEMS_MESSAGE:
        return error_response("No approved listings found", 404)
    return batch_response(result)


@router.post("/ai-processor", response_model=schemas.ExtractionResult)
def ai_processor(payload: schemas.ExtractionRequest, extractor=Depends(get_ai_extractor)):
    if not payload.markdown or not payload.url:
        return error_response("Missing required fields: markdown and url are required", 400)
    if extractor is None:
        return error_response("OpenAI API key not configured", 500)
    try:
        return extractor.extract(payload.markdown, payload.url)
    except ExtractionError as e:
        logger.error("AI processing failed for %s: %s", payload.url, e)
        return error_response(str(e), 500)
