# app/pipeline.py
"""Listing -> event ingestion pipeline.

A batch is drained by `PipelineRunner`: configuration gate, stale-claim
sweep, selection, then for each listing a compare-and-swap claim followed by
`ItemProcessor.process`, with a fixed throttle between items. Items run
strictly one after another because the fetch and extraction services are
rate limited.

Each item walks `selected -> claimed -> fetched -> extracted -> persisted ->
finalized`. Any error before finalization is confined to that item: the
listing is finalized as `error` and the batch moves on. Nothing is retried;
a failed listing comes back only when it is re-approved and re-queued.
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence
from pydantic import ValidationError
from .config import Settings
from .errors import Cancelled, ConfigurationError, FinalizeError, PersistError, PipelineError
from .fetchers import build_fetcher
from .extractors import build_extractor
from .models import LISTING_ERROR, LISTING_PROCESSED
from .schemas import BatchResult, EventCandidate, ExtractionResult, ItemResult
from .stores import QueuedListing
from .utils import logger, utcnow

NO_ITEMS_MESSAGE = "No items in queue"


class ItemState(str, Enum):
    SELECTED = "selected"
    CLAIMED = "claimed"
    FETCHED = "fetched"
    EXTRACTED = "extracted"
    PERSISTED = "persisted"
    FINALIZED = "finalized"


@dataclass
class ItemRun:
    """Mutable record of one listing's trip through the pipeline."""
    listing: QueuedListing
    state: ItemState = ItemState.SELECTED
    markdown: Optional[str] = None
    extraction: Optional[ExtractionResult] = None
    inserted: int = 0
    insert_errors: List[str] = field(default_factory=list)

    @property
    def final_status(self) -> str:
        if self.extraction is not None and self.extraction.success and self.inserted > 0:
            return LISTING_PROCESSED
        return LISTING_ERROR


def event_row(candidate: EventCandidate, listing: QueuedListing, now) -> dict:
    return {
        "event_id": candidate.event_id,
        "event_name": candidate.event_name,
        "start_date": candidate.start_date,
        "end_date": candidate.end_date,
        "date_text": candidate.date_text,
        "location_text": candidate.location_text,
        "coordinates": candidate.point(),
        "price": candidate.price,
        "price_min": candidate.price_min,
        "price_max": candidate.price_max,
        "description": candidate.description,
        "categories": candidate.categories,
        "image_url": listing.image_url,
        "page_url": listing.url,
        "created_at": now,
        "updated_at": now,
    }


def candidate_label(raw: dict, index: int) -> str:
    event_id = raw.get("event_id")
    return str(event_id) if event_id not in (None, "") else f"#{index}"


def _describe(error: Exception) -> str:
    if isinstance(error, ValidationError):
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in error.errors())
        return f"invalid candidate ({fields})"
    return str(error)


def _check_cancel(cancel):
    if cancel is not None and cancel.is_set():
        raise Cancelled("Processing cancelled")


class ItemProcessor:
    def __init__(self, listings, events, fetcher, extractor, clock: Callable = utcnow):
        self.listings = listings
        self.events = events
        self.fetcher = fetcher
        self.extractor = extractor
        self.clock = clock
        self.steps = (
            (self._fetch, ItemState.FETCHED),
            (self._extract, ItemState.EXTRACTED),
            (self._persist, ItemState.PERSISTED),
        )

    def process(self, listing: QueuedListing, cancel=None) -> ItemResult:
        run = ItemRun(listing, state=ItemState.CLAIMED)
        step_name = None
        try:
            for step, reached in self.steps:
                step_name = step.__name__.lstrip("_")
                _check_cancel(cancel)
                step(run)
                run.state = reached
        except PipelineError as e:
            logger.error("Listing %s failed at %s: %s", listing.id, step_name, e)
            return self._fail(run, e)
        except Exception as e:
            logger.exception("Unexpected error processing listing %s at %s", listing.id, step_name)
            return self._fail(run, e)
        return self._finalize(run)

    def _fetch(self, run: ItemRun):
        run.markdown = self.fetcher.fetch(run.listing.url)
        logger.info("Fetched %s (%d chars)", run.listing.url, len(run.markdown))

    def _extract(self, run: ItemRun):
        run.extraction = self.extractor.extract(run.markdown, run.listing.url)
        logger.info(
            "Extraction for %s: success=%s events=%d",
            run.listing.url, run.extraction.success, len(run.extraction.events),
        )

    def _persist(self, run: ItemRun):
        if not run.extraction.success:
            return
        for index, raw in enumerate(run.extraction.events, start=1):
            try:
                candidate = EventCandidate.model_validate(raw)
                self.events.insert(event_row(candidate, run.listing, self.clock()))
            except Exception as e:
                err = PersistError(candidate_label(raw, index), _describe(e))
                logger.error("Error inserting event for listing %s: %s", run.listing.id, err)
                run.insert_errors.append(str(err))
            else:
                run.inserted += 1

    def _finalize(self, run: ItemRun) -> ItemResult:
        status = run.final_status
        try:
            self._write_status(run.listing.id, status)
        except FinalizeError as e:
            logger.error("Error finalizing listing %s: %s", run.listing.id, e)
            return ItemResult(
                id=run.listing.id, status="error", error=str(e),
                events_inserted=run.inserted, insert_errors=run.insert_errors,
            )
        run.state = ItemState.FINALIZED
        logger.info("Listing %s finalized as %s (%d events)", run.listing.id, status, run.inserted)
        if status == LISTING_PROCESSED:
            return ItemResult(
                id=run.listing.id, status="completed",
                events_inserted=run.inserted, insert_errors=run.insert_errors,
            )
        if not run.extraction.success:
            error = f"Extraction reported failure: {run.extraction.error or 'no reason given'}"
        else:
            error = "No events inserted"
        return ItemResult(
            id=run.listing.id, status="error", error=error,
            events_inserted=run.inserted, insert_errors=run.insert_errors,
        )

    def _fail(self, run: ItemRun, error: Exception) -> ItemResult:
        message = str(error)
        try:
            self._write_status(run.listing.id, LISTING_ERROR)
            run.state = ItemState.FINALIZED
        except FinalizeError as e:
            logger.error("Error marking listing %s as failed: %s", run.listing.id, e)
            message = f"{message}; {e}"
        return ItemResult(id=run.listing.id, status="error", error=message)

    def _write_status(self, listing_id: str, status: str):
        try:
            found = self.listings.finalize(listing_id, status)
        except Exception as e:
            raise FinalizeError(f"Failed to update listing {listing_id}: {e}") from e
        if not found:
            raise FinalizeError(f"Listing {listing_id} no longer exists")


class PipelineRunner:
    """Drains one batch of listings per call to `run`."""

    def __init__(self, settings: Settings, listings, events, fetcher=None, extractor=None, clock: Callable = utcnow):
        self.settings = settings
        self.listings = listings
        self.events = events
        self.fetcher = fetcher
        self.extractor = extractor
        self.clock = clock

    def check_configuration(self):
        missing = self.settings.missing_credentials()
        if missing:
            raise ConfigurationError(missing)

    def run(self, listing_ids: Optional[Sequence[str]] = None, cancel=None) -> BatchResult:
        """Process queued listings, or the given approved listings when `listing_ids` is set."""
        self.check_configuration()
        cancel = cancel if cancel is not None else threading.Event()

        released = self.listings.release_stale_claims(self.settings.claim_lease_seconds, self.clock())
        if released:
            logger.warning("Re-queued %d listings with expired claims", released)

        explicit = listing_ids is not None
        if explicit:
            batch = self.listings.select_approved(listing_ids, self.settings.batch_size)
        else:
            batch = self.listings.select_queued(self.settings.batch_size)
        logger.info("Found %d items to process", len(batch))
        if not batch:
            return BatchResult(message=NO_ITEMS_MESSAGE)

        processor = ItemProcessor(
            self.listings,
            self.events,
            self.fetcher or build_fetcher(self.settings),
            self.extractor or build_extractor(self.settings),
            clock=self.clock,
        )
        results = []
        for index, listing in enumerate(batch):
            if cancel.is_set():
                logger.warning("Batch cancelled; %d items left unclaimed", len(batch) - index)
                break
            if not self._claim(listing, require_queued=not explicit):
                continue
            logger.info("Processing listing %s (%s)", listing.id, listing.url)
            results.append(processor.process(listing, cancel))
            if index < len(batch) - 1:
                logger.info("Waiting %dms before next item", self.settings.processing_delay_ms)
                cancel.wait(self.settings.processing_delay)

        logger.info("Queue processing completed: %d items", len(results))
        return BatchResult(message=f"Processed {len(results)} items", results=results)

    def _claim(self, listing: QueuedListing, require_queued: bool) -> bool:
        try:
            won = self.listings.claim(listing.id, require_queued=require_queued)
        except Exception:
            logger.exception("Error marking listing %s as processing; continuing", listing.id)
            return True
        if not won:
            logger.info("Listing %s was claimed by another run; skipping", listing.id)
        return won
