# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.db import Base
from app.errors import FetchError
from app.models import Listing
from app.schemas import EventCandidate, ExtractionResult

BASE_TIME = datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start=BASE_TIME):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class RecordingToken:
    """Cancellation token that records throttle waits instead of sleeping."""

    def __init__(self, clock=None, cancel_after_waits=None):
        self.clock = clock
        self.cancel_after_waits = cancel_after_waits
        self.waits = []
        self._set = False

    def is_set(self):
        return self._set

    def set(self):
        self._set = True

    def wait(self, timeout):
        self.waits.append(timeout)
        if self.clock is not None:
            self.clock.advance(timeout)
        if self.cancel_after_waits is not None and len(self.waits) >= self.cancel_after_waits:
            self._set = True
        return self._set


class FakeFetcher:
    def __init__(self, failures=None, clock=None):
        self.failures = failures or {}
        self.clock = clock
        self.calls = []

    def fetch(self, url):
        self.calls.append((url, self.clock() if self.clock else None))
        if url in self.failures:
            raise FetchError(url, self.failures[url])
        return f"# Events at {url}"


class FakeExtractor:
    def __init__(self, results=None, default=None):
        self.results = results or {}
        self.default = default if default is not None else extraction("Default Event")
        self.calls = []

    def extract(self, markdown, url):
        self.calls.append((markdown, url))
        result = self.results.get(url, self.default)
        if isinstance(result, Exception):
            raise result
        return result


class FakeResponse:
    def __init__(self, status_code=200, json_body=None, text="", reason="OK"):
        self.status_code = status_code
        self._json = json_body
        self.text = text
        self.reason = reason

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("not json")
        return self._json


class FakeSession:
    """Stands in for requests.Session; records every call."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def _send(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def get(self, url, **kwargs):
        return self._send("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._send("POST", url, **kwargs)


def extraction(*names, success=True, error=None):
    events = [EventCandidate(event_id=f"evt-{i}", event_name=name) for i, name in enumerate(names, start=1)]
    return ExtractionResult(success=success, events=events, error=error)


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(firecrawl_api_key="fc-test", extraction_api_key="ex-test")


@pytest.fixture
def make_listing(db):
    counter = {"n": 0}

    def _make(url=None, status="approved", queued=True, image_url=None, created_at=None, claimed_at=None):
        counter["n"] += 1
        n = counter["n"]
        obj = Listing(
            url=url or f"https://events.example.com/{n}",
            title=f"Listing {n}",
            image_url=image_url,
            status=status,
            queued_for_processing=queued,
            claimed_at=claimed_at,
            created_at=created_at or BASE_TIME + timedelta(minutes=n),
            updated_at=BASE_TIME,
        )
        db.add(obj)
        db.commit()
        return obj.id

    return _make


@pytest.fixture
def reload(db):
    def _reload(listing_id):
        db.expire_all()
        return db.get(Listing, listing_id)

    return _reload
