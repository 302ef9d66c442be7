# app/config.py
"""Runtime settings read from the environment (and `.env` via python-dotenv).

Settings are read once per process by `get_settings()`; tests build their own
`Settings` instances directly.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./events.db"

FETCHER_FIRECRAWL = "firecrawl"
FETCHER_JINA = "jina"
EXTRACTOR_HTTP = "http"
EXTRACTOR_OPENAI = "openai"


def normalize_database_url(url: str) -> str:
    # SQLAlchemy 2.x doesn't accept 'postgres://'
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


@dataclass
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    content_fetcher: str = FETCHER_FIRECRAWL
    firecrawl_api_key: Optional[str] = None
    firecrawl_api_url: str = "https://api.firecrawl.dev"
    jina_api_key: Optional[str] = None

    extractor: str = EXTRACTOR_HTTP
    extraction_service_url: str = "http://localhost:8000/ai-processor"
    extraction_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    batch_size: int = 10
    processing_delay_ms: int = 3000
    fetch_timeout_seconds: float = 60.0
    extract_timeout_seconds: float = 120.0
    claim_lease_seconds: int = 900
    process_queue_interval_minutes: int = 0

    @property
    def processing_delay(self) -> float:
        """Inter-item throttle in seconds."""
        return self.processing_delay_ms / 1000.0

    @classmethod
    def from_env(cls, env=None) -> "Settings":
        env = os.environ if env is None else env
        database_url = env.get("DATABASE_URL") or env.get("POSTGRES_URL") or DEFAULT_DATABASE_URL
        return cls(
            database_url=normalize_database_url(database_url),
            db_pool_size=int(env.get("DB_POOL_SIZE", 5)),
            db_max_overflow=int(env.get("DB_MAX_OVERFLOW", 10)),
            content_fetcher=env.get("CONTENT_FETCHER", FETCHER_FIRECRAWL).lower(),
            firecrawl_api_key=env.get("FIRECRAWL_API_KEY") or None,
            firecrawl_api_url=env.get("FIRECRAWL_API_URL", "https://api.firecrawl.dev").rstrip("/"),
            jina_api_key=env.get("JINA_API_KEY") or None,
            extractor=env.get("EXTRACTOR", EXTRACTOR_HTTP).lower(),
            extraction_service_url=env.get("EXTRACTION_SERVICE_URL", "http://localhost:8000/ai-processor"),
            extraction_api_key=env.get("EXTRACTION_API_KEY") or None,
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_model=env.get("OPENAI_MODEL", "gpt-4o-mini"),
            batch_size=int(env.get("BATCH_SIZE", 10)),
            processing_delay_ms=int(env.get("PROCESSING_DELAY_MS", 3000)),
            fetch_timeout_seconds=float(env.get("FETCH_TIMEOUT_SECONDS", 60)),
            extract_timeout_seconds=float(env.get("EXTRACT_TIMEOUT_SECONDS", 120)),
            claim_lease_seconds=int(env.get("CLAIM_LEASE_SECONDS", 900)),
            process_queue_interval_minutes=int(env.get("PROCESS_QUEUE_INTERVAL_MINUTES", 0)),
        )

    def missing_credentials(self) -> List[str]:
        """Names of the credentials the selected fetch/extract strategies need but lack."""
        missing = []
        if self.content_fetcher == FETCHER_JINA:
            if not self.jina_api_key:
                missing.append("JINA_API_KEY")
        elif not self.firecrawl_api_key:
            missing.append("FIRECRAWL_API_KEY")
        if self.extractor == EXTRACTOR_OPENAI:
            if not self.openai_api_key:
                missing.append("OPENAI_API_KEY")
        elif not self.extraction_api_key:
            missing.append("EXTRACTION_API_KEY")
        return missing


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
