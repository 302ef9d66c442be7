# tests/test_config.py
from app.config import Settings, normalize_database_url
from app.errors import ConfigurationError


def test_from_env_defaults():
    s = Settings.from_env({})
    assert s.database_url == "sqlite:///./events.db"
    assert s.batch_size == 10
    assert s.processing_delay_ms == 3000
    assert s.processing_delay == 3.0
    assert s.content_fetcher == "firecrawl"
    assert s.extractor == "http"


def test_from_env_overrides():
    s = Settings.from_env({
        "POSTGRES_URL": "postgres://u:p@db/events",
        "BATCH_SIZE": "5",
        "PROCESSING_DELAY_MS": "1500",
        "CONTENT_FETCHER": "JINA",
        "FIRECRAWL_API_URL": "https://fc.internal/",
        "CLAIM_LEASE_SECONDS": "60",
    })
    assert s.database_url == "postgresql+psycopg2://u:p@db/events"
    assert s.batch_size == 5
    assert s.processing_delay == 1.5
    assert s.content_fetcher == "jina"
    assert s.firecrawl_api_url == "https://fc.internal"
    assert s.claim_lease_seconds == 60


def test_database_url_wins_over_postgres_url():
    s = Settings.from_env({"DATABASE_URL": "sqlite://", "POSTGRES_URL": "postgres://x/y"})
    assert s.database_url == "sqlite://"


def test_normalize_database_url_leaves_others_alone():
    assert normalize_database_url("postgresql://x/y") == "postgresql://x/y"


def test_missing_credentials_follow_strategies():
    assert Settings().missing_credentials() == ["FIRECRAWL_API_KEY", "EXTRACTION_API_KEY"]
    assert Settings(content_fetcher="jina", extractor="openai").missing_credentials() == ["JINA_API_KEY", "OPENAI_API_KEY"]
    assert Settings(firecrawl_api_key="a", extraction_api_key="b").missing_credentials() == []


def test_blank_keys_count_as_missing():
    s = Settings.from_env({"FIRECRAWL_API_KEY": "", "EXTRACTION_API_KEY": "k"})
    assert s.missing_credentials() == ["FIRECRAWL_API_KEY"]


def test_configuration_error_lists_names():
    err = ConfigurationError(["FIRECRAWL_API_KEY", "EXTRACTION_API_KEY"])
    assert str(err) == "Missing required configuration: FIRECRAWL_API_KEY, EXTRACTION_API_KEY"
