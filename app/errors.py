# app/errors.py
"""Error taxonomy for the ingestion pipeline.

Only `ConfigurationError` aborts a whole invocation. Every other error is
scoped to one listing (or one candidate event) and ends up in that item's
result instead of propagating.
"""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(PipelineError):
    """A credential required by the configured services is missing."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__("Missing required configuration: %s" % ", ".join(self.missing))


class FetchError(PipelineError):
    """The content fetch service failed for a URL."""

    def __init__(self, url, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to fetch {url}: {cause}")


class ExtractionError(PipelineError):
    """The extraction service answered with a non-success status or an unparseable body."""


class PersistError(PipelineError):
    """One candidate event could not be inserted."""

    def __init__(self, candidate_id, message):
        self.candidate_id = candidate_id
        self.message = message
        super().__init__(f"Event {candidate_id}: {message}")


class FinalizeError(PipelineError):
    """The terminal status write for a listing failed."""


class Cancelled(PipelineError):
    """The batch was cancelled while an item was in flight."""
