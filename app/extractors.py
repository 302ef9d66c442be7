# app/extractors.py
"""Extraction strategies: page markdown + source URL -> ExtractionResult.

`HttpExtractor` posts to an extraction service (by default this app's own
`/ai-processor` route); `OpenAIExtractor` runs the model in-process and is
also what that route serves.
"""
import json
import re
from typing import Any
import requests
from openai import OpenAI, OpenAIError
from pydantic import ValidationError
from .config import Settings, EXTRACTOR_OPENAI
from .errors import ExtractionError
from .schemas import ExtractionResult
from .utils import logger

MAX_CONTENT_CHARS = 25000

CATEGORIES = [
    (1, "Arts & Culture"), (2, "Attractions"), (3, "Beauty & Personal Care"),
    (4, "Business & Networking"), (5, "Education"), (6, "Entertainment"),
    (7, "Family & Kids"), (8, "Festivals & Markets"), (9, "Food & Drinks"),
    (10, "Health & Wellness"), (11, "Music & Concerts"), (12, "Nature & Parks"),
    (13, "Nightlife & Bars"), (14, "Professional Services"), (15, "Religious & Spiritual"),
    (16, "Shopping & Retail"), (17, "Sports & Fitness"), (18, "Technology"),
    (19, "Transportation & Travel"), (20, "Others"),
]

SYSTEM_PROMPT = "You extract structured event records from scraped web pages and answer with JSON only."

PROMPT_TEMPLATE = """Extract every distinct event or venue described in the page below.

Return a JSON object {{"events": [...]}} where each event has exactly these fields:
- event_id: short unique slug (string)
- event_name: string
- start_date, end_date: YYYY-MM-DD when known; free text such as "ongoing" otherwise
- date_text: display-friendly date, e.g. "14-16 June 2025" or "Permanent; opened 14 Jun 2025"
- location_text: the first venue mentioned, with full address and postal code when present
- description: one or two sentence overview
- price: display-friendly price, e.g. "Free", "$10-$20", "See details"
- price_min, price_max: numbers per person, 0 when free, null when unknown
- primary_lat, primary_lng: numbers for the primary location, null when unknown
- categories: 1-3 category ids from the list below, most relevant first
- image_url: cover image URL if the page shows one, else null

For permanent venues (shops, museums, attractions with opening hours and no end date)
set end_date to "2035-12-31" and say so in the description.

Categories:
{categories}

Output only JSON, no code fences or commentary.

URL: {url}

Content:
{markdown}"""

_FENCE_RE = re.compile(r"```(?:json)?\s*")


def build_prompt(markdown: str, url: str) -> str:
    categories = "\n".join(f"({cid}, '{name}')" for cid, name in CATEGORIES)
    return PROMPT_TEMPLATE.format(categories=categories, url=url, markdown=markdown[:MAX_CONTENT_CHARS])


def parse_model_output(text: str) -> Any:
    """Pull the first JSON value out of a model reply, ignoring fences and chatter."""
    cleaned = _FENCE_RE.sub("", text or "").strip()
    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
    if not starts:
        raise ExtractionError("Model response contained no JSON")
    try:
        value, _ = json.JSONDecoder().raw_decode(cleaned[min(starts):])
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model returned invalid JSON: {e}") from e
    return value


def to_extraction_result(value: Any) -> ExtractionResult:
    if isinstance(value, list):
        payload = {"success": True, "events": value}
    elif isinstance(value, dict) and ("events" in value or "success" in value):
        payload = {"success": value.get("success", True), "events": value.get("events"), "error": value.get("error")}
    elif isinstance(value, dict):
        payload = {"success": True, "events": [value]}
    else:
        raise ExtractionError(f"Unexpected extraction payload: {type(value).__name__}")
    try:
        return ExtractionResult.model_validate(payload)
    except ValidationError as e:
        raise ExtractionError(f"Extraction result has unexpected shape: {e.error_count()} errors") from e


class HttpExtractor:
    name = "http"

    def __init__(self, service_url: str, api_key: str, timeout: float = 120.0, session=None):
        self.service_url = service_url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def extract(self, markdown: str, url: str) -> ExtractionResult:
        logger.info("Calling extraction service at %s for %s", self.service_url, url)
        try:
            resp = self.session.post(
                self.service_url,
                json={"markdown": markdown, "url": url},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExtractionError(f"AI processing failed: {e}") from e

        if not resp.ok:
            try:
                message = resp.json().get("error")
            except (ValueError, AttributeError):
                message = None
            raise ExtractionError(message or f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            body = resp.json()
        except ValueError as e:
            raise ExtractionError(f"AI processor returned invalid JSON: {resp.text[:100]}") from e
        try:
            return ExtractionResult.model_validate(body)
        except ValidationError as e:
            raise ExtractionError(f"AI processor returned an unexpected shape: {e.error_count()} errors") from e


class OpenAIExtractor:
    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: float = 120.0, client=None):
        self.model = model
        self.client = client or OpenAI(api_key=api_key, timeout=timeout)

    def extract(self, markdown: str, url: str) -> ExtractionResult:
        logger.info("AI processing %s (%d chars)", url, len(markdown))
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(markdown, url)},
                ],
                temperature=0.3,
                max_tokens=4000,
            )
        except OpenAIError as e:
            raise ExtractionError(f"OpenAI request failed: {e}") from e
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ExtractionError("No response from OpenAI")
        return to_extraction_result(parse_model_output(content))


def build_extractor(settings: Settings):
    if settings.extractor == EXTRACTOR_OPENAI:
        return OpenAIExtractor(
            settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.extract_timeout_seconds,
        )
    return HttpExtractor(
        settings.extraction_service_url,
        settings.extraction_api_key,
        timeout=settings.extract_timeout_seconds,
    )
