"""AI-based job extraction (core domain).

The engine grounds the model in the categories that actually exist, sends one
chat completion per message and turns the loosely structured JSON reply into
either a JobCandidate or an explicit NotAJob.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Tuple

from core.models import Extraction, JobCandidate, NotAJob
from core.ports import CategoryStorePort, LanguageModelPort

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTRACT_TYPE = "Full-time"
DEFAULT_CONFIDENCE = 0.5
MAX_ALTERNATIVE_CATEGORIES = 3

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)

SYSTEM_PROMPT_TEMPLATE = """You are a job posting analyzer. Decide whether a Telegram message is a job posting and, if it is, extract its details.

Available categories: {categories}

Return only JSON:
{{
  "isJob": true/false,
  "title": "job title",
  "company": "company name or null",
  "location": "job location or null",
  "contractType": "Full-time/Part-time/Contract/Freelance/Internship",
  "experienceLevel": "Entry/Mid/Senior/Lead or null",
  "category": "best matching category from the available list",
  "categoryConfidence": 0.8,
  "alternativeCategories": ["other possible categories"],
  "description": "job description",
  "tags": ["tag1", "tag2"],
  "skillsRequired": ["technical skills"],
  "searchKeywords": ["keywords for search"],
  "salary": "salary range or null",
  "currency": "USD/EUR/ETB or null",
  "applyLink": "link or contact to apply, or null",
  "expirationDate": "application deadline as written, or null",
  "relatedUrls": ["other links found in the message"],
  "isRemote": true/false
}}

Instructions:
1. Choose the most specific category that matches (prefer subcategories).
2. Set categoryConfidence between 0 and 1 based on certainty.
3. List up to 3 alternative categories if applicable.
4. Keep technical skills separate from general tags.
5. If the message is not a job posting, return {{"isJob": false}}."""


def build_system_prompt(category_names: list[str]) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(categories=", ".join(category_names))


def build_user_prompt(message_text: str, channel_category: str) -> str:
    return f"Channel: {channel_category}\n\nMessage: {message_text}"


def strip_code_fence(content: str) -> str:
    """Remove a surrounding ``` / ```json fence, if any."""

    stripped = content.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in {"null", "none", "n/a"}:
        return None
    return text


def _text_list(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    items = (_optional_text(item) for item in value)
    return tuple(item for item in items if item)


def _confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    return min(max(confidence, 0.0), 1.0)


def _is_job_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def parse_extraction(content: Optional[str], channel_category: str) -> Extraction:
    """Validate the model reply and coerce defaults.

    Expected non-events (empty reply, malformed JSON, isJob=false) are
    returned as NotAJob values rather than raised.
    """

    if not content or not content.strip():
        return NotAJob("empty")

    try:
        payload = json.loads(strip_code_fence(content))
    except json.JSONDecodeError:
        return NotAJob("unparsable")

    if not isinstance(payload, dict):
        return NotAJob("unparsable")
    if not _is_job_flag(payload.get("isJob")):
        return NotAJob("not_a_job")

    title = _optional_text(payload.get("title"))
    if not title:
        return NotAJob("invalid")

    return JobCandidate(
        title=title,
        category=_optional_text(payload.get("category")) or channel_category,
        description=_optional_text(payload.get("description")) or "",
        company=_optional_text(payload.get("company")),
        location=_optional_text(payload.get("location")),
        salary=_optional_text(payload.get("salary")),
        currency=_optional_text(payload.get("currency")),
        contract_type=_optional_text(payload.get("contractType")) or DEFAULT_CONTRACT_TYPE,
        experience_level=_optional_text(payload.get("experienceLevel")),
        category_confidence=_confidence(payload.get("categoryConfidence", DEFAULT_CONFIDENCE)),
        alternative_categories=_text_list(payload.get("alternativeCategories"))[:MAX_ALTERNATIVE_CATEGORIES],
        tags=_text_list(payload.get("tags")),
        skills_required=_text_list(payload.get("skillsRequired")),
        search_keywords=_text_list(payload.get("searchKeywords")),
        is_remote=payload.get("isRemote") is True,
        apply_link=_optional_text(payload.get("applyLink")),
        expiration_date=_optional_text(payload.get("expirationDate")),
        related_urls=_text_list(payload.get("relatedUrls")),
    )


class ExtractionEngine:
    """Classify one message and extract a job candidate from it."""

    def __init__(self, model: LanguageModelPort, categories: CategoryStorePort) -> None:
        self._model = model
        self._categories = categories

    async def extract(self, message_text: str, channel_category: str) -> Extraction:
        """Return a JobCandidate, or NotAJob for anything that is not one.

        Model and transport failures are logged and reported as NotAJob so a
        single bad message never aborts channel processing.
        """

        try:
            # Loaded per call: the category list is small and may change between runs.
            category_names = self._categories.list_category_names()
            content = await self._model.complete(
                build_system_prompt(category_names),
                build_user_prompt(message_text, channel_category),
            )
        except Exception:
            LOGGER.exception("Model extraction failed")
            return NotAJob("model_error")

        result = parse_extraction(content, channel_category)
        if isinstance(result, NotAJob):
            LOGGER.debug("No job candidate (%s)", result.reason)
        return result
