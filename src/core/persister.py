"""Job persistence (core domain).

Builds the denormalized job record from a candidate, its source message and
channel, writes it once, and bumps the category job counters.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from dateutil import parser as date_parser

from core.categories import CategoryResolver
from core.dedup import DuplicateGate
from core.handles import display_handle
from core.models import CategoryPlacement, Channel, Job, JobCandidate, RawMessage
from core.ports import CategoryStorePort, JobStorePort

LOGGER = logging.getLogger(__name__)

MAX_SEARCH_KEYWORDS = 20
MIN_KEYWORD_LENGTH = 3


def _words(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [word for word in value.lower().split() if len(word) >= MIN_KEYWORD_LENGTH]


def generate_search_keywords(candidate: JobCandidate, placement: CategoryPlacement) -> tuple[str, ...]:
    """Collect lower-cased search terms, de-duplicated in first-seen order.

    Title, company and category names are split into words; tags, skills and
    model-provided keywords are kept as whole phrases.
    """

    terms: list[str] = []
    terms.extend(_words(candidate.title))
    terms.extend(_words(candidate.company))
    # Only split words are length-filtered.
    terms.extend(tag.lower().strip() for tag in candidate.tags)
    terms.extend(skill.lower().strip() for skill in candidate.skills_required)
    terms.extend(keyword.lower().strip() for keyword in candidate.search_keywords)
    for name in placement.category_hierarchy:
        terms.extend(_words(name))

    unique = dict.fromkeys(term for term in terms if term)
    return tuple(list(unique)[:MAX_SEARCH_KEYWORDS])


def parse_expiration_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a free-text deadline; unparsable values become None."""

    if not value:
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, TypeError, OverflowError):
        LOGGER.debug("Unparsable expiration date %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _new_job_id() -> str:
    return uuid.uuid4().hex


class JobPersister:
    """Write-once persistence for extracted jobs."""

    def __init__(
        self,
        jobs: JobStorePort,
        categories: CategoryStorePort,
        gate: Optional[DuplicateGate] = None,
        resolver: Optional[CategoryResolver] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        id_factory: Callable[[], str] = _new_job_id,
    ) -> None:
        self._jobs = jobs
        self._categories = categories
        self._gate = gate or DuplicateGate(jobs)
        self._resolver = resolver or CategoryResolver(categories)
        self._clock = clock
        self._id_factory = id_factory

    def save(self, candidate: JobCandidate, message: RawMessage, channel: Channel) -> Optional[str]:
        """Persist the job and return its id, or None for a duplicate."""

        source_message_id = str(message.message_id)
        if self._gate.exists(candidate.title, candidate.company, source_message_id):
            LOGGER.info("Job already exists: %s", candidate.title)
            return None

        placement = self._resolver.resolve(candidate.category)
        job = self.build_job(candidate, message, channel, placement)

        job_id = self._jobs.insert_job(job)
        if job_id is None:
            LOGGER.info("Job already exists: %s", candidate.title)
            return None

        self._increment_job_count(placement.category_id)
        # A level-0 match (or the Other fallback) is its own main category.
        if placement.main_category_id != placement.category_id:
            self._increment_job_count(placement.main_category_id)

        LOGGER.info(
            "Job saved: %s -> %s (%s)",
            candidate.title,
            " > ".join(placement.category_hierarchy),
            job_id,
        )
        return job_id

    def build_job(
        self,
        candidate: JobCandidate,
        message: RawMessage,
        channel: Channel,
        placement: CategoryPlacement,
    ) -> Job:
        now = self._clock()
        handle = display_handle(channel.username)
        return Job(
            id=self._id_factory(),
            title=candidate.title,
            category=candidate.category,
            placement=placement,
            description=candidate.description,
            contract_type=candidate.contract_type,
            company=candidate.company,
            location=candidate.location,
            salary=candidate.salary,
            currency=candidate.currency,
            experience_level=candidate.experience_level,
            is_remote=candidate.is_remote,
            apply_link=candidate.apply_link,
            tags=candidate.tags,
            skills_required=candidate.skills_required,
            search_keywords=generate_search_keywords(candidate, placement),
            category_confidence=candidate.category_confidence,
            alternative_categories=candidate.alternative_categories,
            related_urls=candidate.related_urls,
            expiration_date=parse_expiration_date(candidate.expiration_date),
            job_source=f"Telegram: {handle}",
            raw_post=message.text,
            posted_at=message.date,
            extracted_at=now,
            created_at=now,
            source_message_id=str(message.message_id),
            source_message_url=message.url,
            channel_id=channel.id,
            channel_name=channel.name or channel.username,
        )

    def _increment_job_count(self, category_id: str) -> None:
        try:
            if not self._categories.increment_category_job_count(category_id):
                LOGGER.warning("Category %s not found, job count not updated", category_id)
        except Exception:
            LOGGER.warning("Failed to update job count for category %s", category_id, exc_info=True)
