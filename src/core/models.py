"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to Telethon, OpenAI or storage-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple, Union

RUN_RUNNING = "running"
RUN_COMPLETED = "completed"
RUN_FAILED = "failed"

TRIGGER_SCHEDULED = "scheduled"
TRIGGER_MANUAL = "manual"


@dataclass(frozen=True)
class Channel:
    """A configured Telegram channel the pipeline reads from."""

    id: str
    username: str
    name: str
    category: str
    is_active: bool = True
    scraping_enabled: bool = True
    image_url: Optional[str] = None
    total_jobs_scraped: int = 0
    last_scraped: Optional[datetime] = None


@dataclass(frozen=True)
class RawMessage:
    """One channel message as fetched for the current run."""

    message_id: int
    text: str
    date: datetime
    chat_id: int
    url: Optional[str]


@dataclass(frozen=True)
class JobCandidate:
    """Structured fields the model extracted from a single message."""

    title: str
    category: str
    description: str = ""
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    currency: Optional[str] = None
    contract_type: str = "Full-time"
    experience_level: Optional[str] = None
    category_confidence: float = 0.5
    alternative_categories: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    skills_required: Tuple[str, ...] = ()
    search_keywords: Tuple[str, ...] = ()
    is_remote: bool = False
    apply_link: Optional[str] = None
    expiration_date: Optional[str] = None
    related_urls: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NotAJob:
    """Explicit "no candidate" outcome of an extraction.

    reason is one of: not_a_job, unparsable, invalid, empty, model_error.
    """

    reason: str


Extraction = Union[JobCandidate, NotAJob]


@dataclass(frozen=True)
class Category:
    """Reference category (level 0 = main category, level 1 = subcategory)."""

    id: str
    name: str
    path: str
    level: int = 0
    full_path: Optional[str] = None
    parent_path: Optional[str] = None
    job_count: int = 0
    tags: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CategoryPlacement:
    """Category hierarchy snapshot attached to a job at write time."""

    category_id: str
    category_path: str
    main_category: str
    main_category_id: str
    category_hierarchy: Tuple[str, ...]


OTHER_PLACEMENT = CategoryPlacement(
    category_id="other",
    category_path="other",
    main_category="Other",
    main_category_id="other",
    category_hierarchy=("Other",),
)


@dataclass(frozen=True)
class Job:
    """Persisted job record, denormalized at write time."""

    id: str
    title: str
    category: str
    placement: CategoryPlacement
    description: str
    contract_type: str
    company: Optional[str]
    location: Optional[str]
    salary: Optional[str]
    currency: Optional[str]
    experience_level: Optional[str]
    is_remote: bool
    apply_link: Optional[str]
    tags: Tuple[str, ...]
    skills_required: Tuple[str, ...]
    search_keywords: Tuple[str, ...]
    category_confidence: float
    alternative_categories: Tuple[str, ...]
    related_urls: Tuple[str, ...]
    expiration_date: Optional[datetime]
    job_source: str
    raw_post: str
    posted_at: datetime
    extracted_at: datetime
    created_at: datetime
    source_message_id: str
    source_message_url: Optional[str]
    channel_id: str
    channel_name: str
    notification_sent: bool = False
    view_count: int = 0
    application_count: int = 0
    is_active: bool = True


@dataclass
class RunProgress:
    """Live, externally observable state of one run."""

    run_id: str
    trigger: str
    total_channels: int
    started_at: datetime
    status: str = RUN_RUNNING
    processed_channels: int = 0
    current_channel: Optional[str] = None
    total_jobs_extracted: int = 0
    total_messages_processed: int = 0
    completed_at: Optional[datetime] = None
    errors: list[str] = field(default_factory=list)


@dataclass
class ChannelResult:
    """Per-channel counters accumulated by the coordinator."""

    processed: int = 0
    extracted: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RunReport:
    """Final totals of a run, handed to notifiers."""

    run_id: str
    trigger: str
    success: bool
    total_channels: int
    processed_channels: int
    total_jobs_extracted: int
    total_messages_processed: int
    errors: Tuple[str, ...]
    started_at: datetime
    completed_at: datetime

    @property
    def duration(self) -> str:
        return format_duration(self.started_at, self.completed_at)


def format_duration(start: datetime, end: datetime) -> str:
    """Return a compact duration such as "1h 5m", "3m 12s" or "8s"."""

    seconds = max(int((end - start).total_seconds()), 0)
    minutes, hours = seconds // 60, seconds // 3600
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"
