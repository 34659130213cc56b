"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the messaging source, language model,
storage and notification adapters so that the core can be reused with
different backends.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from core.models import Category, Channel, Job, RawMessage, RunProgress, RunReport


class MessageSourcePort(Protocol):
    """Read-only, channel-scoped access to the messaging source.

    One session is connected per run and reused for every channel.
    """

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def fetch_recent_messages(
        self, handle: str, window: timedelta, fetch_limit: int
    ) -> list[RawMessage]:
        ...


class LanguageModelPort(Protocol):
    """Single-turn chat completion returning the raw response text."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...


class CategoryStorePort(Protocol):
    def list_category_names(self) -> list[str]:
        ...

    def find_category_by_name(self, name: str) -> Optional[Category]:
        ...

    def find_category_by_path(self, path: str) -> Optional[Category]:
        ...

    def increment_category_job_count(self, category_id: str, amount: int = 1) -> bool:
        ...


class JobStorePort(Protocol):
    def job_exists(self, title: str, company: str, source_message_id: str) -> bool:
        ...

    def insert_job(self, job: Job) -> Optional[str]:
        ...


class ChannelStorePort(Protocol):
    def list_channels(self, active_only: bool = False) -> list[Channel]:
        ...

    def record_channel_scrape(self, channel_id: str, new_jobs: int, scraped_at: datetime) -> None:
        ...


class ProgressStorePort(Protocol):
    def create_progress(self, progress: RunProgress) -> None:
        ...

    def update_progress(self, run_id: str, fields: dict[str, Any]) -> None:
        ...

    def get_progress(self, run_id: str) -> Optional[RunProgress]:
        ...


class StoragePort(CategoryStorePort, JobStorePort, ChannelStorePort, ProgressStorePort, Protocol):
    """Everything the pipeline needs from the document store."""


class NotifierPort(Protocol):
    """Delivery of the end-of-run summary to external recipients."""

    async def send_report(self, report: RunReport) -> None:
        ...
