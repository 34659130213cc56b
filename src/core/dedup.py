"""Deduplication gate (core domain)."""

from __future__ import annotations

import logging
from typing import Optional

from core.ports import JobStorePort

LOGGER = logging.getLogger(__name__)


def dedup_company(company: Optional[str]) -> str:
    """Missing companies compare equal to the empty string."""

    return company or ""


class DuplicateGate:
    """Exact-match check on (title, company, source message id).

    Near-duplicate titles are deliberately treated as distinct jobs.
    """

    def __init__(self, jobs: JobStorePort) -> None:
        self._jobs = jobs

    def exists(self, title: str, company: Optional[str], source_message_id: str) -> bool:
        try:
            return self._jobs.job_exists(title, dedup_company(company), source_message_id)
        except Exception:
            # Fail open: a store hiccup must not block ingestion.
            LOGGER.warning("Duplicate lookup failed for %r, assuming new", title, exc_info=True)
            return False
