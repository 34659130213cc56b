"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class ScrapeConfig:
    """Message window and run limits for one ingestion run."""

    window_hours: int = 24
    fetch_limit: int = 100
    run_timeout_minutes: int = 60

    @property
    def window(self) -> timedelta:
        return timedelta(hours=self.window_hours)

    @property
    def run_timeout(self) -> float:
        return float(self.run_timeout_minutes * 60)


@dataclass(frozen=True)
class ExtractionConfig:
    """Language model settings consumed by the model adapter."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 1500
