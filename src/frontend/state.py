"""State container for the dashboard header."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class DashboardState:
    last_run_id: str | None = None
    error: str | None = None
    starting: bool = False
