"""Run progress tracking and end-of-run reporting (core domain).

The progress record is the only mid-run state visible outside the worker:
the dashboard and CLI poll it while a run is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from core.models import RUN_COMPLETED, RUN_FAILED, RunProgress, RunReport
from core.ports import NotifierPort, ProgressStorePort

LOGGER = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "processed_channels",
    "current_channel",
    "total_jobs_extracted",
    "total_messages_processed",
    "errors",
}


class ProgressPublisher:
    """Persist live run state and fan out the final summary."""

    def __init__(
        self,
        store: ProgressStorePort,
        notifiers: Iterable[NotifierPort] = (),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = store
        self._notifiers = list(notifiers)
        self._clock = clock
        self._pending: set[asyncio.Task] = set()

    def init(self, total_channels: int, run_id: str, trigger: str) -> RunProgress:
        progress = RunProgress(
            run_id=run_id,
            trigger=trigger,
            total_channels=total_channels,
            started_at=self._clock(),
        )
        self._store.create_progress(progress)
        return progress

    def update(self, run_id: str, **fields: Any) -> None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported progress fields: {', '.join(sorted(unknown))}")
        self._store.update_progress(run_id, fields)

    def complete(self, run_id: str, success: bool, stats: dict[str, Any]) -> RunReport:
        """Finalize the record and schedule the summary notification.

        stats carries the final totals (processed_channels,
        total_jobs_extracted, total_messages_processed, errors).
        """

        completed_at = self._clock()
        fields = {key: value for key, value in stats.items() if key in _UPDATABLE_FIELDS}
        fields.update(
            status=RUN_COMPLETED if success else RUN_FAILED,
            completed_at=completed_at,
            current_channel=None,
        )
        self._store.update_progress(run_id, fields)

        progress = self._store.get_progress(run_id)
        if progress is None:
            raise LookupError(f"Unknown run: {run_id}")

        report = RunReport(
            run_id=run_id,
            trigger=progress.trigger,
            success=success,
            total_channels=progress.total_channels,
            processed_channels=progress.processed_channels,
            total_jobs_extracted=progress.total_jobs_extracted,
            total_messages_processed=progress.total_messages_processed,
            errors=tuple(progress.errors),
            started_at=progress.started_at,
            completed_at=completed_at,
        )
        LOGGER.info(
            "Run %s %s: %s jobs from %s messages in %s (%s errors)",
            run_id,
            "completed" if success else "failed",
            report.total_jobs_extracted,
            report.total_messages_processed,
            report.duration,
            len(report.errors),
        )
        self._schedule_report(report)
        return report

    async def flush(self) -> None:
        """Wait for pending notifications (they never raise)."""

        if self._pending:
            await asyncio.gather(*list(self._pending))

    def _schedule_report(self, report: RunReport) -> None:
        if not self._notifiers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning("No event loop, skipping report for run %s", report.run_id)
            return
        task = loop.create_task(self._send_report(report))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send_report(self, report: RunReport) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_report(report)
            except Exception:
                LOGGER.exception("Failed to send report via %s", type(notifier).__name__)


def progress_as_dict(progress: Optional[RunProgress]) -> Optional[dict[str, Any]]:
    """JSON-friendly view of a progress record for CLI output."""

    if progress is None:
        return None
    data = asdict(progress)
    for key in ("started_at", "completed_at"):
        if data[key] is not None:
            data[key] = data[key].isoformat()
    return data
