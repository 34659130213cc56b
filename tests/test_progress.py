from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from core.models import RUN_COMPLETED, RUN_FAILED, RunProgress
from core.progress import ProgressPublisher, progress_as_dict

START = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


class FakeProgressStore:
    def __init__(self) -> None:
        self.records: dict[str, RunProgress] = {}

    def create_progress(self, progress: RunProgress) -> None:
        self.records[progress.run_id] = progress

    def update_progress(self, run_id: str, fields: dict[str, Any]) -> None:
        record = self.records[run_id]
        for key, value in fields.items():
            setattr(record, key, value)

    def get_progress(self, run_id: str) -> Optional[RunProgress]:
        return self.records.get(run_id)


class Clock:
    def __init__(self) -> None:
        self.now = START

    def __call__(self) -> datetime:
        return self.now


class FailingNotifier:
    async def send_report(self, report) -> None:
        raise RuntimeError("smtp down")


class RecordingNotifier:
    def __init__(self) -> None:
        self.reports = []

    async def send_report(self, report) -> None:
        self.reports.append(report)


def test_progress_lifecycle_and_report() -> None:
    store = FakeProgressStore()
    clock = Clock()
    recorder = RecordingNotifier()
    publisher = ProgressPublisher(store, [FailingNotifier(), recorder], clock=clock)

    async def scenario():
        publisher.init(2, "manual-1", "manual")
        publisher.update("manual-1", current_channel="@jobsfeed")
        publisher.update(
            "manual-1",
            processed_channels=1,
            total_jobs_extracted=4,
            total_messages_processed=10,
            errors=[],
        )
        clock.now = START + timedelta(hours=1, minutes=5)
        report = publisher.complete(
            "manual-1",
            True,
            {
                "processed_channels": 2,
                "total_jobs_extracted": 6,
                "total_messages_processed": 15,
                "errors": ["Error processing channel @broken: gone"],
            },
        )
        await publisher.flush()
        return report

    report = asyncio.run(scenario())

    record = store.records["manual-1"]
    assert record.status == RUN_COMPLETED
    assert record.current_channel is None
    assert record.completed_at == START + timedelta(hours=1, minutes=5)
    assert report.duration == "1h 5m"
    assert report.total_jobs_extracted == 6
    assert report.errors == ("Error processing channel @broken: gone",)
    # A failing notifier does not prevent the others from running.
    assert recorder.reports == [report]


def test_failed_run_sets_failed_status() -> None:
    store = FakeProgressStore()
    publisher = ProgressPublisher(store, clock=Clock())
    publisher.init(1, "scheduled-1", "scheduled")
    report = publisher.complete("scheduled-1", False, {"errors": ["Run timed out after 3600s"]})
    assert store.records["scheduled-1"].status == RUN_FAILED
    assert report.success is False
    assert report.duration == "0s"


def test_update_rejects_unknown_fields() -> None:
    store = FakeProgressStore()
    publisher = ProgressPublisher(store, clock=Clock())
    publisher.init(1, "run", "manual")
    with pytest.raises(ValueError):
        publisher.update("run", status="completed")


def test_complete_unknown_run_raises() -> None:
    class MissingStore(FakeProgressStore):
        def update_progress(self, run_id: str, fields: dict[str, Any]) -> None:
            pass

    publisher = ProgressPublisher(MissingStore(), clock=Clock())
    with pytest.raises(LookupError):
        publisher.complete("ghost", True, {})


def test_progress_as_dict_serializes_dates() -> None:
    progress = RunProgress(run_id="r", trigger="manual", total_channels=1, started_at=START)
    data = progress_as_dict(progress)
    assert data["started_at"] == START.isoformat()
    assert data["completed_at"] is None
    assert progress_as_dict(None) is None
