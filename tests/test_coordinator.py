from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from adapters.sqlite_storage import SQLiteStorage
from core.config import ScrapeConfig
from core.coordinator import RunCoordinator
from core.errors import (
    ChannelUnavailableError,
    NoActiveChannelsError,
    RunInProgressError,
    SourceConnectionError,
)
from core.extraction import ExtractionEngine
from core.models import RUN_COMPLETED, RUN_FAILED, TRIGGER_MANUAL, Category, Channel, RawMessage
from core.persister import JobPersister
from core.progress import ProgressPublisher

NOW = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

PYTHON_JOB = json.dumps(
    {
        "isJob": True,
        "title": "Senior Python Developer",
        "company": "Acme",
        "category": "Software Development",
        "skillsRequired": ["Python"],
    }
)
CHEF_JOB = json.dumps({"isJob": True, "title": "Head Chef", "category": "Culinary Arts"})


class FakeSource:
    def __init__(
        self,
        messages: "dict[str, list[RawMessage]] | None" = None,
        unavailable: tuple[str, ...] = (),
        connect_error: "Exception | None" = None,
        delay: float = 0.0,
    ) -> None:
        self.messages = messages or {}
        self.unavailable = unavailable
        self.connect_error = connect_error
        self.delay = delay
        self.connects = 0
        self.disconnects = 0

    async def connect(self) -> None:
        self.connects += 1
        if self.connect_error is not None:
            raise self.connect_error

    async def disconnect(self) -> None:
        self.disconnects += 1

    async def fetch_recent_messages(self, handle: str, window: timedelta, fetch_limit: int) -> list[RawMessage]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if handle in self.unavailable:
            raise ChannelUnavailableError(f"Cannot resolve @{handle}")
        return list(self.messages.get(handle, []))


class ScriptedModel:
    """Replies by matching a marker in the message text."""

    def __init__(self, replies: dict[str, str]) -> None:
        self.replies = replies

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        for marker, reply in self.replies.items():
            if marker in user_prompt:
                return reply
        return '{"isJob": false}'


class SlowModel(ScriptedModel):
    """Hangs on messages carrying the slow marker."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        if "[slow]" in user_prompt:
            await asyncio.sleep(1.0)
        return await super().complete(system_prompt, user_prompt)


class RecordingNotifier:
    def __init__(self) -> None:
        self.reports = []

    async def send_report(self, report) -> None:
        self.reports.append(report)


class ExplodingPersister:
    def save(self, candidate, message, channel):
        raise RuntimeError("disk full")


def _storage(tmp_path) -> SQLiteStorage:
    storage = SQLiteStorage(str(tmp_path / "jobscope.db"))
    storage.init_db()
    storage.upsert_category(Category(id="technology", name="Technology", path="technology", level=0))
    storage.upsert_category(
        Category(
            id="software-development",
            name="Software Development",
            path="technology/software-development",
            level=1,
            parent_path="technology",
        )
    )
    storage.upsert_category(Category(id="other", name="Other", path="other", level=0))
    return storage


def _add_channel(storage: SQLiteStorage, username: str, **kwargs) -> None:
    storage.upsert_channel(
        Channel(id=username, username=username, name=username.title(), category="technology", **kwargs)
    )


def _message(message_id: int, text: str) -> RawMessage:
    return RawMessage(
        message_id=message_id,
        text=text,
        date=NOW - timedelta(hours=1),
        chat_id=-100123,
        url=f"https://t.me/jobsfeed/{message_id}",
    )


JOBSFEED_MESSAGES = [
    _message(1, "We're hiring a Senior Python Developer at Acme [python]"),
    _message(2, "Happy New Year!"),
    _message(3, "Head Chef wanted for our kitchen [chef]"),
]


def _coordinator(storage, source, notifier=None, persister=None, model=None) -> RunCoordinator:
    model = model or ScriptedModel({"[python]": PYTHON_JOB, "[chef]": CHEF_JOB})
    publisher = ProgressPublisher(storage, [notifier] if notifier else [], clock=lambda: NOW)
    return RunCoordinator(
        source=source,
        engine=ExtractionEngine(model, storage),
        persister=persister or JobPersister(storage, storage, clock=lambda: NOW),
        channels=storage,
        publisher=publisher,
        config=ScrapeConfig(),
        clock=lambda: NOW,
        run_id_factory=lambda trigger: f"{trigger}-1",
    )


def test_scheduled_run_extracts_jobs_and_updates_counters(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    source = FakeSource({"jobsfeed": JOBSFEED_MESSAGES})
    notifier = RecordingNotifier()

    report = asyncio.run(_coordinator(storage, source, notifier).run_scheduled())

    assert report is not None and report.success
    assert report.total_jobs_extracted == 2
    assert report.total_messages_processed == 3
    assert report.processed_channels == 1
    assert report.errors == ()
    assert notifier.reports == [report]

    assert storage.get_category("software-development").job_count == 1
    assert storage.get_category("technology").job_count == 1
    assert storage.get_category("other").job_count == 1

    channel = storage.get_channel("jobsfeed")
    assert channel.total_jobs_scraped == 2
    assert channel.last_scraped == NOW

    progress = storage.get_progress("scheduled-1")
    assert progress.status == RUN_COMPLETED
    assert progress.current_channel is None
    assert progress.total_jobs_extracted == 2
    assert source.connects == 1 and source.disconnects == 1

    titles = sorted(job["title"] for job in storage.list_jobs())
    assert titles == ["Head Chef", "Senior Python Developer"]


def test_rerun_over_same_window_adds_nothing(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    source = FakeSource({"jobsfeed": JOBSFEED_MESSAGES})

    asyncio.run(_coordinator(storage, source).run_scheduled())
    second = RunCoordinator(
        source=source,
        engine=ExtractionEngine(ScriptedModel({"[python]": PYTHON_JOB, "[chef]": CHEF_JOB}), storage),
        persister=JobPersister(storage, storage, clock=lambda: NOW),
        channels=storage,
        publisher=ProgressPublisher(storage, clock=lambda: NOW),
        config=ScrapeConfig(),
        run_id_factory=lambda trigger: f"{trigger}-2",
    )
    report = asyncio.run(second.run_scheduled())

    assert report.total_jobs_extracted == 0
    assert report.total_messages_processed == 3
    assert len(storage.list_jobs()) == 2
    assert storage.get_category("technology").job_count == 1
    assert storage.get_channel("jobsfeed").total_jobs_scraped == 2


def test_empty_window_still_stamps_channel(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "quietfeed")

    report = asyncio.run(_coordinator(storage, FakeSource()).run_scheduled())

    assert report.success
    assert report.total_messages_processed == 0
    channel = storage.get_channel("quietfeed")
    assert channel.total_jobs_scraped == 0
    assert channel.last_scraped == NOW


def test_unavailable_channel_does_not_stop_the_run(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "brokenfeed")
    _add_channel(storage, "jobsfeed")
    source = FakeSource({"jobsfeed": JOBSFEED_MESSAGES}, unavailable=("brokenfeed",))

    report = asyncio.run(_coordinator(storage, source).run_scheduled())

    assert report.success
    assert report.processed_channels == 2
    assert report.total_jobs_extracted == 2
    assert len(report.errors) == 1
    assert report.errors[0].startswith("Error processing channel @brokenfeed")


def test_message_errors_are_recorded_per_message(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    source = FakeSource({"jobsfeed": JOBSFEED_MESSAGES})

    report = asyncio.run(
        _coordinator(storage, source, persister=ExplodingPersister()).run_scheduled()
    )

    assert report.success
    assert report.total_messages_processed == 3
    assert report.total_jobs_extracted == 0
    assert report.errors == (
        "Error processing message 1: disk full",
        "Error processing message 3: disk full",
    )


def test_inactive_channels_are_skipped(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "pausedfeed", scraping_enabled=False)
    _add_channel(storage, "retiredfeed", is_active=False)
    source = FakeSource()

    assert asyncio.run(_coordinator(storage, source).run_scheduled()) is None
    assert storage.list_progress() == []
    assert source.connects == 0


def test_scheduled_connect_failure_finalizes_failed_run(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    notifier = RecordingNotifier()
    source = FakeSource(connect_error=SourceConnectionError("session expired"))

    report = asyncio.run(_coordinator(storage, source, notifier).run_scheduled())

    assert report.success is False
    assert report.errors == ("Failed to connect to Telegram: session expired",)
    assert storage.get_progress("scheduled-1").status == RUN_FAILED
    assert notifier.reports == [report]


def test_scheduled_run_timeout_marks_failure(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    source = FakeSource({"jobsfeed": JOBSFEED_MESSAGES}, delay=1.0)

    report = asyncio.run(_coordinator(storage, source).run_scheduled(timeout=0.05))

    assert report.success is False
    assert any("timed out" in error for error in report.errors)
    assert storage.get_progress("scheduled-1").status == RUN_FAILED
    assert source.disconnects == 1


def test_trigger_now_runs_in_background(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    coordinator = _coordinator(storage, FakeSource({"jobsfeed": JOBSFEED_MESSAGES}))

    async def scenario():
        run_id = await coordinator.trigger_now()
        assert coordinator.active_run_id == run_id
        with pytest.raises(RunInProgressError):
            await coordinator.trigger_now()
        report = await coordinator.wait(run_id)
        return run_id, report

    run_id, report = asyncio.run(scenario())

    assert run_id == "manual-1"
    assert report.trigger == TRIGGER_MANUAL
    assert report.total_jobs_extracted == 2
    assert coordinator.active_run_id is None
    progress = storage.get_progress(run_id)
    assert progress.status == RUN_COMPLETED
    assert progress.processed_channels == 1


def test_trigger_now_without_channels_raises_not_found(tmp_path) -> None:
    storage = _storage(tmp_path)
    coordinator = _coordinator(storage, FakeSource())

    with pytest.raises(NoActiveChannelsError) as excinfo:
        asyncio.run(coordinator.trigger_now())

    assert excinfo.value.code == "not-found"
    assert storage.list_progress() == []


def test_trigger_now_connect_failure_raises_and_records(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    coordinator = _coordinator(storage, FakeSource(connect_error=OSError("network down")))

    with pytest.raises(SourceConnectionError) as excinfo:
        asyncio.run(coordinator.trigger_now())

    assert excinfo.value.code == "internal"
    assert "network down" in excinfo.value.message
    assert storage.get_progress("manual-1").status == RUN_FAILED
    assert coordinator.active_run_id is None


def test_duplicate_message_within_a_run_is_saved_once(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    repeated = _message(1, "We're hiring a Senior Python Developer at Acme [python]")
    source = FakeSource({"jobsfeed": [repeated, repeated]})

    report = asyncio.run(_coordinator(storage, source).run_scheduled())

    assert report.total_messages_processed == 2
    assert report.total_jobs_extracted == 1
    assert storage.get_category("software-development").job_count == 1
    assert storage.get_channel("jobsfeed").total_jobs_scraped == 1


def test_timeout_mid_channel_keeps_jobs_already_saved(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    source = FakeSource(
        {
            "jobsfeed": [
                _message(1, "We're hiring a Senior Python Developer at Acme [python]"),
                _message(2, "Still thinking about this one [slow]"),
            ]
        }
    )
    notifier = RecordingNotifier()
    model = SlowModel({"[python]": PYTHON_JOB})

    report = asyncio.run(_coordinator(storage, source, notifier, model=model).run_scheduled(timeout=0.2))

    assert report.success is False
    assert any("timed out" in error for error in report.errors)
    assert report.total_jobs_extracted == 1
    assert report.total_messages_processed == 2
    assert report.processed_channels == 0
    assert notifier.reports[0].total_jobs_extracted == 1
    progress = storage.get_progress("scheduled-1")
    assert progress.status == RUN_FAILED
    assert progress.total_jobs_extracted == 1
    channel = storage.get_channel("jobsfeed")
    assert channel.total_jobs_scraped == 1
    assert channel.last_scraped is not None
    assert len(storage.list_jobs()) == 1


def test_finished_background_run_is_forgotten(tmp_path) -> None:
    storage = _storage(tmp_path)
    _add_channel(storage, "jobsfeed")
    coordinator = _coordinator(storage, FakeSource({"jobsfeed": JOBSFEED_MESSAGES}))

    async def scenario():
        run_id = await coordinator.trigger_now()
        first = await coordinator.wait(run_id)
        # Let the done callbacks run.
        await asyncio.sleep(0)
        return run_id, first, await coordinator.wait(run_id)

    run_id, first, second = asyncio.run(scenario())

    assert first.total_jobs_extracted == 2
    assert second is None
    assert coordinator._tasks == {}
    assert storage.get_progress(run_id).status == RUN_COMPLETED
