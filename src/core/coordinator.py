"""Run coordination for the ingestion pipeline.

One run walks every active channel strictly in order:
1) Fetch the recent message window for the channel
2) Extract a job candidate from each message
3) Persist new jobs (dedup + category hierarchy + job counts)
4) Update the channel's scrape counters
5) Publish progress, then the final report

This module is integration-agnostic. It only relies on ports, so the same
coordinator backs the scheduled CLI run and the on-demand trigger.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from core.config import ScrapeConfig
from core.errors import (
    ChannelUnavailableError,
    NoActiveChannelsError,
    RunInProgressError,
    SourceConnectionError,
)
from core.extraction import ExtractionEngine
from core.handles import display_handle
from core.models import (
    TRIGGER_MANUAL,
    TRIGGER_SCHEDULED,
    Channel,
    ChannelResult,
    NotAJob,
    RunReport,
)
from core.persister import JobPersister
from core.ports import ChannelStorePort, MessageSourcePort
from core.progress import ProgressPublisher

LOGGER = logging.getLogger(__name__)


def new_run_id(trigger: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"{trigger}-{stamp}-{uuid.uuid4().hex[:6]}"


@dataclass
class _RunTotals:
    processed_channels: int = 0
    messages: int = 0
    jobs: int = 0
    errors: list[str] = field(default_factory=list)

    def add(self, result: ChannelResult, finished: bool = True) -> None:
        if finished:
            self.processed_channels += 1
        self.messages += result.processed
        self.jobs += result.extracted
        self.errors.extend(result.errors)

    def as_stats(self) -> dict[str, Any]:
        return {
            "processed_channels": self.processed_channels,
            "total_jobs_extracted": self.jobs,
            "total_messages_processed": self.messages,
            "errors": list(self.errors),
        }


class RunCoordinator:
    """Drives source, extraction, persistence and progress for one run at a time.

    The message source is owned by the caller but connected here: once per
    run, reused for every channel, and disconnected when the run ends.
    """

    def __init__(
        self,
        source: MessageSourcePort,
        engine: ExtractionEngine,
        persister: JobPersister,
        channels: ChannelStorePort,
        publisher: ProgressPublisher,
        config: ScrapeConfig,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        run_id_factory: Callable[[str], str] = new_run_id,
    ) -> None:
        self._source = source
        self._engine = engine
        self._persister = persister
        self._channels = channels
        self._publisher = publisher
        self._config = config
        self._clock = clock
        self._run_id_factory = run_id_factory
        self._active_run_id: Optional[str] = None
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_run_id(self) -> Optional[str]:
        return self._active_run_id

    def select_channels(self) -> list[Channel]:
        return [
            channel
            for channel in self._channels.list_channels(active_only=True)
            if channel.is_active and channel.scraping_enabled
        ]

    async def run_scheduled(self, timeout: Optional[float] = None) -> Optional[RunReport]:
        """Run to completion and return the report.

        Returns None (a no-op success) when no channel is eligible.
        """

        channels = self.select_channels()
        if not channels:
            LOGGER.warning("No active channels found, nothing to scrape")
            return None

        run_id = self._start(TRIGGER_SCHEDULED, channels)
        try:
            try:
                await self._source.connect()
            except Exception as exc:
                report = self._fail_at_start(run_id, exc)
                await self._publisher.flush()
                return report

            try:
                report = await self._execute(run_id, channels, announce_channels=False, timeout=timeout)
                await self._publisher.flush()
                return report
            finally:
                await self._disconnect()
        finally:
            self._active_run_id = None

    async def trigger_now(self) -> str:
        """Start a run in the background and return its id immediately.

        Raises NoActiveChannelsError or SourceConnectionError so the caller
        gets a structured failure; everything after the id is returned is
        only visible through the progress record.
        """

        channels = self.select_channels()
        if not channels:
            raise NoActiveChannelsError(
                "No active channels found. Ensure channels are active and have scraping enabled."
            )

        run_id = self._start(TRIGGER_MANUAL, channels)
        LOGGER.info(
            "Channels to process: %s",
            ", ".join(f"{display_handle(c.username)} ({c.name})" for c in channels),
        )
        try:
            await self._source.connect()
        except Exception as exc:
            try:
                self._fail_at_start(run_id, exc)
                await self._publisher.flush()
            finally:
                self._active_run_id = None
            if isinstance(exc, SourceConnectionError):
                raise
            raise SourceConnectionError(f"Failed to connect to Telegram: {exc}") from exc

        task = asyncio.create_task(self._run_in_background(run_id, channels))
        self._tasks[run_id] = task
        task.add_done_callback(lambda _task: self._tasks.pop(run_id, None))
        return run_id

    async def wait(self, run_id: str) -> Optional[RunReport]:
        """Await a background run started by trigger_now.

        Returns None once the run has finished and been forgotten; its
        outcome stays in the progress record.
        """

        task = self._tasks.get(run_id)
        if task is None:
            return None
        return await task

    async def process_channel(
        self, channel: Channel, result: Optional[ChannelResult] = None
    ) -> ChannelResult:
        """Process one channel; failures are recorded, never raised.

        Counts accumulate in ``result`` as messages are handled, so a caller
        that owns it still sees the partial counts if the run is cancelled.
        """

        if result is None:
            result = ChannelResult()
        handle = display_handle(channel.username)
        try:
            LOGGER.info("Processing channel %s", handle)
            try:
                messages = await self._source.fetch_recent_messages(
                    channel.username, self._config.window, self._config.fetch_limit
                )
            except ChannelUnavailableError as exc:
                # Unresolvable handles count as an empty channel plus an error.
                LOGGER.warning("Channel %s unavailable: %s", handle, exc)
                result.errors.append(f"Error processing channel {handle}: {exc}")
                messages = []

            try:
                for message in messages:
                    result.processed += 1
                    try:
                        extraction = await self._engine.extract(message.text, channel.category)
                        if isinstance(extraction, NotAJob):
                            continue
                        if self._persister.save(extraction, message, channel):
                            result.extracted += 1
                    except Exception as exc:
                        error = f"Error processing message {message.message_id}: {exc}"
                        LOGGER.exception(error)
                        result.errors.append(error)
            finally:
                # Also runs on cancellation: saved jobs must reach the counter.
                self._update_channel_stats(channel, result.extracted)
            LOGGER.info(
                "Channel %s complete: %s jobs from %s messages",
                handle,
                result.extracted,
                result.processed,
            )
        except Exception as exc:
            error = f"Error processing channel {handle}: {exc}"
            LOGGER.exception(error)
            result.errors.append(error)
        return result

    def _start(self, trigger: str, channels: list[Channel]) -> str:
        if self._active_run_id is not None:
            raise RunInProgressError(f"Run {self._active_run_id} is still in progress")
        run_id = self._run_id_factory(trigger)
        self._active_run_id = run_id
        try:
            self._publisher.init(len(channels), run_id, trigger)
        except Exception:
            self._active_run_id = None
            raise
        LOGGER.info("Starting %s run %s over %s channels", trigger, run_id, len(channels))
        return run_id

    def _fail_at_start(self, run_id: str, exc: Exception) -> RunReport:
        error = f"Failed to connect to Telegram: {exc}"
        LOGGER.error("Run %s aborted: %s", run_id, error)
        return self._publisher.complete(run_id, False, {"errors": [error]})

    async def _execute(
        self,
        run_id: str,
        channels: list[Channel],
        announce_channels: bool,
        timeout: Optional[float],
    ) -> RunReport:
        totals = _RunTotals()
        try:
            await asyncio.wait_for(
                self._process_channels(run_id, channels, totals, announce_channels),
                timeout,
            )
            success = True
        except asyncio.TimeoutError:
            LOGGER.error("Run %s timed out after %ss", run_id, timeout)
            totals.errors.append(f"Run timed out after {int(timeout or 0)}s")
            success = False
        except Exception as exc:
            LOGGER.exception("Run %s failed", run_id)
            totals.errors.append(f"Run failed: {exc}")
            success = False
        return self._publisher.complete(run_id, success, totals.as_stats())

    async def _process_channels(
        self,
        run_id: str,
        channels: list[Channel],
        totals: _RunTotals,
        announce_channels: bool,
    ) -> None:
        for channel in channels:
            handle = display_handle(channel.username)
            if announce_channels:
                self._publisher.update(run_id, current_channel=handle)

            result = ChannelResult()
            try:
                await self.process_channel(channel, result)
            except asyncio.CancelledError:
                # Timed out mid-channel: keep what was already saved.
                totals.add(result, finished=False)
                raise
            totals.add(result)

            self._publisher.update(run_id, current_channel=handle, **totals.as_stats())

    async def _run_in_background(self, run_id: str, channels: list[Channel]) -> Optional[RunReport]:
        try:
            report = await self._execute(run_id, channels, announce_channels=True, timeout=None)
            await self._publisher.flush()
            return report
        except Exception:
            LOGGER.exception("Background run %s crashed", run_id)
            return None
        finally:
            await self._disconnect()
            self._active_run_id = None

    def _update_channel_stats(self, channel: Channel, new_jobs: int) -> None:
        try:
            self._channels.record_channel_scrape(channel.id, new_jobs, self._clock())
        except Exception:
            LOGGER.exception("Failed to update stats for channel %s", channel.id)

    async def _disconnect(self) -> None:
        try:
            await self._source.disconnect()
        except Exception:
            LOGGER.warning("Failed to disconnect from the message source", exc_info=True)
