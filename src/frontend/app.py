"""Main Textual app for the jobscope run dashboard."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.css.query import NoMatches
from textual.widgets import Button, ContentSwitcher, Footer, Static, Tab, Tabs

from core.coordinator import RunCoordinator
from core.errors import JobscopeError

from .constants import REFRESH_SECONDS, TELEGRAM_BLUE
from .modals import ConfirmRunScreen
from .state import DashboardState
from .tabs.channels import ChannelsTab
from .tabs.jobs import JobsTab
from .tabs.runs import RunsTab

LOGGER = logging.getLogger(__name__)


class DashboardApp(App):
    """Dashboard over the run store with an on-demand trigger."""

    BINDINGS = [
        ("r", "run_now", "Run now"),
        ("ctrl+r", "reload", "Reload"),
        ("q", "quit", "Quit"),
    ]

    CSS = """
    #header {
        height: auto;
        padding: 0 1;
        border-bottom: solid $primary;
    }
    #header-row {
        height: auto;
    }
    #header-left {
        width: 1fr;
    }
    #header-right {
        width: auto;
        align-horizontal: right;
    }
    #header-actions {
        height: 3;
    }
    #tabs-bar {
        height: auto;
    }
    .subtle {
        text-style: dim;
    }
    .panel-title {
        text-style: bold;
        padding: 0 1;
    }
    .status-ok {
        color: $success;
    }
    .status-busy {
        color: $warning;
    }
    .status-error {
        color: $error;
    }
    #runs-errors {
        height: auto;
        max-height: 12;
        padding: 0 1;
        overflow-y: auto;
    }
    .modal-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: thick $primary;
        background: $surface;
    }
    .modal-title {
        text-style: bold;
    }
    .modal-actions {
        height: 3;
        margin-top: 1;
    }
    ConfirmRunScreen {
        align: center middle;
    }
    """

    def __init__(
        self,
        storage: Any,
        coordinator_factory: Callable[[], RunCoordinator],
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.storage = storage
        self.state = DashboardState()
        self._coordinator_factory = coordinator_factory
        self._coordinator: Optional[RunCoordinator] = None

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal(id="header-row"):
                with Vertical(id="header-left"):
                    yield Static(self._title_text(), id="title")
                    yield Static(f"db: {self.storage.db_path}", classes="subtle")
                with Vertical(id="header-right"):
                    yield Static("", id="header-status")
                    yield Horizontal(
                        Button("Run now", id="run-btn", variant="primary"),
                        Button("Reload", id="reload-btn"),
                        id="header-actions",
                    )

        with Container(id="tabs-bar"):
            with Center(id="tabs-center"):
                yield Tabs(
                    Tab("Runs", id="runs"),
                    Tab("Channels", id="channels"),
                    Tab("Jobs", id="jobs"),
                    id="tabs",
                )

        with ContentSwitcher(id="content"):
            yield RunsTab(id="runs")
            yield ChannelsTab(id="channels")
            yield JobsTab(id="jobs")
        yield Footer()

    def on_mount(self) -> None:
        self._set_active_tab("runs")
        self._refresh_header()
        self.set_interval(REFRESH_SECONDS, self._refresh_header)

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        tab_id = event.tab.id or ""
        if not tab_id:
            label = event.tab.label
            if hasattr(label, "plain"):
                label = label.plain
            tab_id = str(label).strip().lower()
        self._set_active_tab(tab_id)

    def _set_active_tab(self, tab_id: str) -> None:
        switcher = self.query_one("#content", ContentSwitcher)
        switcher.current = tab_id

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "run-btn":
            self.action_run_now()
        elif event.button.id == "reload-btn":
            self.action_reload()

    def action_reload(self) -> None:
        self.query_one(RunsTab).refresh_runs()
        self.query_one(ChannelsTab).load_channels()
        self.query_one(JobsTab).load_jobs()

    def action_run_now(self) -> None:
        if self.state.starting:
            return
        channel_count = sum(
            1 for channel in self.storage.list_channels(active_only=True) if channel.scraping_enabled
        )
        self.push_screen(ConfirmRunScreen(channel_count), self._handle_run_choice)

    def _handle_run_choice(self, confirmed: bool | None) -> None:
        if not confirmed:
            return
        self.state.starting = True
        self.state.error = None
        self._refresh_header()
        self.run_worker(self._trigger_run(), exclusive=True, group="trigger")

    async def _trigger_run(self) -> None:
        try:
            run_id = await self._get_coordinator().trigger_now()
        except JobscopeError as exc:
            self.state.error = f"{exc.code}: {exc.message}"
            LOGGER.warning("Run trigger failed: %s", self.state.error)
        except RuntimeError as exc:
            # Missing credentials surface here when the coordinator is built.
            self.state.error = str(exc)
        else:
            self.state.last_run_id = run_id
            self.notify(f"Started run {run_id}")
        finally:
            self.state.starting = False
            self._refresh_header()
            try:
                self.query_one(RunsTab).refresh_runs()
            except NoMatches:
                pass

    def _get_coordinator(self) -> RunCoordinator:
        if self._coordinator is None:
            self._coordinator = self._coordinator_factory()
        return self._coordinator

    def _refresh_header(self) -> None:
        try:
            status = self.query_one("#header-status", Static)
            run_btn = self.query_one("#run-btn", Button)
        except NoMatches:
            # A modal is on top; the next tick catches up.
            return

        status.remove_class("status-ok", "status-busy", "status-error")
        active = self._coordinator.active_run_id if self._coordinator else None
        if self.state.error:
            status.update(f"error: {self.state.error}")
            status.add_class("status-error")
        elif self.state.starting:
            status.update("starting run...")
            status.add_class("status-busy")
        elif active:
            status.update(f"running: {active}")
            status.add_class("status-busy")
        else:
            last = self.state.last_run_id or "none"
            status.update(f"idle (last run: {last})")
            status.add_class("status-ok")

        run_btn.disabled = self.state.starting

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("JOB", TELEGRAM_BLUE),
            ("SCOPE > Runs", "bold"),
        )
