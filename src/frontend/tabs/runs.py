"""Runs tab with live progress of current and past scrapes."""

from __future__ import annotations

import sqlite3
from typing import Any, Optional

from rich.text import Text
from textual.containers import Container, Vertical
from textual.widgets import DataTable, Static

from core.models import RUN_COMPLETED, RUN_FAILED, RunProgress, format_duration

from ..constants import REFRESH_SECONDS

STATUS_STYLES = {
    RUN_COMPLETED: "green",
    RUN_FAILED: "red",
}


class RunsTab(Container):
    """Polls run_progress and shows errors of the selected run."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._runs: dict[str, RunProgress] = {}
        self._selected: Optional[str] = None
        self._table_ready = False

    def compose(self):
        with Vertical(id="runs-panel"):
            yield Static("Runs", classes="panel-title")
            yield DataTable(id="runs-table", cursor_type="row")
            yield Static("", id="runs-errors")

    def on_mount(self) -> None:
        table = self.query_one("#runs-table", DataTable)
        table.add_column("run", key="run_id", width=36)
        table.add_column("trigger", key="trigger", width=10)
        table.add_column("status", key="status", width=10)
        table.add_column("channels", key="channels", width=10)
        table.add_column("current", key="current_channel", width=20)
        table.add_column("messages", key="messages", width=9)
        table.add_column("jobs", key="jobs", width=6)
        table.add_column("duration", key="duration", width=9)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self._table_ready = True
        self.refresh_runs()
        self.set_interval(REFRESH_SECONDS, self.refresh_runs)

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is None or event.row_key.value is None:
            return
        self._selected = event.row_key.value
        self._show_errors()

    def refresh_runs(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#runs-table", DataTable)
        try:
            runs = self.app.storage.list_progress()
        except sqlite3.Error as exc:
            self.query_one("#runs-errors", Static).update(f"db error: {exc}")
            return

        cursor = table.cursor_row
        table.clear()
        self._runs = {run.run_id: run for run in runs}
        for run in runs:
            table.add_row(
                run.run_id,
                run.trigger,
                Text(run.status, style=STATUS_STYLES.get(run.status, "yellow")),
                f"{run.processed_channels}/{run.total_channels}",
                run.current_channel or "",
                str(run.total_messages_processed),
                str(run.total_jobs_extracted),
                format_duration(run.started_at, run.completed_at) if run.completed_at else "",
                key=run.run_id,
            )
        if runs and cursor is not None:
            table.move_cursor(row=min(cursor, len(runs) - 1))
        self._show_errors()

    def _show_errors(self) -> None:
        panel = self.query_one("#runs-errors", Static)
        run = self._runs.get(self._selected or "")
        if run is None:
            panel.update("")
            return
        if not run.errors:
            panel.update(f"{run.run_id}: no errors")
            return
        lines = [f"{run.run_id}: {len(run.errors)} error(s)"]
        lines.extend(f"• {error}" for error in run.errors)
        panel.update("\n".join(lines))
