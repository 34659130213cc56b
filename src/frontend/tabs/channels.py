"""Channels tab listing the configured sources and their counters."""

from __future__ import annotations

import sqlite3
from typing import Any

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from core.handles import display_handle


class ChannelsTab(Container):
    """Read-only view of channels; edits go through the seed file."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._table_ready = False

    def compose(self):
        with Vertical(id="channels-panel"):
            yield Static("Channels", classes="panel-title")
            yield DataTable(id="channels-table", cursor_type="row")
            with Horizontal(id="channels-actions"):
                yield Button("Reload", id="channels-reload")
            yield Static("", id="channels-output")

    def on_mount(self) -> None:
        table = self.query_one("#channels-table", DataTable)
        table.add_column("channel", key="username", width=22)
        table.add_column("name", key="name", width=24)
        table.add_column("category", key="category", width=16)
        table.add_column("active", key="active", width=8)
        table.add_column("jobs", key="total_jobs_scraped", width=8)
        table.add_column("last scraped", key="last_scraped", width=20)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self.query_one("#channels-actions").styles.height = 3
        self._table_ready = True
        self.load_channels()

    @on(Button.Pressed, "#channels-reload")
    def _on_reload(self) -> None:
        self.load_channels()

    def load_channels(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#channels-table", DataTable)
        table.clear()
        try:
            channels = self.app.storage.list_channels()
        except sqlite3.Error as exc:
            self.query_one("#channels-output", Static).update(f"db error: {exc}")
            return

        active = 0
        for channel in channels:
            enabled = channel.is_active and channel.scraping_enabled
            active += int(enabled)
            last = channel.last_scraped.strftime("%Y-%m-%d %H:%M") if channel.last_scraped else "never"
            table.add_row(
                display_handle(channel.username),
                channel.name,
                channel.category,
                "yes" if enabled else "no",
                str(channel.total_jobs_scraped),
                last,
                key=channel.id,
            )
        self.query_one("#channels-output", Static).update(
            f"{len(channels)} channels, {active} scraped per run"
        )
