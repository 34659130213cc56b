"""Jobs tab for viewing and exporting extracted jobs."""

from __future__ import annotations

import csv
import json
import sqlite3
from datetime import datetime
from typing import Any

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from ..constants import EXPORTS_DIR

# Flat columns written to CSV; list fields are joined with "; ".
CSV_FIELDS = (
    "id",
    "title",
    "company",
    "location",
    "salary",
    "currency",
    "contract_type",
    "is_remote",
    "category",
    "main_category",
    "channel_name",
    "posted_at",
    "apply_link",
    "source_message_url",
    "tags",
    "skills_required",
)


class JobsTab(Container):
    """Browse recent jobs and export them to JSON/CSV."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._rows: list[dict[str, Any]] = []
        self._table_ready = False

    def compose(self):
        with Vertical(id="jobs-panel"):
            yield Static("Jobs", classes="panel-title")
            yield DataTable(id="jobs-table", cursor_type="row")
            with Horizontal(id="jobs-actions"):
                yield Button("Reload", id="jobs-reload")
                yield Button("Export JSON", id="export-json", variant="success")
                yield Button("Export CSV", id="export-csv")
            yield Static("", id="jobs-output")

    def on_mount(self) -> None:
        table = self.query_one("#jobs-table", DataTable)
        table.add_column("posted", key="posted_at", width=18)
        table.add_column("channel", key="channel_name", width=18)
        table.add_column("title", key="title", width=32)
        table.add_column("company", key="company", width=20)
        table.add_column("category", key="category", width=24)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self.query_one("#jobs-actions").styles.height = 3
        self._table_ready = True
        self.load_jobs()

    @on(Button.Pressed, "#jobs-reload")
    def _on_reload(self) -> None:
        self.load_jobs()

    @on(Button.Pressed, "#export-json")
    def _on_export_json(self) -> None:
        self._export_rows("json")

    @on(Button.Pressed, "#export-csv")
    def _on_export_csv(self) -> None:
        self._export_rows("csv")

    def load_jobs(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#jobs-table", DataTable)
        table.clear()
        try:
            rows = self.app.storage.list_jobs()
        except sqlite3.Error as exc:
            self._rows = []
            self._set_output(f"db error: {exc}")
            return

        self._rows = rows
        for row in rows:
            table.add_row(
                self._format_date_display(row["posted_at"]),
                row["channel_name"] or "",
                self._clip_text(row["title"] or "", 40),
                row["company"] or "",
                row["category"] or "",
                key=str(row["id"]),
            )
        self._set_output(f"loaded {len(rows)} jobs")

    def _export_rows(self, fmt: str) -> None:
        if not self._rows:
            self._set_output("No jobs to export.")
            return
        EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = EXPORTS_DIR / f"jobs-{timestamp}.{fmt}"
        try:
            if fmt == "json":
                path.write_text(json.dumps(self._rows, indent=2, ensure_ascii=False), encoding="utf-8")
            else:
                with path.open("w", encoding="utf-8", newline="") as handle:
                    writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS, extrasaction="ignore")
                    writer.writeheader()
                    writer.writerows(self._csv_row(row) for row in self._rows)
            self._set_output(f"exported {len(self._rows)} jobs to {path}")
        except OSError as exc:
            self._set_output(f"export failed: {exc.strerror or exc}")

    def _set_output(self, message: str) -> None:
        self.query_one("#jobs-output", Static).update(message)

    @staticmethod
    def _csv_row(row: dict[str, Any]) -> dict[str, Any]:
        flat = dict(row)
        for key, value in row.items():
            if isinstance(value, list):
                flat[key] = "; ".join(str(item) for item in value)
        return flat

    @staticmethod
    def _clip_text(value: str, limit: int = 64) -> str:
        if len(value) <= limit:
            return value
        return value[: limit - 3] + "..."

    @staticmethod
    def _format_date_display(value: str) -> str:
        if not value:
            return ""
        display = value.replace("T", " ")
        return display[:19]
