"""Shared run report formatting helpers.

Keeping formatting here prevents drift between adapters and keeps reports
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html

from core.models import TRIGGER_MANUAL, RunReport

MAX_REPORTED_ERRORS = 10
DIVIDER = "──────────────"


def report_errors(report: RunReport, limit: int = MAX_REPORTED_ERRORS) -> list[str]:
    """Return the first ``limit`` errors plus a "+N more" marker line."""

    errors = list(report.errors[:limit])
    remaining = len(report.errors) - limit
    if remaining > 0:
        errors.append(f"... and {remaining} more errors")
    return errors


def report_subject(report: RunReport) -> str:
    kind = "Manual" if report.trigger == TRIGGER_MANUAL else "Scheduled"
    outcome = "Completed" if report.success else "Failed"
    return f"[jobscope] {kind} Scraping {outcome} - {report.total_jobs_extracted} Jobs Extracted"


def _timestamp(report: RunReport, which: str) -> str:
    value = report.started_at if which == "start" else report.completed_at
    return value.astimezone().strftime("%H:%M:%S %d-%m-%Y")


def _format_markdown(report: RunReport) -> str:
    """Create the Markdown body used by Saved Messages."""

    def escape_md(value: str) -> str:
        for ch in r"*[`_":
            value = value.replace(ch, f"\\{ch}")
        return value

    lines = [
        f"**{escape_md(report_subject(report))}**",
        f"**Run:**      {escape_md(report.run_id)}",
        f"**Started:**  {_timestamp(report, 'start')}",
        f"**Duration:** {report.duration}",
        DIVIDER,
        f"Channels: {report.processed_channels}/{report.total_channels}",
        f"Messages: {report.total_messages_processed}",
        f"Jobs:     {report.total_jobs_extracted}",
    ]
    errors = report_errors(report)
    if errors:
        lines.extend(["", f"**Errors ({len(report.errors)}):**"])
        lines.extend(f"• {escape_md(error)}" for error in errors)
    else:
        lines.extend(["", "No errors encountered."])
    lines.append(DIVIDER)
    return "\n".join(lines)


def _format_html(report: RunReport) -> str:
    """Create the HTML body used by the Bot API adapter and email."""

    parts = [
        f"<b>{html.escape(report_subject(report))}</b>",
        f"<b>Run:</b> <code>{html.escape(report.run_id)}</code>",
        f"<b>Started:</b> {html.escape(_timestamp(report, 'start'))}",
        f"<b>Completed:</b> {html.escape(_timestamp(report, 'end'))}",
        f"<b>Duration:</b> {html.escape(report.duration)}",
        DIVIDER,
        f"Channels: {report.processed_channels}/{report.total_channels}",
        f"Messages: {report.total_messages_processed}",
        f"Jobs: {report.total_jobs_extracted}",
    ]
    errors = report_errors(report)
    if errors:
        parts.extend(["", f"<b>Errors ({len(report.errors)}):</b>"])
        parts.extend(f"• {html.escape(error)}" for error in errors)
    else:
        parts.extend(["", "No errors encountered."])
    parts.append(DIVIDER)
    return "\n".join(parts)


def _format_plain(report: RunReport) -> str:
    lines = [
        report_subject(report),
        f"Run: {report.run_id}",
        f"Started: {_timestamp(report, 'start')}",
        f"Completed: {_timestamp(report, 'end')}",
        f"Duration: {report.duration}",
        f"Channels: {report.processed_channels}/{report.total_channels}",
        f"Messages: {report.total_messages_processed}",
        f"Jobs: {report.total_jobs_extracted}",
    ]
    errors = report_errors(report)
    if errors:
        lines.append(f"Errors ({len(report.errors)}):")
        lines.extend(f"- {error}" for error in errors)
    return "\n".join(lines)


def format_report(report: RunReport, mode: str) -> str:
    """Return the report formatted for the requested mode."""

    if mode == "markdown":
        return _format_markdown(report)
    if mode == "html":
        return _format_html(report)
    if mode == "plain":
        return _format_plain(report)
    raise ValueError(f"Unsupported report format: {mode}")
