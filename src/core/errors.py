"""Exceptions raised across the core/adapters boundary.

Each error carries a short ``code`` so trigger surfaces can report a
structured failure without inspecting exception types.
"""

from __future__ import annotations


class JobscopeError(Exception):
    """Base error with a stable, caller-facing code."""

    code = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class SourceConnectionError(JobscopeError):
    """The messaging source session could not be established."""

    code = "internal"


class ChannelUnavailableError(JobscopeError):
    """A single channel handle could not be resolved or read."""

    code = "unavailable"


class NoActiveChannelsError(JobscopeError):
    """No channel is both active and enabled for scraping."""

    code = "not-found"


class RunInProgressError(JobscopeError):
    """Another run is still being processed by this coordinator."""

    code = "failed-precondition"
