"""Stream workload logs over HTTP as newline-delimited JSON.

The embedding server supplies a :class:`Requestor` that talks to its log
backend and mounts a :class:`LogHandler` built from it.
"""

from __future__ import annotations

from .core import (
    LogHandler,
    LogMessage,
    LogQuery,
    LogQueryParseError,
    MessageChannel,
    QueryContext,
    Requestor,
)

__all__ = [
    "LogHandler",
    "LogMessage",
    "LogQuery",
    "LogQueryParseError",
    "MessageChannel",
    "QueryContext",
    "Requestor",
]
