"""Requestor interface implemented by the log backend of the embedding server."""

from __future__ import annotations

from typing import Protocol

from .channel import MessageChannel, QueryContext
from .models import LogMessage, LogQuery


class Requestor(Protocol):
    """Submits queries to the logging system and filters their results."""

    def filter(self, query: LogQuery, message: LogMessage) -> bool:
        """Return True to keep the message, False to drop it."""
        ...

    async def query(self, ctx: QueryContext, query: LogQuery) -> MessageChannel:
        """Start producing messages for the query and return their channel.

        Production runs in the background. The channel must be closed when no
        more messages will come, and production must stop once ``ctx`` is
        cancelled. Raise if the query cannot be started.
        """
        ...
