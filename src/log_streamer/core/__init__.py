"""Request parsing, message channel and streaming handler."""

from __future__ import annotations

from .channel import MessageChannel, QueryContext
from .handler import NDJSON_CONTENT_TYPE, LogHandler
from .models import ZERO_TIME, LogMessage, LogQuery, encode_message
from .request_parser import LogQueryParseError, parse_request
from .requestor import Requestor

__all__ = [
    "NDJSON_CONTENT_TYPE",
    "ZERO_TIME",
    "LogHandler",
    "LogMessage",
    "LogQuery",
    "LogQueryParseError",
    "MessageChannel",
    "QueryContext",
    "Requestor",
    "encode_message",
    "parse_request",
]
