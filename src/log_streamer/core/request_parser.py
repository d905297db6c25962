"""Convert an inbound HTTP request into a LogQuery."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from starlette.datastructures import QueryParams
from starlette.requests import Request

from .models import LogQuery

_INT_RE = re.compile(r"[+-]?[0-9]+")
_RFC3339_RE = re.compile(
    r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}(?:\.[0-9]+)?(?:Z|[+-][0-9]{2}:[0-9]{2})"
)
_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
# Same bounds as a 64-bit signed integer.
_LIMIT_MIN = -(2**63)
_LIMIT_MAX = 2**63 - 1


class LogQueryParseError(ValueError):
    """The request could not be turned into a LogQuery.

    ``query`` holds the fields parsed before the failure. Callers may discard it.
    """

    def __init__(self, message: str, query: LogQuery) -> None:
        super().__init__(message)
        self.query = query


def _get_value(params: QueryParams, name: str) -> str:
    """Return the last value for ``name``, or "" when the key is absent."""
    values = params.getlist(name)
    if not values:
        return ""
    return values[-1]


def _parse_bool(s: str) -> bool:
    # Anything that is not a recognized true value (including junk) is False.
    return s in _TRUE_VALUES


def _parse_limit(s: str) -> int:
    if not _INT_RE.fullmatch(s):
        raise ValueError(f"invalid limit {s!r}: not an integer")
    value = int(s)
    if not _LIMIT_MIN <= value <= _LIMIT_MAX:
        raise ValueError(f"invalid limit {s!r}: value out of range")
    return value


def _parse_since(s: str) -> datetime:
    """Parse an RFC 3339 timestamp; the offset is mandatory."""
    if not _RFC3339_RE.fullmatch(s):
        raise ValueError(f"invalid since {s!r}: expected RFC 3339 (e.g. 2019-02-16T09:10:06Z)")
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"invalid since {s!r}: {exc}") from exc


def parse_query_params(params: QueryParams) -> LogQuery:
    """Build a LogQuery from GET parameters.

    Repeated keys resolve to their last value. Parsing stops at the first bad
    field; the error carries what was parsed up to that point.
    """
    fields: dict[str, Any] = {
        "name": _get_value(params, "name"),
        "instance": _get_value(params, "instance"),
    }

    limit_str = _get_value(params, "limit")
    if limit_str:
        try:
            fields["limit"] = _parse_limit(limit_str)
        except ValueError as exc:
            raise LogQueryParseError(str(exc), LogQuery(**fields)) from exc

    fields["follow"] = _parse_bool(_get_value(params, "follow"))
    fields["invert"] = _parse_bool(_get_value(params, "invert"))

    since_str = _get_value(params, "since")
    if since_str:
        try:
            fields["since"] = _parse_since(since_str)
        except ValueError as exc:
            raise LogQueryParseError(str(exc), LogQuery(**fields)) from exc

    # Presence matters here: "pattern=" is an empty pattern, not a missing one.
    patterns = params.getlist("pattern")
    if patterns:
        fields["pattern"] = patterns[-1]

    return LogQuery(**fields)


def parse_query_body(body: bytes) -> LogQuery:
    """Decode a JSON POST body into a LogQuery.

    Validation is strict: "5" is not a limit and "yes" is not a flag.
    """
    try:
        return LogQuery.model_validate_json(body, strict=True)
    except ValidationError as exc:
        raise LogQueryParseError(f"invalid log request body: {exc}", LogQuery()) from exc


async def parse_request(request: Request) -> LogQuery:
    """Extract the LogQuery from the GET parameters or from the POST body.

    Other methods yield an empty query without error.
    """
    if request.method == "GET":
        return parse_query_params(request.query_params)
    if request.method == "POST":
        return parse_query_body(await request.body())
    return LogQuery()
