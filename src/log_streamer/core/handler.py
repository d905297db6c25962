"""ASGI handler that streams log messages as newline-delimited JSON.

Mount it wherever the embedding server exposes logs, e.g.::

    app = Starlette(routes=[Mount("/system/logs", app=LogHandler(requestor))])

Once the 200 status has been sent nothing can change it, so a failure while
streaming is reported in-band as a final JSON line.
"""

from __future__ import annotations

import asyncio
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.types import Message, Receive, Scope, Send

from .channel import MessageChannel, QueryContext
from .models import ZERO_TIME, LogMessage, LogQuery, encode_message
from .request_parser import LogQueryParseError, parse_request
from .requestor import Requestor

LOGGER = logging.getLogger(__name__)

NDJSON_CONTENT_TYPE = "application/x-ndjson"

_SERIALIZE_FAILURE_LINE = encode_message(
    LogMessage(name="", instance="", timestamp=ZERO_TIME, text="failed to serialize log message")
)


def _supports_streaming(scope: Scope) -> bool:
    """HTTP/1.0 has no chunked transfer encoding to stream with."""
    return scope.get("http_version", "1.1") != "1.0"


async def _wait_for_disconnect(receive: Receive) -> None:
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return


class LogHandler:
    """Serve log queries from a :class:`Requestor` as an NDJSON stream."""

    def __init__(self, requestor: Requestor) -> None:
        self.requestor = requestor

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            LOGGER.warning("LogHandler: unsupported scope type %r, streaming requires http", scope["type"])
            return
        if not _supports_streaming(scope):
            LOGGER.warning(
                "LogHandler: HTTP/%s cannot carry a streaming response", scope.get("http_version")
            )
            await PlainTextResponse("Not Found", status_code=404)(scope, receive, send)
            return

        request = Request(scope, receive)
        try:
            query = await parse_request(request)
        except LogQueryParseError as exc:
            LOGGER.info("LogHandler: could not parse the log request: %s", exc)
            response = JSONResponse(
                {"message": "could not parse the log request", "detail": str(exc)},
                status_code=422,
            )
            await response(scope, receive, send)
            return

        ctx = QueryContext()
        try:
            try:
                messages = await self.requestor.query(ctx, query)
            except Exception:
                LOGGER.exception("LogHandler: log query failed for %r", query.name)
                response = JSONResponse({"message": "log query request failed"}, status_code=500)
                await response(scope, receive, send)
                return

            await self._stream(scope, receive, send, query, messages)
        finally:
            ctx.cancel()

    async def _stream(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
        query: LogQuery,
        messages: MessageChannel,
    ) -> None:
        """Write messages until the channel closes, the limit hits, or the client leaves."""
        headers = [(b"content-type", NDJSON_CONTENT_TYPE.encode("latin-1"))]
        # HTTP/2 and later frame the body themselves and reject this header.
        if scope.get("http_version", "1.1") == "1.1":
            headers.append((b"transfer-encoding", b"chunked"))
        await send({"type": "http.response.start", "status": 200, "headers": headers})
        await send(_body(b"", more_body=True))

        if query.limit > 0:
            LOGGER.info("LogHandler: watch for and stream %d log messages", query.limit)

        sent = 0
        disconnected = asyncio.ensure_future(_wait_for_disconnect(receive))
        next_message: asyncio.Future[LogMessage | None] | None = None
        try:
            while True:
                next_message = asyncio.ensure_future(messages.receive())
                done, _ = await asyncio.wait(
                    {disconnected, next_message}, return_when=asyncio.FIRST_COMPLETED
                )
                if disconnected in done:
                    exc = disconnected.exception()
                    if exc is not None:
                        LOGGER.warning("LogHandler: lost the client connection", exc_info=exc)
                    else:
                        LOGGER.info("LogHandler: client stopped listening")
                    return

                message = next_message.result()
                if message is None:
                    LOGGER.info("LogHandler: end of log stream")
                    break

                if not self.requestor.filter(query, message):
                    continue

                try:
                    await send(_body(encode_message(message), more_body=True))
                except (ValueError, TypeError, OSError):
                    LOGGER.warning(
                        "LogHandler: failed to serialize log message: '%s'", message, exc_info=True
                    )
                    await _send_best_effort(send, _SERIALIZE_FAILURE_LINE)
                    break

                if query.limit > 0:
                    sent += 1
                    if sent >= query.limit:
                        LOGGER.info("LogHandler: reached message limit '%d'", query.limit)
                        break
        finally:
            disconnected.cancel()
            if next_message is not None:
                next_message.cancel()

        await _send_best_effort(send, b"", more_body=False)


def _body(data: bytes, *, more_body: bool) -> Message:
    return {"type": "http.response.body", "body": data, "more_body": more_body}


async def _send_best_effort(send: Send, data: bytes, *, more_body: bool = True) -> None:
    """Send a body chunk; the client may already be gone, so failures are only logged."""
    try:
        await send(_body(data, more_body=more_body))
    except OSError:
        LOGGER.warning("LogHandler: could not write to the response", exc_info=True)
