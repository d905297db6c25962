from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from log_streamer.core.channel import MessageChannel, QueryContext
from log_streamer.core.models import LogMessage, LogQuery

BASE_TIME = datetime(2019, 2, 16, 9, 10, 6, tzinfo=UTC)


def make_messages(texts: Sequence[str], *, name: str = "foobar") -> list[LogMessage]:
    return [
        LogMessage(
            name=name,
            instance="abc123",
            timestamp=BASE_TIME + timedelta(seconds=i),
            text=text,
        )
        for i, text in enumerate(texts)
    ]


class StaticRequestor:
    """Requestor serving a fixed backlog, optionally tailing until cancelled."""

    def __init__(
        self,
        messages: Sequence[LogMessage],
        *,
        tail: bool = False,
        fail: Exception | None = None,
    ) -> None:
        self.messages = list(messages)
        self.tail = tail
        self.fail = fail
        self.queries: list[LogQuery] = []
        self.filtered: list[LogMessage] = []
        self.ctx: QueryContext | None = None
        self.task: asyncio.Task[None] | None = None

    def filter(self, query: LogQuery, message: LogMessage) -> bool:
        self.filtered.append(message)
        if query.pattern is None:
            return True
        matched = re.search(query.pattern, message.text) is not None
        return matched != query.invert

    async def query(self, ctx: QueryContext, query: LogQuery) -> MessageChannel:
        self.queries.append(query)
        if self.fail is not None:
            raise self.fail
        self.ctx = ctx
        channel = MessageChannel(ctx, maxsize=2)
        self.task = asyncio.create_task(self._produce(ctx, channel))
        return channel

    async def _produce(self, ctx: QueryContext, channel: MessageChannel) -> None:
        try:
            for message in self.messages:
                if not await channel.send(message):
                    return
            if self.tail:
                await ctx.wait()
        finally:
            channel.close()


class AsgiClient:
    """Drive an ASGI app directly and record what it sends."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.disconnect = asyncio.Event()
        self.on_body: Callable[[bytes], None] | None = None

    async def __call__(
        self,
        app: Any,
        *,
        method: str = "GET",
        query_string: str = "",
        body: bytes = b"",
        http_version: str = "1.1",
    ) -> None:
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": http_version,
            "method": method,
            "scheme": "http",
            "path": "/",
            "raw_path": b"/",
            "query_string": query_string.encode("latin-1"),
            "headers": [],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }
        request_sent = False

        async def receive() -> dict[str, Any]:
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            await self.disconnect.wait()
            return {"type": "http.disconnect"}

        async def send(message: dict[str, Any]) -> None:
            self.sent.append(message)
            if message["type"] == "http.response.body" and message.get("body") and self.on_body:
                self.on_body(message["body"])

        await asyncio.wait_for(app(scope, receive, send), timeout=5)

    @property
    def status(self) -> int:
        return self.sent[0]["status"]

    @property
    def headers(self) -> dict[str, str]:
        return {k.decode(): v.decode() for k, v in self.sent[0]["headers"]}

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.sent if m["type"] == "http.response.body")

    @property
    def lines(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.body.splitlines() if line]

    @property
    def finished(self) -> bool:
        last = self.sent[-1]
        return last["type"] == "http.response.body" and not last.get("more_body", False)


@pytest.fixture
def asgi_client() -> AsgiClient:
    return AsgiClient()


@pytest.fixture
def messages() -> Callable[..., list[LogMessage]]:
    return make_messages


@pytest.fixture
def make_requestor() -> Callable[..., StaticRequestor]:
    def _make(texts: Sequence[str] = (), **kwargs: Any) -> StaticRequestor:
        return StaticRequestor(make_messages(texts), **kwargs)

    return _make
