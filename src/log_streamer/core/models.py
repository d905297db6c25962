"""Core data models for log streaming."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import AwareDatetime, BaseModel, ConfigDict

# Timestamp carried by records that have no real time (Go-style zero time).
ZERO_TIME = datetime(1, 1, 1, tzinfo=UTC)


class LogQuery(BaseModel):
    """A request for the logs of one workload.

    ``pattern`` is ``None`` when no filter was asked for. An empty string is a
    different filter and must stay distinguishable from ``None``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    instance: str = ""
    since: AwareDatetime | None = None  # inclusive lower bound
    limit: int = 0  # <= 0 means unlimited
    follow: bool = False
    pattern: str | None = None
    invert: bool = False


class LogMessage(BaseModel):
    """A single log record from a workload instance."""

    model_config = ConfigDict(frozen=True)

    name: str
    instance: str
    timestamp: datetime
    text: str

    def __str__(self) -> str:
        return f"{self.timestamp.isoformat()} {self.name} ({self.instance}) {self.text}"


def encode_message(message: LogMessage) -> bytes:
    """Serialize a message as one newline-terminated JSON line."""
    return message.model_dump_json().encode("utf-8") + b"\n"
