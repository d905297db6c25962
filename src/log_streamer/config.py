"""Environment-driven settings.

The library never configures logging on import; embedding servers call
:func:`configure_logging` once at startup if they want the default setup.
"""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "LOG_STREAMER_LOG_LEVEL"
CHANNEL_SIZE_ENV = "LOG_STREAMER_CHANNEL_SIZE"
DEFAULT_CHANNEL_SIZE = 64


def configure_logging() -> None:
    """Configure a reasonable default logging setup."""
    level_name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_channel_size(maxsize: int | None = None) -> int:
    """Return the message channel capacity, falling back to the environment."""
    if maxsize is not None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        return maxsize

    env = os.getenv(CHANNEL_SIZE_ENV)
    if env is None or env == "":
        return DEFAULT_CHANNEL_SIZE

    try:
        value = int(env)
    except ValueError as exc:
        raise ValueError(f"{CHANNEL_SIZE_ENV} must be an integer") from exc
    if value < 1:
        raise ValueError(f"{CHANNEL_SIZE_ENV} must be >= 1")
    return value
