from __future__ import annotations

import os
from dataclasses import dataclass, field

# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------


def get_str(name: str, default: str = "") -> str:
    """Return env var as a string with a sensible default."""
    value = os.getenv(name)
    return value if value not in (None, "") else default


def get_str_chain(names: tuple[str, ...], default: str = "") -> str:
    """Return the first non-empty string from a list of env vars."""
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        candidate = str(raw).strip()
        if candidate:
            return candidate
    return default


@dataclass(frozen=True)
class EnvSettings:
    """Runtime metadata sourced from environment variables."""

    #: Deployment label attached to every log line.
    ENV: str = field(default_factory=lambda: get_str("ENV", "local"))
    #: Minimum log level for the loguru sinks.
    LOG_LEVEL: str = field(
        default_factory=lambda: get_str_chain(("TRADESIM_LOG_LEVEL", "LOG_LEVEL"), "INFO")
    )
    #: Commit identifier of the running build.
    GIT_SHA: str = field(
        default_factory=lambda: get_str_chain(
            ("GIT_SHA", "COMMIT_SHA", "SOURCE_VERSION"), "unknown"
        )
    )


ENV = EnvSettings()

__all__ = ["ENV", "EnvSettings", "get_str", "get_str_chain"]
