from __future__ import annotations

from dataclasses import dataclass

from tradesim import APP_VERSION
from tradesim.utils.env import ENV


@dataclass(frozen=True)
class Settings:
    """
    Runtime metadata used by the logging layer.

    Attributes:
        VERSION (str): The package/build version.
        environment (str): The deployment label (local, ci, prod...).
        log_level (str): The default log level.
        git_sha (str): The commit identifier of the running build.
    """

    VERSION: str = APP_VERSION
    environment: str = ENV.ENV
    log_level: str = ENV.LOG_LEVEL
    git_sha: str = ENV.GIT_SHA


settings = Settings()

__all__ = ["settings", "Settings"]
