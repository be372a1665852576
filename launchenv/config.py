"""Runtime configuration, env-driven.

Settings are read from ``LAUNCHENV_*`` environment variables or a ``.env``
file in the working directory.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class LaunchEnvConfig(BaseSettings):
    """Configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export LAUNCHENV_LOG_LEVEL=DEBUG
        export LAUNCHENV_CALL_TIMEOUT_SECONDS=5
        export LAUNCHENV_BUS_ADDRESS=unix:path=/run/user/1000/bus
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LAUNCHENV_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Session bus
    bus_address: str | None = None  # None selects the default session bus
    call_timeout_seconds: float = 25.0

    # Local (dry-run) transport
    max_local_queue: int = 1024
    dry_run: bool = False


# Module-level singleton: ``from launchenv.config import config``
config = LaunchEnvConfig()
