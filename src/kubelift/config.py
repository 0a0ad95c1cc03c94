from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Engine-wide settings, auto-loaded from KUBELIFT_* env vars.

    Attributes:
        log_level: Level name for the package logger.
        dry_run: Ask the IaC backend to plan without applying.
        default_upgrade_timeout_in_min: Worker upgrade timeout when no pod
            requires a longer drain.
        max_node_drain_timeout_in_min: Grace period above which a pod extends
            the worker upgrade timeout.
        worker_poll_interval_seconds: Delay between two worker version checks.
    """

    model_config = SettingsConfigDict(env_prefix="KUBELIFT_", extra="ignore")

    log_level: str = "INFO"
    dry_run: bool = False
    default_upgrade_timeout_in_min: int = Field(default=60, ge=1)
    max_node_drain_timeout_in_min: int = Field(default=15, ge=1)
    worker_poll_interval_seconds: float = Field(default=30.0, ge=0)


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    return EngineSettings()
