from functools import lru_cache
from threading import Lock
from typing import Optional
import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator

# Environment Constants
ENV_PRODUCTION = "production"
ENV_DEV = "dev"


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the application settings."""
    return Settings()


_settings_reload_lock = Lock()


def reload_settings_from_environment() -> "Settings":
    """
    Atomically rebuild and replace cached settings from environment values.

    This avoids mutating the cached singleton instance in-place.
    """
    logger = structlog.get_logger()
    with _settings_reload_lock:
        logger.info("settings_reload_started")
        get_settings.cache_clear()
        refreshed = get_settings()
        logger.info("settings_reload_completed")
        return refreshed


class Settings(BaseSettings):
    """
    Main configuration for kube-ttl-reaper.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """

    APP_NAME: str = "kube-ttl-reaper"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    # ENVIRONMENT=dev loads credentials from a kubeconfig file,
    # anything else uses the in-cluster service account.
    ENVIRONMENT: str = ENV_PRODUCTION
    TESTING: bool = False
    KUBECONFIG: Optional[str] = None

    # Annotations
    TTL_ANNOTATION: str = "kube-ttl-reaper.io/ttl"
    REFRESHED_AT_ANNOTATION: str = "kube-ttl-reaper.io/refreshed-at"
    EVENT_COMPONENT: str = "kube-ttl-reaper"

    # Listing
    LIST_PAGE_SIZE: int = 500
    LIST_TIMEOUT_SECONDS: int = 60
    LIST_MAX_ATTEMPTS: int = 5
    LIST_RETRY_MIN_WAIT_SECONDS: float = 0.5
    LIST_RETRY_MAX_WAIT_SECONDS: float = 10.0

    # Pacing
    THROTTLE_SECONDS: float = 0.05  # Sleep between pages, kinds and deletions
    EXECUTION_TIMEOUT_SECONDS: float = 20 * 60
    EXECUTION_INTERVAL_SECONDS: float = 5 * 60
    MAX_FAILED_EXECUTIONS: int = 10

    # Opt-in filtering, e.g. RESOURCE_ALLOWLIST='["pods", "jobs"]'
    RESOURCE_ALLOWLIST: list[str] = []
    FORCE_DELETE_ON_FAILURE: bool = Field(
        default=False,
        description="Retry a failed delete once with gracePeriodSeconds=0",
    )

    METRICS_PORT: Optional[int] = None

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        """Centralized validation, grouped by concern."""
        self._validate_listing_config()
        self._validate_pacing_config()
        self._validate_annotation_config()
        return self

    def _validate_listing_config(self) -> None:
        if self.LIST_PAGE_SIZE < 1:
            raise ValueError("LIST_PAGE_SIZE must be >= 1.")
        if self.LIST_TIMEOUT_SECONDS < 1:
            raise ValueError("LIST_TIMEOUT_SECONDS must be >= 1.")
        if self.LIST_MAX_ATTEMPTS < 1:
            raise ValueError("LIST_MAX_ATTEMPTS must be >= 1.")
        if self.LIST_RETRY_MIN_WAIT_SECONDS < 0:
            raise ValueError("LIST_RETRY_MIN_WAIT_SECONDS must be >= 0.")
        if self.LIST_RETRY_MIN_WAIT_SECONDS > self.LIST_RETRY_MAX_WAIT_SECONDS:
            raise ValueError(
                "LIST_RETRY_MIN_WAIT_SECONDS must be <= LIST_RETRY_MAX_WAIT_SECONDS."
            )

    def _validate_pacing_config(self) -> None:
        if self.THROTTLE_SECONDS < 0:
            raise ValueError("THROTTLE_SECONDS must be >= 0.")
        if self.EXECUTION_TIMEOUT_SECONDS <= 0:
            raise ValueError("EXECUTION_TIMEOUT_SECONDS must be > 0.")
        if self.EXECUTION_INTERVAL_SECONDS <= 0:
            raise ValueError("EXECUTION_INTERVAL_SECONDS must be > 0.")
        if self.MAX_FAILED_EXECUTIONS < 0:
            raise ValueError("MAX_FAILED_EXECUTIONS must be >= 0.")
        if self.METRICS_PORT is not None and not 0 < self.METRICS_PORT < 65536:
            raise ValueError("METRICS_PORT must be a valid TCP port.")

    def _validate_annotation_config(self) -> None:
        if not self.TTL_ANNOTATION.strip():
            raise ValueError("TTL_ANNOTATION must not be empty.")
        if not self.REFRESHED_AT_ANNOTATION.strip():
            raise ValueError("REFRESHED_AT_ANNOTATION must not be empty.")
        if self.TTL_ANNOTATION == self.REFRESHED_AT_ANNOTATION:
            raise ValueError(
                "TTL_ANNOTATION and REFRESHED_AT_ANNOTATION must be different keys."
            )

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    @property
    def is_dev(self) -> bool:
        """True when credentials come from a local kubeconfig instead of the pod."""
        return self.ENVIRONMENT == ENV_DEV
