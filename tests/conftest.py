"""
Global pytest fixtures for the kube-ttl-reaper test suite.

Provides:
- Test settings with throttling and backoff disabled
- An in-memory cluster and a recording event sink
- A frozen clock for deterministic expiry checks
"""
import os
from datetime import datetime, timezone

import pytest

# Set test environment BEFORE any app imports
os.environ["TESTING"] = "true"
for _key in ("ENVIRONMENT", "KUBECONFIG", "DEBUG", "RESOURCE_ALLOWLIST", "METRICS_PORT"):
    os.environ.pop(_key, None)

from app.shared.core.config import Settings, get_settings  # noqa: E402
from tests.utils import FakeCluster, RecordingNotifier  # noqa: E402

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        TESTING=True,
        THROTTLE_SECONDS=0,
        LIST_MAX_ATTEMPTS=3,
        LIST_RETRY_MIN_WAIT_SECONDS=0,
        LIST_RETRY_MAX_WAIT_SECONDS=0,
        EXECUTION_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
