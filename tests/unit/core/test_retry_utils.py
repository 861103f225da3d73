"""
Tests for app/shared/core/retry.py
"""
from unittest.mock import AsyncMock, patch

import pytest

from app.shared.core.exceptions import ClusterAPIError
from app.shared.core.retry import cluster_api_retrying, list_retrying


async def _run(retrying, operation):
    async for attempt in retrying:
        with attempt:
            return await operation()


@pytest.mark.asyncio
async def test_retries_cluster_api_errors_until_success():
    operation = AsyncMock(side_effect=[ClusterAPIError("503"), ClusterAPIError("503"), "ok"])
    sleep = AsyncMock()

    result = await _run(
        cluster_api_retrying("test", max_attempts=3, min_wait=0.5, max_wait=10, sleep=sleep),
        operation,
    )

    assert result == "ok"
    assert operation.await_count == 3
    assert [call.args[0] for call in sleep.await_args_list] == [0.5, 1.0]


@pytest.mark.asyncio
async def test_backoff_is_capped():
    operation = AsyncMock(side_effect=[ClusterAPIError("503")] * 4 + ["ok"])
    sleep = AsyncMock()

    await _run(
        cluster_api_retrying("test", max_attempts=5, min_wait=1, max_wait=3, sleep=sleep),
        operation,
    )

    assert [call.args[0] for call in sleep.await_args_list] == [1, 2, 3, 3]


@pytest.mark.asyncio
async def test_reraises_last_error_when_exhausted():
    operation = AsyncMock(side_effect=ClusterAPIError("gone", status=410))

    with pytest.raises(ClusterAPIError) as exc:
        await _run(
            cluster_api_retrying("test", max_attempts=2, min_wait=0, max_wait=0, sleep=AsyncMock()),
            operation,
        )

    assert exc.value.status == 410
    assert operation.await_count == 2


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    operation = AsyncMock(side_effect=KeyError("items"))

    with pytest.raises(KeyError):
        await _run(
            cluster_api_retrying("test", max_attempts=5, min_wait=0, max_wait=0, sleep=AsyncMock()),
            operation,
        )

    assert operation.await_count == 1


@pytest.mark.asyncio
async def test_retry_is_logged_with_context():
    operation = AsyncMock(side_effect=[ClusterAPIError("503"), "ok"])

    with patch("app.shared.core.retry.logger") as logger:
        await _run(
            cluster_api_retrying(
                "cluster_list", max_attempts=2, min_wait=0, max_wait=0, sleep=AsyncMock(), resource="pods"
            ),
            operation,
        )

    logger.warning.assert_called_once()
    args, kwargs = logger.warning.call_args
    assert args[0] == "operation_failed_will_retry"
    assert kwargs["operation_type"] == "cluster_list"
    assert kwargs["resource"] == "pods"
    assert kwargs["attempt"] == 1


def test_list_retrying_uses_settings(settings):
    retrying = list_retrying(settings.model_copy(update={"LIST_MAX_ATTEMPTS": 7}))
    assert retrying.stop.max_attempt_number == 7
