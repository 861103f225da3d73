import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from kubernetes_asyncio import client

from app.modules.reaper.adapters.kubernetes.client import (
    KubernetesClusterClient,
    create_api_client,
)
from app.modules.reaper.adapters.kubernetes.events import KubernetesEventRecorder
from app.modules.reaper.domain.ports import Clock, utc_now
from app.modules.reaper.domain.service import ReconciliationResult, ReconciliationService
from app.shared.core.config import Settings, get_settings
from app.shared.core.exceptions import (
    ConfigurationError,
    ReconciliationTimeoutError,
    SupervisorAbortError,
)
from app.shared.core.ops_metrics import (
    CONSECUTIVE_FAILED_PASSES,
    RECONCILIATION_PASS_DURATION,
    RECONCILIATION_PASSES_TOTAL,
)

logger = structlog.get_logger()

JOB_ID = "ttl_reconciliation"

ApiClientFactory = Callable[[Settings], Awaitable[client.ApiClient]]


class ReconciliationSupervisor:
    """
    Runs reconciliation passes on a fixed interval and gives up after
    MAX_FAILED_EXECUTIONS consecutive failures.

    The failure counter lives here, the reconciliation engine itself keeps
    no state between passes.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        api_client_factory: ApiClientFactory = create_api_client,
        clock: Clock = utc_now,
    ):
        self.settings = settings or get_settings()
        self.api_client_factory = api_client_factory
        self.clock = clock
        self.consecutive_failures = 0
        self.scheduler = AsyncIOScheduler()
        self._stopped: Optional[asyncio.Event] = None
        self._abort_error: Optional[SupervisorAbortError] = None

    async def _execute(self) -> ReconciliationResult:
        try:
            api_client = await self.api_client_factory(self.settings)
        except ConfigurationError as e:
            # Nothing will recover without operator action
            raise SupervisorAbortError(
                f"failed to create Kubernetes clients: {e.message}"
            ) from e

        async with api_client:
            service = ReconciliationService(
                KubernetesClusterClient(api_client),
                KubernetesEventRecorder(api_client, self.settings.EVENT_COMPONENT),
                settings=self.settings,
                clock=self.clock,
            )
            return await service.reconcile()

    def _record_failure(self, error: Exception) -> None:
        self.consecutive_failures += 1
        CONSECUTIVE_FAILED_PASSES.set(self.consecutive_failures)
        if self.consecutive_failures > self.settings.MAX_FAILED_EXECUTIONS:
            raise SupervisorAbortError(
                f"execution failed {self.consecutive_failures} times: {error}",
                details={"consecutive_failures": self.consecutive_failures},
            ) from error

    def _record_success(self) -> None:
        if self.consecutive_failures > 0:
            logger.info(
                "reconciliation_recovered",
                failed_attempts=self.consecutive_failures,
            )
        self.consecutive_failures = 0
        CONSECUTIVE_FAILED_PASSES.set(0)

    async def run_once(self) -> Optional[ReconciliationResult]:
        """Run a single pass, returning its result or None when it failed."""
        start_time = time.perf_counter()
        try:
            result = await self._execute()
        except SupervisorAbortError:
            RECONCILIATION_PASSES_TOTAL.labels(status="failure").inc()
            raise
        except ReconciliationTimeoutError as e:
            RECONCILIATION_PASSES_TOTAL.labels(status="timeout").inc()
            logger.error(
                "reconciliation_timed_out",
                error=e.message,
                consecutive_failures=self.consecutive_failures + 1,
            )
            self._record_failure(e)
            return None
        except Exception as e:
            RECONCILIATION_PASSES_TOTAL.labels(status="failure").inc()
            logger.error(
                "reconciliation_failed",
                error=str(e),
                error_type=type(e).__name__,
                consecutive_failures=self.consecutive_failures + 1,
            )
            self._record_failure(e)
            return None
        finally:
            logger.info(
                "reconciliation_execution_finished",
                duration_ms=round((time.perf_counter() - start_time) * 1000),
                next_run_in_seconds=self.settings.EXECUTION_INTERVAL_SECONDS,
            )

        RECONCILIATION_PASSES_TOTAL.labels(status="success").inc()
        RECONCILIATION_PASS_DURATION.observe(result.duration_seconds)
        self._record_success()
        return result

    async def _scheduled_run(self) -> None:
        try:
            await self.run_once()
        except SupervisorAbortError as e:
            self._abort_error = e
            if self._stopped is not None:
                self._stopped.set()

    async def run_forever(self) -> None:
        """Block until the failure limit is exceeded, then raise SupervisorAbortError."""
        self._stopped = asyncio.Event()
        self.scheduler.add_job(
            self._scheduled_run,
            trigger=IntervalTrigger(seconds=self.settings.EXECUTION_INTERVAL_SECONDS),
            id=JOB_ID,
            name="TTL reconciliation",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            "reconciliation_scheduler_started",
            interval_seconds=self.settings.EXECUTION_INTERVAL_SECONDS,
            timeout_seconds=self.settings.EXECUTION_TIMEOUT_SECONDS,
        )
        try:
            await self._stopped.wait()
        finally:
            self.scheduler.shutdown(wait=False)
        if self._abort_error is not None:
            raise self._abort_error
