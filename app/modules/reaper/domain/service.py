"""
Reconciliation Service

Drives one TTL reconciliation pass:
- Discovering every resource-kind the API server exposes.
- Listing each kind page by page.
- Evaluating TTL annotations.
- Deleting what has expired.

The whole pass races against an execution deadline. When the deadline wins,
the pipeline task is cancelled so in-flight list/delete calls unwind.
"""

import asyncio
import time
from dataclasses import dataclass, field, replace
from typing import Optional

import structlog

from app.modules.reaper.domain.enumerator import enumerate_resources
from app.modules.reaper.domain.executor import DeletionExecutor
from app.modules.reaper.domain.expiry import ExpiryEvaluator, ExpiryStatus
from app.modules.reaper.domain.lister import PaginatedLister
from app.modules.reaper.domain.ports import Clock, ClusterClient, NotificationSink, utc_now
from app.modules.reaper.domain.types import APIResourceDescriptor, GroupVersionResource
from app.shared.core.config import Settings, get_settings
from app.shared.core.exceptions import ReconciliationTimeoutError, ResourceListError

logger = structlog.get_logger()


@dataclass
class ReconciliationResult:
    kinds_checked: int = 0
    kinds_skipped: int = 0
    instances_seen: int = 0
    expired: int = 0
    deleted: int = 0
    delete_failures: int = 0
    malformed: int = 0
    duration_seconds: float = 0.0
    skipped_resources: list[str] = field(default_factory=list)


class ReconciliationService:
    def __init__(
        self,
        client: ClusterClient,
        notifier: NotificationSink,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        self.client = client
        self.settings = settings or get_settings()
        self.lister = PaginatedLister(client, self.settings)
        self.evaluator = ExpiryEvaluator(
            self.settings.TTL_ANNOTATION,
            self.settings.REFRESHED_AT_ANNOTATION,
            clock=clock,
        )
        self.executor = DeletionExecutor(client, notifier, self.settings)

    async def reconcile(self) -> ReconciliationResult:
        """
        Run one full pass within EXECUTION_TIMEOUT_SECONDS.

        Raises DiscoveryError when the API surface cannot be read and
        ReconciliationTimeoutError when the deadline elapses first. Individual
        list and delete failures never fail the pass.
        """
        result = ReconciliationResult()
        start_time = time.perf_counter()
        try:
            await asyncio.wait_for(
                self._run_pass(result),
                timeout=self.settings.EXECUTION_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "reconciliation_deadline_exceeded",
                timeout_seconds=self.settings.EXECUTION_TIMEOUT_SECONDS,
                kinds_checked=result.kinds_checked,
                deleted=result.deleted,
            )
            raise ReconciliationTimeoutError(
                f"execution timed out after {self.settings.EXECUTION_TIMEOUT_SECONDS}s",
                details={"kinds_checked": result.kinds_checked, "deleted": result.deleted},
            ) from e

        result.duration_seconds = round(time.perf_counter() - start_time, 3)
        logger.info(
            "reconciliation_pass_completed",
            kinds_checked=result.kinds_checked,
            kinds_skipped=result.kinds_skipped,
            instances_seen=result.instances_seen,
            expired=result.expired,
            deleted=result.deleted,
            delete_failures=result.delete_failures,
            malformed=result.malformed,
            duration_seconds=result.duration_seconds,
        )
        return result

    async def _run_pass(self, result: ReconciliationResult) -> None:
        snapshot = await self.client.discover_resource_types()
        logger.debug("api_resources_discovered", group_versions=len(snapshot))

        for gvr, descriptor in enumerate_resources(
            snapshot, self.settings.RESOURCE_ALLOWLIST
        ):
            try:
                await self._reconcile_kind(gvr, descriptor, result)
            except ResourceListError as e:
                result.kinds_skipped += 1
                result.skipped_resources.append(str(gvr))
                logger.error(
                    "resource_kind_skipped",
                    resource=gvr.resource,
                    group_version=gvr.group_version,
                    error=e.message,
                )
            else:
                result.kinds_checked += 1
            # Cool off a tiny bit to avoid hitting the API too often
            await asyncio.sleep(self.settings.THROTTLE_SECONDS)

    async def _reconcile_kind(
        self,
        gvr: GroupVersionResource,
        descriptor: APIResourceDescriptor,
        result: ReconciliationResult,
    ) -> None:
        async for instance in self.lister.iter_resources(gvr):
            result.instances_seen += 1
            if not instance.kind:
                instance = replace(instance, kind=descriptor.kind)
            decision = self.evaluator.evaluate(instance)

            if decision.status is ExpiryStatus.NOT_ANNOTATED:
                continue
            if decision.status is ExpiryStatus.MALFORMED:
                result.malformed += 1
                logger.warning(
                    "invalid_ttl_skipped",
                    resource=gvr.resource,
                    name=instance.name,
                    namespace=instance.namespace,
                    ttl=decision.ttl,
                    error=decision.reason,
                )
                continue
            if decision.status is ExpiryStatus.NOT_EXPIRED:
                logger.info(
                    "resource_not_expired",
                    resource=gvr.resource,
                    name=instance.name,
                    namespace=instance.namespace,
                    ttl=decision.ttl,
                    expires_in_seconds=round(decision.delta.total_seconds()),
                )
                continue

            result.expired += 1
            logger.info(
                "resource_expired",
                resource=gvr.resource,
                kind=instance.kind,
                name=instance.name,
                namespace=instance.namespace,
                ttl=decision.ttl,
                expired_seconds_ago=round(decision.delta.total_seconds()),
            )
            outcome = await self.executor.delete(gvr, instance, decision)
            if outcome.deleted:
                result.deleted += 1
            else:
                result.delete_failures += 1
