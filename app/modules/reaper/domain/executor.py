from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from app.modules.reaper.domain.expiry import ExpiryDecision
from app.modules.reaper.domain.ports import ClusterClient, NotificationSink
from app.modules.reaper.domain.types import GroupVersionResource, ResourceInstance
from app.shared.core.config import Settings
from app.shared.core.exceptions import ClusterAPIError
from app.shared.core.ops_metrics import DELETIONS_TOTAL

logger = structlog.get_logger()

REASON_DELETED = "DeletedExpiredTTL"
REASON_FAILED = "FailedToDeleteExpiredTTL"


@dataclass(frozen=True)
class DeletionOutcome:
    deleted: bool
    already_gone: bool = False
    error: Optional[str] = None


class DeletionExecutor:
    """
    Deletes one expired instance per call and reports the outcome as an event.

    Failures are not retried within the pass unless FORCE_DELETE_ON_FAILURE
    is set, in which case one extra attempt with a zero grace period is made.
    """

    def __init__(
        self,
        client: ClusterClient,
        notifier: NotificationSink,
        settings: Settings,
    ):
        self.client = client
        self.notifier = notifier
        self.settings = settings

    async def _notify(
        self,
        instance: ResourceInstance,
        reason: str,
        message: str,
        warning: bool,
    ) -> None:
        try:
            await self.notifier.notify(
                instance.namespace,
                instance.kind,
                instance.name,
                reason,
                message,
                warning=warning,
            )
        except Exception as e:
            logger.warning(
                "event_notification_failed",
                kind=instance.kind,
                name=instance.name,
                reason=reason,
                error=str(e),
            )

    async def _attempt(
        self,
        gvr: GroupVersionResource,
        instance: ResourceInstance,
    ) -> None:
        try:
            await self.client.delete_resource(gvr, instance.namespace, instance.name)
        except ClusterAPIError as e:
            if e.is_not_found or not self.settings.FORCE_DELETE_ON_FAILURE:
                raise
            logger.warning(
                "resource_delete_failed_forcing",
                resource=gvr.resource,
                name=instance.name,
                namespace=instance.namespace,
                error=str(e),
            )
            await self.client.delete_resource(
                gvr, instance.namespace, instance.name, grace_period_seconds=0
            )

    async def delete(
        self,
        gvr: GroupVersionResource,
        instance: ResourceInstance,
        decision: ExpiryDecision,
    ) -> DeletionOutcome:
        try:
            await self._attempt(gvr, instance)
        except ClusterAPIError as e:
            if e.is_not_found:
                DELETIONS_TOTAL.labels(resource=gvr.resource, result="already_deleted").inc()
                logger.info(
                    "resource_already_deleted",
                    resource=gvr.resource,
                    name=instance.name,
                    namespace=instance.namespace,
                )
                outcome = DeletionOutcome(deleted=True, already_gone=True)
            else:
                DELETIONS_TOTAL.labels(resource=gvr.resource, result="failed").inc()
                logger.error(
                    "resource_delete_failed",
                    resource=gvr.resource,
                    name=instance.name,
                    namespace=instance.namespace,
                    error=str(e),
                )
                await self._notify(
                    instance,
                    REASON_FAILED,
                    f"Unable to delete expired resource: {e}",
                    warning=True,
                )
                outcome = DeletionOutcome(deleted=False, error=str(e))
        else:
            DELETIONS_TOTAL.labels(resource=gvr.resource, result="deleted").inc()
            logger.info(
                "resource_deleted",
                resource=gvr.resource,
                name=instance.name,
                namespace=instance.namespace,
                ttl=decision.ttl,
            )
            await self._notify(
                instance,
                REASON_DELETED,
                f"Deleted resource because {decision.ttl} or more has elapsed",
                warning=False,
            )
            outcome = DeletionOutcome(deleted=True)

        # Cool off a tiny bit to avoid hitting the API too often
        await asyncio.sleep(self.settings.THROTTLE_SECONDS)
        return outcome
