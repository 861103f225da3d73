import asyncio
from datetime import datetime, timedelta
from typing import Optional

from app.modules.reaper.domain.types import (
    APIResourceDescriptor,
    APIResourceGroup,
    GroupVersionResource,
    ResourceInstance,
    ResourcePage,
)
from app.shared.core.config import get_settings
from app.shared.core.exceptions import ClusterAPIError, DiscoveryError

POD_VERBS = frozenset({"create", "delete", "get", "list", "patch", "update", "watch"})
POD_GVR = GroupVersionResource(group="", version="v1", resource="pods")
PODS_GROUP = APIResourceGroup(
    group_version="v1",
    resources=(APIResourceDescriptor(name="pods", kind="Pod", namespaced=True, verbs=POD_VERBS),),
)


def make_instance(
    name: str,
    created: Optional[datetime],
    annotations: Optional[dict[str, str]] = None,
    kind: str = "Pod",
    namespace: str = "default",
) -> ResourceInstance:
    return ResourceInstance(
        name=name,
        kind=kind,
        namespace=namespace,
        creation_timestamp=created,
        annotations=annotations or {},
    )


def make_pod(
    name: str,
    now: datetime,
    age: timedelta,
    ttl: Optional[str] = None,
    refreshed_at: Optional[str] = None,
) -> ResourceInstance:
    """Pod created ``age`` before ``now`` carrying the configured annotations."""
    settings = get_settings()
    annotations: dict[str, str] = {}
    if ttl is not None:
        annotations[settings.TTL_ANNOTATION] = ttl
    if refreshed_at is not None:
        annotations[settings.REFRESHED_AT_ANNOTATION] = refreshed_at
    return make_instance(name, now - age, annotations)


class FakeCluster:
    """In-memory ClusterClient with offset-based continuation tokens."""

    def __init__(self, snapshot: Optional[list[APIResourceGroup]] = None):
        self.snapshot = snapshot if snapshot is not None else [PODS_GROUP]
        self.objects: dict[GroupVersionResource, list[ResourceInstance]] = {}
        self.discovery_error: Optional[Exception] = None
        self.list_failures: dict[str, int] = {}
        self.list_delays: dict[str, float] = {}
        self.delete_failures: dict[str, list[ClusterAPIError]] = {}
        self.list_calls: list[tuple[GroupVersionResource, Optional[str], int]] = []
        self.delete_calls: list[tuple[GroupVersionResource, str, str, Optional[int]]] = []
        self.cancelled_lists: list[str] = []
        self._listings: dict[GroupVersionResource, list[ResourceInstance]] = {}

    def add(self, gvr: GroupVersionResource, *instances: ResourceInstance) -> None:
        self.objects.setdefault(gvr, []).extend(instances)

    def names(self, gvr: GroupVersionResource = POD_GVR) -> list[str]:
        return [item.name for item in self.objects.get(gvr, [])]

    async def discover_resource_types(self) -> list[APIResourceGroup]:
        if self.discovery_error is not None:
            raise DiscoveryError(str(self.discovery_error))
        return self.snapshot

    async def list_resources(
        self,
        gvr: GroupVersionResource,
        *,
        continue_token: Optional[str] = None,
        limit: int = 500,
        timeout_seconds: int = 60,
    ) -> ResourcePage:
        self.list_calls.append((gvr, continue_token, limit))
        delay = self.list_delays.get(gvr.resource)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled_lists.append(gvr.resource)
                raise
        if self.list_failures.get(gvr.resource, 0) > 0:
            self.list_failures[gvr.resource] -= 1
            raise ClusterAPIError("the server is currently unable to handle the request", status=503)

        if continue_token is None:
            self._listings[gvr] = list(self.objects.get(gvr, []))
        items = self._listings[gvr]
        start = int(continue_token or 0)
        end = start + limit
        return ResourcePage(
            items=items[start:end],
            continue_token=str(end) if end < len(items) else None,
        )

    async def delete_resource(
        self,
        gvr: GroupVersionResource,
        namespace: str,
        name: str,
        *,
        grace_period_seconds: Optional[int] = None,
    ) -> None:
        self.delete_calls.append((gvr, namespace, name, grace_period_seconds))
        failures = self.delete_failures.get(name)
        if failures:
            raise failures.pop(0)
        items = self.objects.get(gvr, [])
        for index, item in enumerate(items):
            if item.name == name and item.namespace == namespace:
                del items[index]
                return
        raise ClusterAPIError(f'{gvr.resource} "{name}" not found', status=404)


class RecordingNotifier:
    def __init__(self, error: Optional[Exception] = None):
        self.events: list[dict] = []
        self.error = error

    async def notify(
        self,
        namespace: str,
        kind: str,
        name: str,
        reason: str,
        message: str,
        *,
        warning: bool,
    ) -> None:
        if self.error is not None:
            raise self.error
        self.events.append(
            {
                "namespace": namespace,
                "kind": kind,
                "name": name,
                "reason": reason,
                "message": message,
                "warning": warning,
            }
        )
