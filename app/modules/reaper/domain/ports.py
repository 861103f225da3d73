"""
Boundaries between the reconciliation engine and the outside world.

The engine only talks to the cluster, the event sink and the clock through
these protocols, so it can run against an in-memory cluster in tests.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from app.modules.reaper.domain.types import (
    APIResourceGroup,
    GroupVersionResource,
    ResourcePage,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClusterClient(Protocol):
    async def discover_resource_types(self) -> list[APIResourceGroup]:
        """Raises DiscoveryError when the API surface cannot be read."""
        ...

    async def list_resources(
        self,
        gvr: GroupVersionResource,
        *,
        continue_token: Optional[str] = None,
        limit: int = 500,
        timeout_seconds: int = 60,
    ) -> ResourcePage:
        """Raises ClusterAPIError on any failed request."""
        ...

    async def delete_resource(
        self,
        gvr: GroupVersionResource,
        namespace: str,
        name: str,
        *,
        grace_period_seconds: Optional[int] = None,
    ) -> None:
        """Raises ClusterAPIError on any failed request."""
        ...


class NotificationSink(Protocol):
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
        ...
