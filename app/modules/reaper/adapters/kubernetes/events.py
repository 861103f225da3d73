import asyncio
import time
from datetime import datetime, timezone

import aiohttp
import structlog
from kubernetes_asyncio import client

logger = structlog.get_logger()

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"
# Events for cluster-scoped objects have to live in some namespace
CLUSTER_SCOPED_EVENT_NAMESPACE = "default"


class KubernetesEventRecorder:
    """Records cluster-native Events against the objects the reaper acts on."""

    def __init__(self, api_client: client.ApiClient, component: str):
        self.core_v1 = client.CoreV1Api(api_client)
        self.component = component

    def build_event(
        self,
        namespace: str,
        kind: str,
        name: str,
        reason: str,
        message: str,
        warning: bool,
    ) -> client.CoreV1Event:
        now = datetime.now(timezone.utc)
        return client.CoreV1Event(
            metadata=client.V1ObjectMeta(
                name=f"{name}.{time.time_ns():x}",
                namespace=namespace or CLUSTER_SCOPED_EVENT_NAMESPACE,
            ),
            involved_object=client.V1ObjectReference(
                kind=kind, name=name, namespace=namespace or None
            ),
            reason=reason,
            message=message,
            type=EVENT_TYPE_WARNING if warning else EVENT_TYPE_NORMAL,
            source=client.V1EventSource(component=self.component),
            reporting_component=self.component,
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )

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
        event = self.build_event(namespace, kind, name, reason, message, warning)
        try:
            await self.core_v1.create_namespaced_event(
                event.metadata.namespace, event
            )
        except (client.ApiException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(
                "event_create_failed",
                kind=kind,
                name=name,
                namespace=namespace,
                reason=reason,
                error=str(e),
            )
