import asyncio
import os
from typing import Any, Dict, List, Optional

import aiohttp
import structlog
from kubernetes_asyncio import client, config as k8s_config
from kubernetes_asyncio.config import ConfigException

from app.modules.reaper.domain.types import (
    APIResourceDescriptor,
    APIResourceGroup,
    GroupVersionResource,
    ResourceInstance,
    ResourcePage,
)
from app.shared.core.config import Settings
from app.shared.core.exceptions import ClusterAPIError, ConfigurationError, DiscoveryError

logger = structlog.get_logger()

# Client-side slack on top of the server-side list timeout
REQUEST_TIMEOUT_MARGIN_SECONDS = 5
DISCOVERY_TIMEOUT_SECONDS = 30


def _home_dir() -> str:
    return os.environ.get("HOME") or os.environ.get("USERPROFILE") or ""


async def create_api_client(settings: Settings) -> client.ApiClient:
    """
    Build an ApiClient from a kubeconfig file (ENVIRONMENT=dev) or from the
    in-cluster service account otherwise.
    """
    configuration = client.Configuration()
    try:
        if settings.is_dev:
            kubeconfig = settings.KUBECONFIG
            if not kubeconfig:
                home = _home_dir()
                if not home:
                    raise ConfigurationError("home directory not found")
                kubeconfig = os.path.join(home, ".kube", "config")
            await k8s_config.load_kube_config(
                config_file=kubeconfig, client_configuration=configuration
            )
            logger.debug("kubeconfig_loaded", path=kubeconfig)
        else:
            k8s_config.load_incluster_config(client_configuration=configuration)
    except (ConfigException, OSError) as e:
        raise ConfigurationError(
            f"failed to load cluster credentials: {e}",
            details={"environment": settings.ENVIRONMENT},
        ) from e
    return client.ApiClient(configuration=configuration)


def resource_path(
    gvr: GroupVersionResource, namespace: str = "", name: str = ""
) -> str:
    base = f"/api/{gvr.version}" if not gvr.group else f"/apis/{gvr.group}/{gvr.version}"
    if namespace:
        base = f"{base}/namespaces/{namespace}"
    path = f"{base}/{gvr.resource}"
    if name:
        path = f"{path}/{name}"
    return path


class KubernetesClusterClient:
    """Schema-less access to any resource-kind through raw JSON requests."""

    def __init__(self, api_client: client.ApiClient):
        self.api_client = api_client

    async def _request(
        self,
        method: str,
        path: str,
        query: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        query_params = [(k, v) for k, v in (query or {}).items() if v not in (None, "")]
        try:
            response = await self.api_client.call_api(
                path,
                method,
                query_params=query_params,
                header_params={"Accept": "application/json"},
                auth_settings=["BearerToken"],
                _return_http_data_only=True,
                _preload_content=False,
                _request_timeout=timeout,
            )
        except client.ApiException as e:
            raise ClusterAPIError(
                f"{method} {path} failed: {e.status} {e.reason}", status=e.status
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ClusterAPIError(f"{method} {path} failed: {e!r}") from e

        try:
            if not 200 <= response.status <= 299:
                body = await response.text()
                raise ClusterAPIError(
                    f"{method} {path} failed: {response.status} {response.reason}",
                    status=response.status,
                    details={"body": body[:512]},
                )
            return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ClusterAPIError(f"{method} {path} returned an unreadable body: {e!r}") from e
        finally:
            response.release()

    async def _get_resource_list(self, path: str) -> List[APIResourceDescriptor]:
        payload = await self._request("GET", path, timeout=DISCOVERY_TIMEOUT_SECONDS)
        return [
            APIResourceDescriptor.from_discovery(item)
            for item in payload.get("resources") or []
        ]

    async def discover_resource_types(self) -> List[APIResourceGroup]:
        try:
            core = await self._request("GET", "/api", timeout=DISCOVERY_TIMEOUT_SECONDS)
            groups = await self._request("GET", "/apis", timeout=DISCOVERY_TIMEOUT_SECONDS)
        except ClusterAPIError as e:
            raise DiscoveryError(f"failed to discover API groups: {e.message}") from e

        # Each group's versions, preferred first
        served_groups: List[tuple[str, List[str]]] = [
            ("/api", [str(v) for v in core.get("versions") or []])
        ]
        for group in groups.get("groups") or []:
            versions = [
                str(v["groupVersion"])
                for v in group.get("versions") or []
                if v.get("groupVersion")
            ]
            preferred = (group.get("preferredVersion") or {}).get("groupVersion")
            if preferred:
                versions = [preferred] + [v for v in versions if v != preferred]
            served_groups.append(("/apis", versions))

        snapshot: List[APIResourceGroup] = []
        for prefix, group_versions in served_groups:
            seen: set[str] = set()
            for index, group_version in enumerate(group_versions):
                try:
                    resources = await self._get_resource_list(f"{prefix}/{group_version}")
                except ClusterAPIError as e:
                    # Typically an aggregated API whose backing service is down
                    logger.warning(
                        "group_version_discovery_failed",
                        group_version=group_version,
                        error=e.message,
                    )
                    continue
                # A kind is taken from the most preferred version serving it
                fresh = tuple(r for r in resources if r.name not in seen)
                seen.update(r.name for r in resources)
                if fresh or index == 0:
                    snapshot.append(
                        APIResourceGroup(group_version=group_version, resources=fresh)
                    )
        return snapshot

    async def list_resources(
        self,
        gvr: GroupVersionResource,
        *,
        continue_token: Optional[str] = None,
        limit: int = 500,
        timeout_seconds: int = 60,
    ) -> ResourcePage:
        payload = await self._request(
            "GET",
            resource_path(gvr),
            query={"limit": limit, "continue": continue_token, "timeoutSeconds": timeout_seconds},
            timeout=timeout_seconds + REQUEST_TIMEOUT_MARGIN_SECONDS,
        )
        # Items of a list response usually omit their kind, "PodList" -> "Pod"
        list_kind = str(payload.get("kind") or "")
        default_kind = list_kind[: -len("List")] if list_kind.endswith("List") else ""
        items = [
            ResourceInstance.from_object(item, default_kind=default_kind)
            for item in payload.get("items") or []
        ]
        metadata = payload.get("metadata") or {}
        return ResourcePage(items=items, continue_token=metadata.get("continue") or None)

    async def delete_resource(
        self,
        gvr: GroupVersionResource,
        namespace: str,
        name: str,
        *,
        grace_period_seconds: Optional[int] = None,
    ) -> None:
        await self._request(
            "DELETE",
            resource_path(gvr, namespace=namespace, name=name),
            query={"gracePeriodSeconds": grace_period_seconds},
        )
