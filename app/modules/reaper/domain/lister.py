from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

import structlog

from app.modules.reaper.domain.ports import ClusterClient
from app.modules.reaper.domain.types import GroupVersionResource, ResourceInstance, ResourcePage
from app.shared.core.config import Settings
from app.shared.core.exceptions import ClusterAPIError, ResourceListError
from app.shared.core.ops_metrics import LIST_ERRORS_TOTAL
from app.shared.core.retry import list_retrying

logger = structlog.get_logger()


class PaginatedLister:
    """
    Lazily walks every page of one resource-kind.

    Each call to ``iter_resources`` starts from a fresh continuation token.
    A failing page is retried with exponential backoff up to
    LIST_MAX_ATTEMPTS, then ResourceListError ends the sequence.
    """

    def __init__(self, client: ClusterClient, settings: Settings):
        self.client = client
        self.settings = settings

    async def _fetch_page(
        self, gvr: GroupVersionResource, continue_token: Optional[str]
    ) -> ResourcePage:
        async for attempt in list_retrying(
            self.settings, resource=gvr.resource, group_version=gvr.group_version
        ):
            with attempt:
                try:
                    return await self.client.list_resources(
                        gvr,
                        continue_token=continue_token,
                        limit=self.settings.LIST_PAGE_SIZE,
                        timeout_seconds=self.settings.LIST_TIMEOUT_SECONDS,
                    )
                except ClusterAPIError as e:
                    LIST_ERRORS_TOTAL.labels(resource=gvr.resource).inc()
                    logger.error(
                        "resource_list_failed",
                        resource=gvr.resource,
                        group_version=gvr.group_version,
                        error=str(e),
                    )
                    raise
        raise AssertionError("unreachable")  # pragma: no cover

    async def iter_resources(
        self, gvr: GroupVersionResource
    ) -> AsyncIterator[ResourceInstance]:
        continue_token: Optional[str] = None
        while True:
            try:
                page = await self._fetch_page(gvr, continue_token)
            except ClusterAPIError as e:
                raise ResourceListError(
                    f"giving up on {gvr} after {self.settings.LIST_MAX_ATTEMPTS} attempts",
                    details={"resource": gvr.resource, "error": str(e)},
                ) from e

            logger.debug(
                "resource_page_listed",
                resource=gvr.resource,
                group_version=gvr.group_version,
                count=len(page.items),
            )
            for item in page.items:
                yield item

            # Cool off a tiny bit to avoid hitting the API too often
            await asyncio.sleep(self.settings.THROTTLE_SECONDS)
            if not page.continue_token:
                return
            continue_token = page.continue_token
