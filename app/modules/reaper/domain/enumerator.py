from __future__ import annotations

from typing import Iterable, Iterator, Optional

import structlog

from app.modules.reaper.domain.types import (
    APIResourceDescriptor,
    APIResourceGroup,
    GroupVersionResource,
    split_group_version,
)

logger = structlog.get_logger()

# Without both verbs a kind can neither be inspected nor reaped
REQUIRED_VERBS = frozenset({"list", "delete"})


def enumerate_resources(
    snapshot: Iterable[APIResourceGroup],
    allowlist: Optional[Iterable[str]] = None,
) -> Iterator[tuple[GroupVersionResource, APIResourceDescriptor]]:
    """
    Yield every (GVR, descriptor) in the discovery snapshot that can be
    listed and deleted, in snapshot order.

    An empty or missing allowlist disables plural-name filtering.
    Groups with a malformed group/version are logged and skipped.
    """
    allowed = frozenset(allowlist or ())
    for group in snapshot:
        if not group.resources:
            continue
        try:
            api_group, version = split_group_version(group.group_version)
        except ValueError:
            logger.warning(
                "malformed_group_version_skipped",
                group_version=group.group_version,
            )
            continue

        for descriptor in group.resources:
            if descriptor.is_subresource:
                continue
            if allowed and descriptor.name not in allowed:
                continue
            if not REQUIRED_VERBS <= descriptor.verbs:
                continue
            yield (
                GroupVersionResource(
                    group=api_group, version=version, resource=descriptor.name
                ),
                descriptor,
            )
