from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from dateutil.parser import isoparse

CORE_GROUP = ""

_RFC3339 = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})"
)


def split_group_version(group_version: str) -> tuple[str, str]:
    """
    Split a discovery group/version string into (group, version).

    "v1" is the core group, "apps/v1" is a named group. Any other shape
    raises ValueError.
    """
    parts = group_version.split("/")
    if len(parts) == 1 and parts[0]:
        return CORE_GROUP, parts[0]
    if len(parts) == 2 and all(parts):
        return parts[0], parts[1]
    raise ValueError(f"malformed group/version '{group_version}'")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC3339 timestamp, returning None when absent or invalid."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else None
    if not isinstance(value, str) or not _RFC3339.fullmatch(value):
        return None
    try:
        parsed = isoparse(value)
    except (ValueError, OverflowError):
        return None
    # RFC3339 always carries an offset, naive values are not trusted
    if parsed.tzinfo is None:
        return None
    return parsed


@dataclass(frozen=True)
class GroupVersionResource:
    group: str
    version: str
    resource: str

    @property
    def group_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def __str__(self) -> str:
        return f"{self.resource}.{self.group_version}"


@dataclass(frozen=True)
class APIResourceDescriptor:
    """One resource-kind as advertised by the discovery endpoint."""

    name: str
    kind: str
    namespaced: bool = False
    verbs: frozenset[str] = frozenset()

    @property
    def is_subresource(self) -> bool:
        return "/" in self.name

    @classmethod
    def from_discovery(cls, payload: Mapping[str, Any]) -> "APIResourceDescriptor":
        return cls(
            name=str(payload.get("name", "")),
            kind=str(payload.get("kind", "")),
            namespaced=bool(payload.get("namespaced", False)),
            verbs=frozenset(str(v) for v in payload.get("verbs") or ()),
        )


@dataclass(frozen=True)
class APIResourceGroup:
    """A group/version and the resource-kinds it serves."""

    group_version: str
    resources: tuple[APIResourceDescriptor, ...] = ()


@dataclass(frozen=True)
class ResourceInstance:
    """Schema-less view of one cluster object, read-only for the reaper."""

    name: str
    kind: str
    namespace: str = ""
    creation_timestamp: Optional[datetime] = None
    annotations: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_object(
        cls, obj: Mapping[str, Any], default_kind: str = ""
    ) -> "ResourceInstance":
        metadata = obj.get("metadata") or {}
        annotations = metadata.get("annotations") or {}
        return cls(
            name=str(metadata.get("name", "")),
            kind=str(obj.get("kind") or default_kind),
            namespace=str(metadata.get("namespace") or ""),
            creation_timestamp=parse_timestamp(metadata.get("creationTimestamp")),
            annotations={str(k): str(v) for k, v in annotations.items()},
        )


@dataclass(frozen=True)
class ResourcePage:
    items: list[ResourceInstance]
    continue_token: Optional[str] = None
