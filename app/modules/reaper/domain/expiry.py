"""
Expiry evaluation for TTL-annotated resources.

Pure logic: given one instance and the current time, decide whether its
lifespan has elapsed. The anchor is the refreshed-at annotation when it
holds a valid RFC3339 timestamp, otherwise the creation timestamp.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

import structlog

from app.modules.reaper.domain.duration import parse_duration
from app.modules.reaper.domain.ports import Clock, utc_now
from app.modules.reaper.domain.types import ResourceInstance, parse_timestamp
from app.shared.core.exceptions import DurationParseError
from app.shared.core.ops_metrics import MALFORMED_ANNOTATIONS_TOTAL

logger = structlog.get_logger()


class ExpiryStatus(str, Enum):
    NOT_ANNOTATED = "not_annotated"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    NOT_EXPIRED = "not_expired"


@dataclass(frozen=True)
class ExpiryDecision:
    status: ExpiryStatus
    ttl: Optional[str] = None
    # Overshoot when expired, time left otherwise
    delta: Optional[timedelta] = None
    anchor: Optional[datetime] = None
    reason: Optional[str] = None

    @property
    def is_expired(self) -> bool:
        return self.status is ExpiryStatus.EXPIRED


class ExpiryEvaluator:
    def __init__(
        self,
        ttl_annotation: str,
        refreshed_at_annotation: str,
        clock: Clock = utc_now,
    ):
        self.ttl_annotation = ttl_annotation
        self.refreshed_at_annotation = refreshed_at_annotation
        self.clock = clock

    def anchor_for(self, instance: ResourceInstance) -> Optional[datetime]:
        refreshed_at = instance.annotations.get(self.refreshed_at_annotation)
        if refreshed_at is not None:
            parsed = parse_timestamp(refreshed_at)
            if parsed is not None:
                return parsed
            MALFORMED_ANNOTATIONS_TOTAL.labels(annotation="refreshed_at").inc()
            logger.warning(
                "refreshed_at_unparseable_using_creation_timestamp",
                kind=instance.kind,
                name=instance.name,
                namespace=instance.namespace,
                refreshed_at=refreshed_at,
            )
        return instance.creation_timestamp

    def evaluate(self, instance: ResourceInstance) -> ExpiryDecision:
        ttl = instance.annotations.get(self.ttl_annotation)
        if ttl is None:
            return ExpiryDecision(status=ExpiryStatus.NOT_ANNOTATED)

        try:
            lifespan = parse_duration(ttl)
        except DurationParseError as e:
            MALFORMED_ANNOTATIONS_TOTAL.labels(annotation="ttl").inc()
            return ExpiryDecision(status=ExpiryStatus.MALFORMED, ttl=ttl, reason=str(e))

        anchor = self.anchor_for(instance)
        if anchor is None:
            MALFORMED_ANNOTATIONS_TOTAL.labels(annotation="creation_timestamp").inc()
            return ExpiryDecision(
                status=ExpiryStatus.MALFORMED,
                ttl=ttl,
                reason="missing or invalid creationTimestamp",
            )

        now = self.clock()
        try:
            deadline = anchor + lifespan
        except OverflowError:
            # Deadline lies beyond the representable calendar in either direction
            expired = lifespan < timedelta(0)
            return ExpiryDecision(
                status=ExpiryStatus.EXPIRED if expired else ExpiryStatus.NOT_EXPIRED,
                ttl=ttl,
                delta=timedelta.max,
                anchor=anchor,
            )
        if now > deadline:
            return ExpiryDecision(
                status=ExpiryStatus.EXPIRED, ttl=ttl, delta=now - deadline, anchor=anchor
            )
        return ExpiryDecision(
            status=ExpiryStatus.NOT_EXPIRED, ttl=ttl, delta=deadline - now, anchor=anchor
        )
