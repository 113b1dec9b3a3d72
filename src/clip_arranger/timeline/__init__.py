"""Timeline Service client, data model and in-memory simulator."""

from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.errors import (
    InvalidReferenceError,
    ServiceUnavailableError,
    TimelineError,
    TimelineServiceError,
    UnsupportedForClipStateError,
)
from clip_arranger.timeline.models import EPSILON, ClipKind, ClipRef, ClipState, ClipVariant, normalize_clip_id
from clip_arranger.timeline.simulator import SimulatedTimelineService

__all__ = [
    "EPSILON",
    "ClipKind",
    "ClipRef",
    "ClipState",
    "ClipVariant",
    "InvalidReferenceError",
    "ServiceUnavailableError",
    "SimulatedTimelineService",
    "TimelineError",
    "TimelineServiceClient",
    "TimelineServiceError",
    "UnsupportedForClipStateError",
    "normalize_clip_id",
]
