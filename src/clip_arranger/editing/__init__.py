"""Arrangement editing engine public exports."""

from clip_arranger.editing.facade import ArrangementEditing
from clip_arranger.editing.holding import EdgeTrimmer, HoldingArea, HoldingClip
from clip_arranger.editing.locks import TrackLockRegistry
from clip_arranger.editing.markers import ClipMarkerWriter
from clip_arranger.editing.models import (
    MAX_SLICES,
    MAX_SPLIT_POINTS,
    EditingSettings,
    EditOutcome,
    EditResult,
    EditStatus,
)
from clip_arranger.editing.prober import ContentBoundaryProber
from clip_arranger.editing.service import ArrangementEditService
from clip_arranger.editing.splitting import SplittingEngine
from clip_arranger.editing.tiling import TilingEngine

__all__ = [
    "MAX_SLICES",
    "MAX_SPLIT_POINTS",
    "ArrangementEditService",
    "ArrangementEditing",
    "ClipMarkerWriter",
    "ContentBoundaryProber",
    "EdgeTrimmer",
    "EditOutcome",
    "EditResult",
    "EditStatus",
    "EditingSettings",
    "HoldingArea",
    "HoldingClip",
    "SplittingEngine",
    "TilingEngine",
    "TrackLockRegistry",
]
