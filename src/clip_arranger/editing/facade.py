"""Public API facade for arrangement clip editing."""

from __future__ import annotations

from clip_arranger.editing.models import EditResult
from clip_arranger.editing.service import ArrangementEditService
from clip_arranger.timeline.models import ClipRef


class ArrangementEditing:
    def __init__(self, service: ArrangementEditService | None = None) -> None:
        self._service = service or ArrangementEditService()

    def lengthen_clip(self, clip_ref: ClipRef, target_duration: float) -> EditResult:
        return self._service.lengthen_clip(clip_ref=clip_ref, target_duration=target_duration)

    def shorten_clip(self, clip_ref: ClipRef, target_duration: float) -> EditResult:
        return self._service.shorten_clip(clip_ref=clip_ref, target_duration=target_duration)

    def split_clip(self, clip_ref: ClipRef, cut_points: list[float]) -> EditResult:
        return self._service.split_clip(clip_ref=clip_ref, cut_points=cut_points)

    def slice_clip(self, clip_ref: ClipRef, slice_length: float) -> EditResult:
        return self._service.slice_clip(clip_ref=clip_ref, slice_length=slice_length)

    def move_clip(self, clip_ref: ClipRef, new_start: float) -> EditResult:
        return self._service.move_clip(clip_ref=clip_ref, new_start=new_start)

    def move_clips(self, moves: list[tuple[ClipRef, float]]) -> EditResult:
        return self._service.move_clips(moves=moves)

    def update_clip_placement(
        self,
        clip_ref: ClipRef,
        new_start: float | None = None,
        target_duration: float | None = None,
    ) -> EditResult:
        return self._service.update_clip_placement(
            clip_ref=clip_ref,
            new_start=new_start,
            target_duration=target_duration,
        )
