"""Arrangement edit dispatcher: lengthen, shorten, split, slice and move clips."""

from __future__ import annotations

import logging
import math

from clip_arranger.editing.holding import EdgeTrimmer, HoldingArea, HoldingClip, discard_quietly
from clip_arranger.editing.locks import TrackLockRegistry
from clip_arranger.editing.models import (
    MAX_SLICES,
    MAX_SPLIT_POINTS,
    EditingSettings,
    EditResult,
    EditStatus,
)
from clip_arranger.editing.splitting import SplittingEngine
from clip_arranger.editing.tiling import TilingEngine
from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.errors import InvalidReferenceError, TimelineError
from clip_arranger.timeline.models import EPSILON, ClipRef, ClipState

logger = logging.getLogger(__name__)


class ArrangementEditService:
    def __init__(
        self,
        client: TimelineServiceClient | None = None,
        settings: EditingSettings | None = None,
        locks: TrackLockRegistry | None = None,
    ) -> None:
        self._client = client or TimelineServiceClient.from_env()
        self._settings = settings or EditingSettings.from_env()
        self._trimmer = EdgeTrimmer(self._client, self._settings)
        self._tiling = TilingEngine(self._client, self._settings, trimmer=self._trimmer)
        self._splitting = SplittingEngine(self._client, self._settings, trimmer=self._trimmer)
        self._locks = locks or TrackLockRegistry()

    def lengthen_clip(self, clip_ref: ClipRef, target_duration: float) -> EditResult:
        _require_positive(target_duration, "target_duration")
        with self._locks.lock_for(clip_ref.track_index):
            state = self._prepare(clip_ref)
            if state is None:
                return self._ignored(clip_ref, "lengthen")
            if target_duration < state.length - EPSILON:
                return self._unchanged(
                    state,
                    f"clip {state.ref.clip_id} is already longer than {target_duration:g} beats; use shorten_clip",
                )
            result = EditResult.from_outcome(self._tiling.lengthen(state.ref, target_duration))
        return self._finish("lengthen", clip_ref, result)

    def shorten_clip(self, clip_ref: ClipRef, target_duration: float) -> EditResult:
        _require_positive(target_duration, "target_duration")
        with self._locks.lock_for(clip_ref.track_index):
            state = self._prepare(clip_ref)
            if state is None:
                return self._ignored(clip_ref, "shorten")
            if target_duration > state.length + EPSILON:
                return self._unchanged(
                    state,
                    f"clip {state.ref.clip_id} is already shorter than {target_duration:g} beats; use lengthen_clip",
                )
            result = self._shorten(state, target_duration)
        return self._finish("shorten", clip_ref, result)

    def split_clip(self, clip_ref: ClipRef, cut_points: list[float]) -> EditResult:
        if not cut_points:
            raise ValueError("cut_points must not be empty")
        if len(cut_points) > MAX_SPLIT_POINTS:
            raise ValueError(f"at most {MAX_SPLIT_POINTS} cut points are allowed, got {len(cut_points)}")
        for point in cut_points:
            _require_number(point, "cut point")

        with self._locks.lock_for(clip_ref.track_index):
            state = self._prepare(clip_ref)
            if state is None:
                return self._ignored(clip_ref, "split")
            points, warnings = _normalize_cut_points(cut_points, state.length)
            if not points:
                warnings.append(f"no cut point falls inside clip {state.ref.clip_id}; split ignored")
                return self._unchanged(state, *warnings)
            result = self._split(state, points, warnings)
        return self._finish("split", clip_ref, result)

    def slice_clip(self, clip_ref: ClipRef, slice_length: float) -> EditResult:
        """Split a clip into equal slices; the last slice takes whatever is left."""
        _require_positive(slice_length, "slice_length")
        with self._locks.lock_for(clip_ref.track_index):
            state = self._prepare(clip_ref)
            if state is None:
                return self._ignored(clip_ref, "slice")
            count = math.ceil(state.length / slice_length - EPSILON)
            if count > MAX_SLICES:
                raise ValueError(f"slicing would create {count} clips; at most {MAX_SLICES} are allowed")
            points, warnings = _normalize_cut_points(
                [index * slice_length for index in range(1, count)],
                state.length,
            )
            if not points:
                return self._unchanged(
                    state,
                    f"slice length {slice_length:g} covers all of clip {state.ref.clip_id}; slice ignored",
                )
            result = self._split(state, points, warnings)
        return self._finish("slice", clip_ref, result)

    def move_clip(self, clip_ref: ClipRef, new_start: float) -> EditResult:
        _require_non_negative(new_start, "new_start")
        with self._locks.lock_for(clip_ref.track_index):
            state = self._prepare(clip_ref)
            if state is None:
                return self._ignored(clip_ref, "move")
            result = self._move(state, new_start)
        return self._finish("move", clip_ref, result)

    def move_clips(self, moves: list[tuple[ClipRef, float]]) -> EditResult:
        """Move several clips in the submitted order.

        Callers should submit moves in descending start-time order so an early
        destination never lands on a clip that has not moved yet.
        """
        if not moves:
            raise ValueError("moves must not be empty")
        for _, new_start in moves:
            _require_non_negative(new_start, "new_start")

        warnings: list[str] = []
        starts = [self._recorded_start(ref) for ref, _ in moves]
        if any(later > earlier + EPSILON for earlier, later in zip(starts, starts[1:])):
            message = "batch moves are not in descending start-time order; running them as submitted"
            logger.warning(message)
            warnings.append(message)

        # Earlier moves may reissue later clips' ids; the recorded start re-resolves them.
        results = [self.move_clip(ref.at(start), new_start) for (ref, new_start), start in zip(moves, starts)]
        return EditResult(
            result_clips=[clip for result in results for clip in result.result_clips],
            achieved_duration=sum(result.achieved_duration for result in results),
            status=_combine_status([result.status for result in results]),
            warnings=warnings + [warning for result in results for warning in result.warnings],
        )

    def update_clip_placement(
        self,
        clip_ref: ClipRef,
        new_start: float | None = None,
        target_duration: float | None = None,
    ) -> EditResult:
        """Move and/or resize a clip; a move always happens before the resize."""
        if new_start is None and target_duration is None:
            raise ValueError("new_start or target_duration is required")
        if new_start is not None:
            _require_non_negative(new_start, "new_start")
        if target_duration is not None:
            _require_positive(target_duration, "target_duration")

        with self._locks.lock_for(clip_ref.track_index):
            state = self._prepare(clip_ref)
            if state is None:
                return self._ignored(clip_ref, "placement update")
            steps: list[EditResult] = []
            if new_start is not None:
                moved = self._move(state, new_start)
                steps.append(moved)
                # Lengthening tiles from wherever the clip sits now.
                state = self._client.read_clip(moved.result_clips[0])
            if target_duration is not None:
                steps.append(self._resize(state, target_duration))
            final = steps[-1]
            result = EditResult(
                result_clips=list(final.result_clips),
                achieved_duration=final.achieved_duration,
                status=_combine_status([step.status for step in steps]),
                warnings=[warning for step in steps for warning in step.warnings],
            )
        return self._finish("placement update", clip_ref, result)

    # -- operation bodies (caller holds the track lock) -------------------

    def _resize(self, state: ClipState, target: float) -> EditResult:
        if target > state.length + EPSILON:
            return EditResult.from_outcome(self._tiling.lengthen(state.ref, target))
        if target < state.length - EPSILON:
            return self._shorten(state, target)
        return EditResult(result_clips=[state.ref], achieved_duration=state.length, status=EditStatus.UNCHANGED)

    def _shorten(self, state: ClipState, target: float) -> EditResult:
        if target >= state.length - EPSILON:
            return EditResult(result_clips=[state.ref], achieved_duration=state.length, status=EditStatus.UNCHANGED)
        ref = self._tiling.shorten(state.ref, target)
        achieved = self._client.get_float(ref, "end_time") - state.start_time
        return EditResult(result_clips=[ref], achieved_duration=achieved, status=EditStatus.FULL)

    def _split(self, state: ClipState, points: list[float], warnings: list[str]) -> EditResult:
        segments = self._splitting.split(state.ref, points)
        return EditResult(
            result_clips=segments,
            achieved_duration=state.length,
            status=EditStatus.FULL,
            warnings=warnings,
        )

    def _move(self, state: ClipState, new_start: float) -> EditResult:
        if abs(new_start - state.start_time) <= EPSILON:
            return EditResult(result_clips=[state.ref], achieved_duration=state.length, status=EditStatus.UNCHANGED)

        new_end = new_start + state.length
        overlaps_self = new_start < state.end_time - EPSILON and new_end > state.start_time + EPSILON
        if overlaps_self:
            # Duplicating onto the clip's own range would truncate the source mid-copy.
            with HoldingArea(self._client, self._trimmer, state.ref.track_index, self._settings) as holding:
                staged = holding.stage_copy(state)
                self._client.delete_clip(self._client.resolve(state.ref))
                try:
                    moved = holding.commit(staged, new_start)
                except TimelineError:
                    # The staged copy is the only copy left; put it back where it was.
                    self._restore(holding, staged, state, new_start)
                    raise
        else:
            moved = self._client.duplicate_clip(state.ref, new_start)
            try:
                self._client.delete_clip(self._client.resolve(state.ref))
            except Exception:
                discard_quietly(self._client, moved)
                raise
            moved = self._client.resolve(moved)
        return EditResult(result_clips=[moved], achieved_duration=state.length, status=EditStatus.FULL)

    def _restore(self, holding: HoldingArea, staged: HoldingClip, state: ClipState, new_start: float) -> None:
        track = state.ref.track_index
        try:
            if self._client.clips_between(track, new_start, new_start + 2 * EPSILON):
                # The copy landed; the holding area still deletes the staged clip.
                return
            holding.commit(staged, state.start_time)
        except TimelineError as restore_error:
            logger.error(
                "failed to restore clip %s to %.3f on track %s after a failed move: %s",
                state.ref.clip_id,
                state.start_time,
                track,
                restore_error,
            )

    # -- helpers ---------------------------------------------------------

    def _prepare(self, clip_ref: ClipRef) -> ClipState | None:
        """Re-resolve a caller's ref and read its state; None for session clips."""
        try:
            state = self._client.read_clip(clip_ref)
        except InvalidReferenceError:
            # Stale id; re-resolve by the recorded position.
            return self._client.read_clip(self._client.resolve(clip_ref))
        if not state.is_arrangement:
            return None
        return state

    def _recorded_start(self, clip_ref: ClipRef) -> float:
        if clip_ref.start_time is not None:
            return clip_ref.start_time
        return self._client.get_float(clip_ref, "start_time")

    def _ignored(self, clip_ref: ClipRef, operation: str) -> EditResult:
        message = f"clip {clip_ref.clip_id} is not an arrangement clip; {operation} ignored"
        logger.warning(message)
        return EditResult(result_clips=[clip_ref], achieved_duration=0.0, status=EditStatus.UNCHANGED, warnings=[message])

    def _unchanged(self, state: ClipState, *warnings: str) -> EditResult:
        for message in warnings:
            logger.warning(message)
        return EditResult(
            result_clips=[state.ref],
            achieved_duration=state.length,
            status=EditStatus.UNCHANGED,
            warnings=list(warnings),
        )

    def _finish(self, operation: str, clip_ref: ClipRef, result: EditResult) -> EditResult:
        logger.info(
            "%s clip %s on track %s: %s, %d clip(s), %.3f beats",
            operation,
            clip_ref.clip_id,
            clip_ref.track_index,
            result.status.value,
            len(result.result_clips),
            result.achieved_duration,
        )
        return result


def _normalize_cut_points(cut_points: list[float], length: float) -> tuple[list[float], list[str]]:
    warnings: list[str] = []
    points: list[float] = []
    for point in sorted(float(item) for item in cut_points):
        if point <= EPSILON or point >= length - EPSILON:
            message = f"cut point {point:g} is outside the clip (length {length:g}); ignored"
            logger.warning(message)
            warnings.append(message)
            continue
        if points and point - points[-1] <= EPSILON:
            continue
        points.append(point)
    return points, warnings


def _combine_status(statuses: list[EditStatus]) -> EditStatus:
    if EditStatus.CAPPED in statuses:
        return EditStatus.CAPPED
    if EditStatus.FULL in statuses:
        return EditStatus.FULL
    return EditStatus.UNCHANGED


def _require_number(value: object, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    return float(value)


def _require_positive(value: object, name: str) -> float:
    number = _require_number(value, name)
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {number:g}")
    return number


def _require_non_negative(value: object, name: str) -> float:
    number = _require_number(value, name)
    if number < 0:
        raise ValueError(f"{name} must not be negative, got {number:g}")
    return number
