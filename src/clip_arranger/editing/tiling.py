"""Lengthening by tiling and shortening by edge-trim."""

from __future__ import annotations

import logging
from typing import Callable

from clip_arranger.editing.holding import EdgeTrimmer, HoldingArea, session_clip
from clip_arranger.editing.markers import ClipMarkerWriter
from clip_arranger.editing.models import EditingSettings, EditOutcome, EditStatus
from clip_arranger.editing.prober import ContentBoundaryProber
from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.errors import UnsupportedForClipStateError
from clip_arranger.timeline.models import EPSILON, ClipRef, ClipState, ClipVariant

logger = logging.getLogger(__name__)

_LengthenHandler = Callable[[ClipState, float, HoldingArea], EditOutcome]


class TilingEngine:
    def __init__(
        self,
        client: TimelineServiceClient,
        settings: EditingSettings | None = None,
        writer: ClipMarkerWriter | None = None,
        prober: ContentBoundaryProber | None = None,
        trimmer: EdgeTrimmer | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or EditingSettings()
        self._writer = writer or ClipMarkerWriter(client)
        self._prober = prober or ContentBoundaryProber(client)
        self._trimmer = trimmer or EdgeTrimmer(client, self._settings)
        self._handlers: dict[ClipVariant, _LengthenHandler] = {
            ClipVariant.LOOPING: self._lengthen_looping,
            ClipVariant.UNLOOPED_MIDI: self._lengthen_unlooped_midi,
            ClipVariant.UNLOOPED_WARPED_AUDIO: self._lengthen_warped_audio,
            ClipVariant.UNLOOPED_UNWARPED_AUDIO: self._lengthen_unwarped_audio,
        }

    def lengthen(self, ref: ClipRef, target: float) -> EditOutcome:
        state = self._client.read_clip(ref)
        if target <= state.length + EPSILON:
            return EditOutcome(clips=[state.ref], achieved_duration=state.length, status=EditStatus.UNCHANGED)

        handler = self._handlers[state.variant]
        logger.debug("lengthening clip %s (%s) from %.3f to %.3f", ref.clip_id, state.variant.value, state.length, target)
        with HoldingArea(self._client, self._trimmer, ref.track_index, self._settings) as holding:
            return handler(state, target, holding)

    def shorten(self, ref: ClipRef, target: float) -> ClipRef:
        """Cut the clip down to `target` beats; a no-op when it is already that short."""
        state = self._client.read_clip(ref)
        if target >= state.length - EPSILON:
            return state.ref
        self._trimmer.ensure_supported(state.kind)
        cut = state.start_time + target
        self._trimmer.truncate(ref.track_index, cut, state.end_time - cut, state.kind)
        return self._client.resolve(state.ref)

    # -- variants --------------------------------------------------------

    def _lengthen_looping(self, state: ClipState, target: float, holding: HoldingArea) -> EditOutcome:
        loop_length = state.loop_length
        if loop_length <= EPSILON:
            raise UnsupportedForClipStateError(f"clip {state.ref.clip_id} has an empty loop region")
        offset = state.start_marker - state.loop_start
        visible = state.loop_end - state.start_marker
        reveal = target < loop_length
        shorten_first = not reveal and state.length > visible + EPSILON

        tile_length = visible if shorten_first else state.length
        if tile_length <= EPSILON:
            raise UnsupportedForClipStateError(f"clip {state.ref.clip_id} has no length to tile")
        remainder = (target - tile_length) % tile_length
        needs_trim = shorten_first or EPSILON < remainder < tile_length - EPSILON
        if not reveal and state.start_marker < state.loop_start - EPSILON:
            needs_trim = True
        if needs_trim:
            self._trimmer.ensure_supported(state.kind)

        if reveal:
            # Reveal loop phases the short clip does not show yet.
            self._tile_to_range(
                state,
                state.end_time,
                target - state.length,
                holding,
                tile_length=state.length,
                start_offset=offset + state.length,
                adjust_pre_roll=False,
            )
        elif shorten_first:
            self._trimmer.truncate(
                state.ref.track_index,
                state.start_time + visible,
                state.length - visible,
                state.kind,
            )
            source = self._client.read_clip(self._client.resolve(state.ref))
            self._tile_to_range(source, source.end_time, target - source.length, holding, tile_length=source.length)
        elif state.length < visible - EPSILON:
            self._tile_to_range(
                state,
                state.end_time,
                target - state.length,
                holding,
                tile_length=state.length,
                start_offset=offset + state.length,
            )
        else:
            self._tile_to_range(state, state.end_time, target - state.length, holding, tile_length=state.length)
        return self._collect(state, target)

    def _lengthen_unlooped_midi(self, state: ClipState, target: float, holding: HoldingArea) -> EditOutcome:
        target_end_marker = state.start_marker + target
        if target_end_marker > state.end_marker + EPSILON:
            self._writer.set_markers(state.ref, end_marker=target_end_marker)

        tile_size = state.length
        limit = state.end_time + (target - state.length)
        position = state.end_time
        content_offset = state.start_marker + state.length
        while position < limit - EPSILON:
            needed = min(tile_size, limit - position)
            if tile_size - needed > EPSILON:
                staged = holding.stage_copy(state)
                holding.trim_right(staged, needed)
                tile = holding.commit(staged, position)
            else:
                tile = self._client.duplicate_clip(self._client.resolve(state.ref), position)
            self._writer.set_markers(
                tile,
                loop_start=content_offset,
                loop_end=content_offset + needed,
                start_marker=content_offset,
                end_marker=content_offset + needed,
            )
            position += needed
            content_offset += needed
        return self._collect(state, target)

    def _lengthen_warped_audio(self, state: ClipState, target: float, _holding: HoldingArea) -> EditOutcome:
        extent = self._prober.probe(state)
        if extent <= state.length + EPSILON:
            message = (
                f"cannot lengthen clip {state.ref.clip_id}: no audio beyond the current end "
                f"({extent:.1f} beats available, {state.length:.1f} shown)"
            )
            logger.warning(message)
            return EditOutcome(
                clips=[state.ref],
                achieved_duration=state.length,
                status=EditStatus.UNCHANGED,
                warnings=[message],
            )

        warnings: list[str] = []
        effective = min(target, extent)
        if effective < target - EPSILON:
            message = (
                f"clip {state.ref.clip_id} capped at its audio boundary "
                f"({extent:.1f} beats available, {target:.1f} requested)"
            )
            logger.warning(message)
            warnings.append(message)

        content_start = state.start_marker + state.length
        content_end = content_start + (effective - state.length)
        track = state.ref.track_index
        # Warped end_time is fixed at creation, so the extra span is a new clip
        # built in a session slot with exact markers.
        with session_clip(self._client, track, state.file_path or "") as session:
            self._writer.set_markers(
                session,
                loop_start=content_start,
                loop_end=content_end,
                start_marker=content_start,
                end_marker=content_end,
            )
            tile = self._client.duplicate_clip(session, state.end_time, track)
            self._client.set_property(tile, "looping", False)

        target_end_marker = state.start_marker + effective
        if target_end_marker > state.end_marker + EPSILON:
            self._writer.set_markers(self._client.resolve(state.ref), end_marker=target_end_marker)

        outcome = self._collect(state, effective)
        outcome.status = EditStatus.CAPPED if warnings else EditStatus.FULL
        outcome.warnings.extend(warnings)
        return outcome

    def _lengthen_unwarped_audio(self, state: ClipState, target: float, _holding: HoldingArea) -> EditOutcome:
        seconds = state.loop_end - state.loop_start
        if seconds <= EPSILON:
            raise UnsupportedForClipStateError(f"clip {state.ref.clip_id} has an empty loop region")

        # Beats per second as the service currently renders this clip.
        ratio = state.length / seconds
        wanted_loop_end = state.loop_start + target / ratio
        if wanted_loop_end > state.loop_end:
            self._client.set_property(state.ref, "loop_end", wanted_loop_end)

        achieved = self._client.get_float(state.ref, "end_time") - state.start_time
        if achieved >= target - EPSILON:
            return EditOutcome(clips=[state.ref], achieved_duration=achieved, status=EditStatus.FULL)

        if achieved <= state.length + EPSILON:
            status = EditStatus.UNCHANGED
            message = f"cannot lengthen clip {state.ref.clip_id}: no audio beyond the current end"
        else:
            status = EditStatus.CAPPED
            message = (
                f"clip {state.ref.clip_id} capped at its audio boundary "
                f"({achieved:.1f} beats reached, {target:.1f} requested)"
            )
        logger.warning(message)
        return EditOutcome(clips=[state.ref], achieved_duration=achieved, status=status, warnings=[message])

    # -- tiling primitives -----------------------------------------------

    def _tile_to_range(
        self,
        source: ClipState,
        start_position: float,
        total_length: float,
        holding: HoldingArea,
        tile_length: float,
        start_offset: float = 0.0,
        adjust_pre_roll: bool = True,
    ) -> list[ClipRef]:
        if tile_length <= EPSILON:
            raise UnsupportedForClipStateError(f"clip {source.ref.clip_id} has no length to tile")

        # start_marker may not pass end_marker, so align it with the loop first.
        if abs(source.end_marker - source.loop_end) > EPSILON:
            self._writer.set_markers(source.ref, end_marker=source.loop_end)

        full_tiles = int((total_length + EPSILON) // tile_length)
        remainder = total_length - full_tiles * tile_length
        created: list[ClipRef] = []
        position = start_position
        content_offset = start_offset
        for _ in range(full_tiles):
            tile = self._client.duplicate_clip(self._client.resolve(source.ref), position)
            self._writer.set_markers(tile, start_marker=self._tile_start_marker(source, content_offset))
            if adjust_pre_roll:
                self._adjust_pre_roll(tile, source)
            created.append(tile)
            position += tile_length
            content_offset += tile_length

        if remainder > EPSILON:
            staged = holding.stage_copy(source)
            holding.trim_right(staged, remainder)
            tile = holding.commit(staged, position)
            self._writer.set_markers(tile, start_marker=self._tile_start_marker(source, content_offset))
            if adjust_pre_roll:
                self._adjust_pre_roll(tile, source)
            created.append(tile)
        return created

    def _tile_start_marker(self, source: ClipState, content_offset: float) -> float:
        marker = source.loop_start + content_offset % source.loop_length
        if marker >= source.loop_end - EPSILON:
            return source.loop_start
        return marker

    def _adjust_pre_roll(self, tile: ClipRef, source: ClipState) -> None:
        start_marker = self._client.get_float(tile, "start_marker")
        loop_start = self._client.get_float(tile, "loop_start")
        if start_marker >= loop_start - EPSILON:
            return
        pre_roll = loop_start - start_marker
        self._writer.set_markers(tile, start_marker=loop_start)
        end = self._client.get_float(tile, "end_time")
        self._trimmer.truncate(tile.track_index, end - pre_roll, pre_roll, source.kind)

    def _collect(self, state: ClipState, expected: float) -> EditOutcome:
        """Re-query the span the edit produced and measure it."""
        track = state.ref.track_index
        clips = self._client.clips_between(track, state.start_time, state.start_time + expected)
        end = max((self._client.get_float(ref, "end_time") for ref in clips), default=state.end_time)
        return EditOutcome(clips=clips, achieved_duration=end - state.start_time)
