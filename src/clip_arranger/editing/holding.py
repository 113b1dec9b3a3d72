"""Holding-region staging and edge-trim transient clips."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from types import TracebackType

from clip_arranger.editing.models import EditingSettings
from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.errors import TimelineError, UnsupportedForClipStateError
from clip_arranger.timeline.models import EPSILON, ClipKind, ClipRef, ClipState

logger = logging.getLogger(__name__)

HOLDING_SLOT_PADDING = 4.0


class EdgeTrimmer:
    """Trims clips by briefly covering a region with a transient clip.

    A clip created over `[position, position + length)` truncates whatever it
    overlaps at that edge; the transient is deleted right after.
    """

    def __init__(self, client: TimelineServiceClient, settings: EditingSettings) -> None:
        self._client = client
        self._settings = settings

    def ensure_supported(self, kind: ClipKind) -> None:
        if kind == ClipKind.AUDIO and not self._settings.silence_wav_path:
            raise UnsupportedForClipStateError(
                "audio edge-trims need CLIP_ARRANGER_SILENCE_WAV to point at a silent audio file"
            )

    def truncate(self, track: int, position: float, length: float, kind: ClipKind) -> None:
        if length <= EPSILON:
            return
        if kind == ClipKind.MIDI:
            transient = self._client.create_midi_clip(track, position, length)
            self._client.delete_clip(transient)
            return
        self._truncate_audio(track, position, length)

    def _truncate_audio(self, track: int, position: float, length: float) -> None:
        self.ensure_supported(ClipKind.AUDIO)

        # Arrangement audio cannot be created with a duration; a session clip can.
        with session_clip(self._client, track, self._settings.silence_wav_path) as session:
            self._client.set_property(session, "warping", True)
            self._client.set_property(session, "looping", True)
            self._client.set_property(session, "loop_start", 0.0)
            self._client.set_property(session, "loop_end", length)
            transient = self._client.duplicate_clip(session, position, track)
            self._client.delete_clip(transient)


@contextmanager
def session_clip(client: TimelineServiceClient, track: int, file_path: str) -> Iterator[ClipRef]:
    """Create a session-slot audio clip for the duration of the block."""
    slot = client.find_free_slot(track)
    ref = client.create_session_audio_clip(track, slot, file_path)
    try:
        yield ref
    except Exception:
        try:
            client.delete_slot_clip(track, slot)
        except TimelineError as cleanup_error:
            logger.error("failed to delete session clip in slot %s on track %s: %s", slot, track, cleanup_error)
        raise
    client.delete_slot_clip(track, slot)


@dataclass(slots=True)
class HoldingClip:
    ref: ClipRef
    kind: ClipKind
    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start


class HoldingArea:
    """Operation-scoped scratch region placed past all real content on a track.

    Use as a context manager: clips still staged when the block exits are deleted,
    and any exception from the block propagates unchanged. Staged clips are
    re-resolved by position before every use, since each mutation on the track
    may reissue their ids.
    """

    def __init__(
        self,
        client: TimelineServiceClient,
        trimmer: EdgeTrimmer,
        track: int,
        settings: EditingSettings,
    ) -> None:
        self._client = client
        self._trimmer = trimmer
        self._track = track
        self._settings = settings
        self._base: float | None = None
        self._offset = 0.0
        self._staged: list[HoldingClip] = []

    def __enter__(self) -> HoldingArea:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        leftovers = self._staged
        self._staged = []
        failures: list[TimelineError] = []
        for holding in leftovers:
            try:
                self._client.delete_clip(self._client.resolve(holding.ref))
            except TimelineError as cleanup_error:
                logger.error(
                    "failed to delete holding clip at %.3f on track %s: %s",
                    holding.start,
                    self._track,
                    cleanup_error,
                )
                failures.append(cleanup_error)
        if failures and exc_type is None:
            raise failures[0]

    def stage_copy(self, state: ClipState) -> HoldingClip:
        return self._stage(state.ref, state.kind, state.length)

    def clone(self, holding: HoldingClip) -> HoldingClip:
        """Stage a further copy of a clip that is already in the holding region."""
        return self._stage(holding.ref, holding.kind, holding.length)

    def _stage(self, source: ClipRef, kind: ClipKind, length: float) -> HoldingClip:
        position = self._allocate(length)
        ref = self._client.duplicate_clip(self._client.resolve(source), position, self._track)
        holding = HoldingClip(ref=ref, kind=kind, start=position, end=position + length)
        self._staged.append(holding)
        logger.debug("staged clip %s as holding clip %s at %.3f", source.clip_id, ref.clip_id, position)
        return holding

    def trim_right(self, holding: HoldingClip, length: float) -> HoldingClip:
        """Keep the first `length` beats of a holding clip."""
        cut = holding.start + length
        self._trimmer.truncate(self._track, cut, holding.end - cut, holding.kind)
        holding.end = min(holding.end, cut)
        return holding

    def trim_left(self, holding: HoldingClip, length: float) -> HoldingClip:
        """Drop the first `length` beats of a holding clip."""
        if length <= EPSILON:
            return holding
        self._trimmer.truncate(self._track, holding.start, length, holding.kind)
        holding.start += length
        holding.ref = holding.ref.at(holding.start)
        return holding

    def commit(self, holding: HoldingClip, target: float) -> ClipRef:
        final = self._client.duplicate_clip(self._client.resolve(holding.ref), target, self._track)
        self.discard(holding)
        return self._client.resolve(final)

    def discard(self, holding: HoldingClip) -> None:
        self._client.delete_clip(self._client.resolve(holding.ref))
        self._staged = [item for item in self._staged if item is not holding]

    def _allocate(self, length: float) -> float:
        if self._base is None:
            base = self._client.track_content_end(self._track) + self._settings.holding_gap_beats
            if self._settings.holding_area_start is not None:
                base = max(base, self._settings.holding_area_start)
            self._base = base
        position = self._base + self._offset
        self._offset += length + HOLDING_SLOT_PADDING
        return position


def discard_quietly(client: TimelineServiceClient, ref: ClipRef) -> None:
    try:
        client.delete_clip(ref)
    except TimelineError as cleanup_error:
        logger.error("failed to delete clip %s on track %s: %s", ref.clip_id, ref.track_index, cleanup_error)
