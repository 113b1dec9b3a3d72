"""In-memory Timeline Service used for offline development and tests.

The simulator speaks the same op/args protocol as the remote service and
reproduces its quirks: interior overlaps truncate instead of splitting, marker
writes on unlooped clips are dropped, warped arrangement lengths are fixed at
creation, and unwarped audio length follows its real-time loop region.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass

from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.models import EPSILON, ClipKind

_READ_ONLY = {"start_time", "end_time", "is_midi_clip", "is_audio_clip", "is_arrangement_clip", "file_path", "track_index"}
_MARKERS = {"start_marker", "end_marker"}
_LOOP_BOUNDS = {"loop_start", "loop_end"}


class SimulatedServiceError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(slots=True)
class AudioFile:
    path: str
    seconds: float


@dataclass(slots=True)
class SimClip:
    clip_id: int
    track_index: int
    kind: ClipKind
    start_time: float
    end_time: float
    looping: bool
    warping: bool
    start_marker: float
    end_marker: float
    loop_start: float
    loop_end: float
    file_path: str | None = None
    slot: int | None = None

    @property
    def is_arrangement(self) -> bool:
        return self.slot is None

    @property
    def length(self) -> float:
        return self.end_time - self.start_time

    @property
    def unwarped(self) -> bool:
        return self.kind == ClipKind.AUDIO and not self.warping


class SimulatedTimelineService:
    """In-memory Timeline Service.

    With `renumber_on_mutation=True`, every create, duplicate or delete on a track
    hands fresh ids to the other arrangement clips on that track, so any id held
    from before the call is stale. Only the id returned by the call stays valid.
    """

    def __init__(self, tempo: float = 120.0, track_count: int = 1, renumber_on_mutation: bool = False) -> None:
        if tempo <= 0:
            raise ValueError("tempo must be positive")
        if track_count <= 0:
            raise ValueError("track_count must be positive")
        self.tempo = tempo
        self.track_count = track_count
        self.renumber_on_mutation = renumber_on_mutation
        self.clips: dict[int, SimClip] = {}
        self.audio_files: dict[str, AudioFile] = {}
        self.calls: list[tuple[str, dict[str, object]]] = []
        self._next_id = 1
        self._lock = threading.RLock()

    # -- setup helpers ---------------------------------------------------

    def add_track(self) -> int:
        self.track_count += 1
        return self.track_count - 1

    def register_audio_file(self, path: str, seconds: float) -> AudioFile:
        if seconds <= 0:
            raise ValueError("seconds must be positive")
        item = AudioFile(path=path, seconds=seconds)
        self.audio_files[path] = item
        return item

    def add_midi_clip(
        self,
        track: int,
        start: float,
        length: float,
        looping: bool = False,
        start_marker: float = 0.0,
        end_marker: float | None = None,
        loop_start: float | None = None,
        loop_end: float | None = None,
    ) -> int:
        content_end = start_marker + length if end_marker is None else end_marker
        clip = SimClip(
            clip_id=self._allocate_id(),
            track_index=self._require_track(track),
            kind=ClipKind.MIDI,
            start_time=start,
            end_time=start + length,
            looping=looping,
            warping=True,
            start_marker=start_marker,
            end_marker=content_end,
            loop_start=start_marker if loop_start is None else loop_start,
            loop_end=content_end if loop_end is None else loop_end,
        )
        self.clips[clip.clip_id] = clip
        return clip.clip_id

    def add_audio_clip(
        self,
        track: int,
        start: float,
        file_path: str,
        length: float,
        warped: bool = True,
        looping: bool = False,
        start_marker: float = 0.0,
    ) -> int:
        """Seed an arrangement audio clip; markers are in seconds when unwarped."""
        self._require_file(file_path)
        if warped:
            content_end = start_marker + length
        else:
            content_end = start_marker + self._to_seconds(length)
        clip = SimClip(
            clip_id=self._allocate_id(),
            track_index=self._require_track(track),
            kind=ClipKind.AUDIO,
            start_time=start,
            end_time=start + length,
            looping=looping,
            warping=warped,
            start_marker=start_marker,
            end_marker=content_end,
            loop_start=start_marker,
            loop_end=content_end,
            file_path=file_path,
        )
        self.clips[clip.clip_id] = clip
        return clip.clip_id

    def arrangement(self, track: int) -> list[SimClip]:
        items = [clip for clip in self.clips.values() if clip.track_index == track and clip.is_arrangement]
        return sorted(items, key=lambda clip: (clip.start_time, clip.clip_id))

    def session_clips(self, track: int) -> list[SimClip]:
        items = [clip for clip in self.clips.values() if clip.track_index == track and not clip.is_arrangement]
        return sorted(items, key=lambda clip: clip.slot or 0)

    def call_count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    def client(self) -> TimelineServiceClient:
        return TimelineServiceClient(endpoint="memory://timeline", transport=self.as_transport())

    def as_transport(self):
        def _transport(
            _endpoint: str,
            payload: dict[str, object],
            _headers: dict[str, str],
            _timeout: float,
        ) -> dict[str, object]:
            op = str(payload.get("op", ""))
            args = payload.get("args") or {}
            if not isinstance(args, dict):
                args = {}
            try:
                result = self.handle(op, args)
            except SimulatedServiceError as exc:
                return {"error": {"code": exc.code, "message": str(exc)}}
            # Mirror the JSON wire so tuples and other Python-only shapes never leak.
            return json.loads(json.dumps({"result": result}))

        return _transport

    # -- protocol --------------------------------------------------------

    def handle(self, op: str, args: dict[str, object]) -> object:
        with self._lock:
            self.calls.append((op, dict(args)))
            handler = getattr(self, f"_op_{op}", None)
            if handler is None:
                raise SimulatedServiceError("service_error", f"unknown op '{op}'")
            try:
                return handler(**args)
            except TypeError as exc:
                raise SimulatedServiceError("service_error", f"bad arguments for '{op}': {exc}") from exc

    def _op_create_midi_clip(self, track: int, position: float, length: float) -> object:
        self._require_track(track)
        if position < 0 or length <= 0:
            raise SimulatedServiceError("service_error", "invalid clip bounds")
        clip = SimClip(
            clip_id=self._allocate_id(),
            track_index=track,
            kind=ClipKind.MIDI,
            start_time=position,
            end_time=position + length,
            looping=True,
            warping=True,
            start_marker=0.0,
            end_marker=length,
            loop_start=0.0,
            loop_end=length,
        )
        self._place(clip)
        self._renumber(track, keep=clip.clip_id)
        return ["id", clip.clip_id]

    def _op_create_arrangement_audio_clip(self, track: int, position: float, file_path: str) -> object:
        self._require_track(track)
        if position < 0:
            raise SimulatedServiceError("service_error", "invalid clip position")
        beats = self._to_beats(self._require_file(file_path).seconds)
        clip = SimClip(
            clip_id=self._allocate_id(),
            track_index=track,
            kind=ClipKind.AUDIO,
            start_time=position,
            end_time=position + beats,
            looping=False,
            warping=True,
            start_marker=0.0,
            end_marker=beats,
            loop_start=0.0,
            loop_end=beats,
            file_path=file_path,
        )
        self._place(clip)
        self._renumber(track, keep=clip.clip_id)
        return ["id", clip.clip_id]

    def _op_create_session_audio_clip(self, track: int, slot: int, file_path: str) -> object:
        self._require_track(track)
        if self._slot_clip(track, slot) is not None:
            raise SimulatedServiceError("service_error", f"slot {slot} on track {track} is occupied")
        beats = self._to_beats(self._require_file(file_path).seconds)
        clip = SimClip(
            clip_id=self._allocate_id(),
            track_index=track,
            kind=ClipKind.AUDIO,
            start_time=0.0,
            end_time=beats,
            looping=True,
            warping=True,
            start_marker=0.0,
            end_marker=beats,
            loop_start=0.0,
            loop_end=beats,
            file_path=file_path,
            slot=slot,
        )
        self.clips[clip.clip_id] = clip
        self._renumber(track)
        return clip.clip_id

    def _op_duplicate_clip_to_arrangement(self, track: int, clip: int, position: float) -> object:
        self._require_track(track)
        source = self._require_clip(clip)
        if position < 0:
            raise SimulatedServiceError("service_error", "invalid clip position")
        length = source.length if source.is_arrangement else self._session_length(source)
        if length <= EPSILON:
            raise SimulatedServiceError("service_error", f"clip {clip} has no playable length")
        copy = SimClip(
            clip_id=self._allocate_id(),
            track_index=track,
            kind=source.kind,
            start_time=position,
            end_time=position + length,
            looping=source.looping,
            warping=source.warping,
            start_marker=source.start_marker,
            end_marker=source.end_marker,
            loop_start=source.loop_start,
            loop_end=source.loop_end,
            file_path=source.file_path,
        )
        self._place(copy)
        self._renumber(track, keep=copy.clip_id)
        if source.is_arrangement:
            return ["id", copy.clip_id]
        return f"id {copy.clip_id}"

    def _op_delete_clip(self, track: int, clip: int) -> object:
        target = self._require_clip(clip)
        if target.track_index != track or not target.is_arrangement:
            raise SimulatedServiceError("invalid_reference", f"clip {clip} is not an arrangement clip on track {track}")
        del self.clips[clip]
        self._renumber(track)
        return None

    def _op_delete_slot_clip(self, track: int, slot: int) -> object:
        target = self._slot_clip(track, slot)
        if target is None:
            raise SimulatedServiceError("invalid_reference", f"slot {slot} on track {track} is empty")
        del self.clips[target.clip_id]
        self._renumber(track)
        return None

    def _op_get_children(self, track: int) -> object:
        self._require_track(track)
        return [clip.clip_id for clip in self.arrangement(track)]

    def _op_get_slots(self, track: int) -> object:
        self._require_track(track)
        used = {clip.slot for clip in self.session_clips(track)}
        count = max(used, default=-1) + 2
        return [{"index": index, "has_clip": index in used} for index in range(count)]

    def _op_get_property(self, clip: int, name: str) -> object:
        target = self._require_clip(clip)
        if name == "is_midi_clip":
            return int(target.kind == ClipKind.MIDI)
        if name == "is_audio_clip":
            return int(target.kind == ClipKind.AUDIO)
        if name == "is_arrangement_clip":
            return int(target.is_arrangement)
        if name in {"looping", "warping"}:
            return int(getattr(target, name))
        if name in {"start_time", "end_time", "start_marker", "end_marker", "loop_start", "loop_end", "file_path", "track_index"}:
            return getattr(target, name)
        raise SimulatedServiceError("service_error", f"unknown property '{name}'")

    def _op_set_property(self, clip: int, name: str, value: object) -> object:
        target = self._require_clip(clip)
        if name in _READ_ONLY:
            raise SimulatedServiceError("unsupported", f"property '{name}' is read-only")
        if name == "looping":
            self._set_looping(target, bool(value))
        elif name == "warping":
            self._set_warping(target, bool(value))
        elif name in _MARKERS:
            # Marker writes on unlooped clips are accepted but not applied.
            if target.looping:
                setattr(target, name, _as_number(value))
        elif name in _LOOP_BOUNDS:
            self._set_loop_bound(target, name, _as_number(value))
        else:
            raise SimulatedServiceError("service_error", f"unknown property '{name}'")
        return None

    # -- mutation rules --------------------------------------------------

    def _place(self, clip: SimClip) -> None:
        """Insert an arrangement clip, applying overlap truncation to neighbours."""
        start, end = clip.start_time, clip.end_time
        for other in self.arrangement(clip.track_index):
            if other.start_time < start - EPSILON and other.end_time > start + EPSILON:
                # Interior overlap: everything from the new clip's start onward is lost.
                self._truncate_right(other, start)
            elif start - EPSILON <= other.start_time < end - EPSILON:
                if other.end_time <= end + EPSILON:
                    del self.clips[other.clip_id]
                else:
                    self._trim_left(other, end)
        self.clips[clip.clip_id] = clip

    def _truncate_right(self, clip: SimClip, new_end: float) -> None:
        clip.end_time = new_end
        if clip.looping:
            return
        length = clip.end_time - clip.start_time
        if clip.unwarped:
            clip.loop_end = clip.loop_start + self._to_seconds(length)
            clip.end_marker = clip.loop_end
        else:
            clip.end_marker = clip.start_marker + length
            clip.loop_end = clip.end_marker

    def _trim_left(self, clip: SimClip, new_start: float) -> None:
        delta = new_start - clip.start_time
        clip.start_time = new_start
        if clip.unwarped:
            shift = self._to_seconds(delta)
            clip.start_marker += shift
            clip.loop_start += shift
            return
        clip.start_marker += delta
        if clip.looping:
            loop_length = clip.loop_end - clip.loop_start
            if loop_length > EPSILON and clip.start_marker >= clip.loop_end - EPSILON:
                clip.start_marker = clip.loop_start + (clip.start_marker - clip.loop_start) % loop_length
        else:
            clip.loop_start = clip.start_marker

    def _set_looping(self, clip: SimClip, looping: bool) -> None:
        if clip.looping and not looping and clip.kind == ClipKind.AUDIO and clip.warping:
            clip.loop_end = clip.end_marker
        clip.looping = looping

    def _set_warping(self, clip: SimClip, warping: bool) -> None:
        if clip.kind != ClipKind.AUDIO:
            raise SimulatedServiceError("unsupported", "warping is only available on audio clips")
        if clip.warping == warping:
            return
        convert = self._to_beats if warping else self._to_seconds
        clip.start_marker = convert(clip.start_marker)
        clip.end_marker = convert(clip.end_marker)
        clip.loop_start = convert(clip.loop_start)
        clip.loop_end = convert(clip.loop_end)
        clip.warping = warping

    def _set_loop_bound(self, clip: SimClip, name: str, value: float) -> None:
        if not clip.unwarped:
            setattr(clip, name, value)
            return
        file_seconds = self._require_file(clip.file_path or "").seconds
        value = min(max(value, 0.0), file_seconds)
        setattr(clip, name, value)
        if clip.loop_end < clip.loop_start:
            clip.loop_end = clip.loop_start
        clip.end_marker = clip.loop_end
        if clip.is_arrangement:
            clip.end_time = clip.start_time + self._to_beats(clip.loop_end - clip.loop_start)

    def _renumber(self, track: int, keep: int | None = None) -> None:
        if not self.renumber_on_mutation:
            return
        for clip in self.arrangement(track):
            if clip.clip_id == keep:
                continue
            del self.clips[clip.clip_id]
            clip.clip_id = self._allocate_id()
            self.clips[clip.clip_id] = clip

    # -- internals -------------------------------------------------------

    def _session_length(self, clip: SimClip) -> float:
        if clip.looping:
            span = clip.loop_end - clip.loop_start
        else:
            span = clip.end_marker - clip.start_marker
        return self._to_beats(span) if clip.unwarped else span

    def _slot_clip(self, track: int, slot: int) -> SimClip | None:
        for clip in self.clips.values():
            if clip.track_index == track and clip.slot == slot:
                return clip
        return None

    def _require_track(self, track: int) -> int:
        if not isinstance(track, int) or not (0 <= track < self.track_count):
            raise SimulatedServiceError("invalid_reference", f"track {track} does not exist")
        return track

    def _require_clip(self, clip_id: object) -> SimClip:
        clip = self.clips.get(clip_id) if isinstance(clip_id, int) else None
        if clip is None:
            raise SimulatedServiceError("invalid_reference", f"clip {clip_id} does not exist")
        return clip

    def _require_file(self, path: str) -> AudioFile:
        item = self.audio_files.get(path)
        if item is None:
            raise SimulatedServiceError("service_error", f"audio file '{path}' not found")
        return item

    def _allocate_id(self) -> int:
        clip_id = self._next_id
        self._next_id += 1
        return clip_id

    def _to_beats(self, seconds: float) -> float:
        return seconds * self.tempo / 60.0

    def _to_seconds(self, beats: float) -> float:
        return beats * 60.0 / self.tempo


def _as_number(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SimulatedServiceError("service_error", f"expected a number, got {value!r}")
    return float(value)
