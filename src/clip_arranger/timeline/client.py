"""Typed wrapper around the remote Timeline Service primitives."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from clip_arranger.timeline.errors import (
    InvalidReferenceError,
    ServiceUnavailableError,
    TimelineError,
    TimelineServiceError,
    UnsupportedForClipStateError,
)
from clip_arranger.timeline.models import EPSILON, ClipKind, ClipRef, ClipState, normalize_clip_id

logger = logging.getLogger(__name__)

_HTTPTransport = Callable[[str, dict[str, object], dict[str, str], float], dict[str, object]]

_ERROR_TYPES: dict[str, type[TimelineError]] = {
    "invalid_reference": InvalidReferenceError,
    "unsupported": UnsupportedForClipStateError,
}


@dataclass(slots=True)
class TimelineServiceClient:
    endpoint: str = ""
    api_key: str = ""
    timeout_sec: float = 6.0
    transport: _HTTPTransport | None = None

    @staticmethod
    def from_env() -> TimelineServiceClient:
        endpoint = os.getenv("CLIP_ARRANGER_TIMELINE_ENDPOINT", "").strip()
        api_key = os.getenv("CLIP_ARRANGER_TIMELINE_API_KEY", "").strip()
        timeout_raw = os.getenv("CLIP_ARRANGER_TIMELINE_TIMEOUT_SEC", "6.0").strip()
        try:
            timeout_sec = float(timeout_raw)
        except ValueError:
            timeout_sec = 6.0
        return TimelineServiceClient(
            endpoint=endpoint,
            api_key=api_key,
            timeout_sec=max(timeout_sec, 0.1),
        )

    def call(self, op: str, **args: object) -> object:
        if not self.endpoint:
            raise ServiceUnavailableError("CLIP_ARRANGER_TIMELINE_ENDPOINT is not configured")

        payload: dict[str, object] = {"op": op, "args": args}
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        logger.debug("timeline call %s %s", op, args)
        transport = self.transport or _default_http_transport
        try:
            response = transport(self.endpoint, payload, headers, self.timeout_sec)
        except (HTTPError, URLError, TimeoutError, OSError) as exc:
            raise ServiceUnavailableError(f"Timeline request '{op}' failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ServiceUnavailableError(f"Timeline response decode failed: {exc}") from exc
        return _unwrap(op, response)

    # -- creation / destruction ------------------------------------------

    def create_midi_clip(self, track: int, position: float, length: float) -> ClipRef:
        raw = self.call("create_midi_clip", track=track, position=position, length=length)
        return ClipRef(normalize_clip_id(raw), track, position)

    def create_arrangement_audio_clip(self, track: int, position: float, file_path: str) -> ClipRef:
        raw = self.call("create_arrangement_audio_clip", track=track, position=position, file_path=file_path)
        return ClipRef(normalize_clip_id(raw), track, position)

    def create_session_audio_clip(self, track: int, slot: int, file_path: str) -> ClipRef:
        raw = self.call("create_session_audio_clip", track=track, slot=slot, file_path=file_path)
        return ClipRef(normalize_clip_id(raw), track)

    def create_clip(
        self,
        track: int,
        position: float,
        kind: ClipKind,
        length: float | None = None,
        file_path: str | None = None,
    ) -> ClipRef:
        if kind == ClipKind.MIDI:
            if length is None or length <= 0:
                raise ValueError("MIDI clip creation requires a positive length")
            return self.create_midi_clip(track, position, length)
        if length is not None:
            raise ValueError("arrangement audio clips cannot be created with an explicit length")
        if not file_path:
            raise ValueError("audio clip creation requires file_path")
        return self.create_arrangement_audio_clip(track, position, file_path)

    def duplicate_clip(self, ref: ClipRef, position: float, track: int | None = None) -> ClipRef:
        target_track = ref.track_index if track is None else track
        raw = self.call(
            "duplicate_clip_to_arrangement",
            track=target_track,
            clip=ref.clip_id,
            position=position,
        )
        return ClipRef(normalize_clip_id(raw), target_track, position)

    def delete_clip(self, ref: ClipRef) -> None:
        self.call("delete_clip", track=ref.track_index, clip=ref.clip_id)

    def delete_slot_clip(self, track: int, slot: int) -> None:
        self.call("delete_slot_clip", track=track, slot=slot)

    # -- properties ------------------------------------------------------

    def get_property(self, ref: ClipRef, name: str) -> object:
        return self.call("get_property", clip=ref.clip_id, name=name)

    def set_property(self, ref: ClipRef, name: str, value: object) -> None:
        if isinstance(value, bool):
            value = int(value)
        self.call("set_property", clip=ref.clip_id, name=name, value=value)

    def get_float(self, ref: ClipRef, name: str) -> float:
        value = self.get_property(ref, name)
        if not isinstance(value, (int, float)):
            raise TimelineServiceError(f"property '{name}' of clip {ref.clip_id} is not numeric: {value!r}")
        return float(value)

    def get_flag(self, ref: ClipRef, name: str) -> bool:
        value = self.get_property(ref, name)
        return bool(value) and value != "0"

    def read_clip(self, ref: ClipRef) -> ClipState:
        is_midi = self.get_flag(ref, "is_midi_clip")
        kind = ClipKind.MIDI if is_midi else ClipKind.AUDIO
        start_time = self.get_float(ref, "start_time")
        file_path = None
        if kind == ClipKind.AUDIO:
            raw_path = self.get_property(ref, "file_path")
            file_path = str(raw_path) if raw_path else None
        return ClipState(
            ref=ref.at(start_time),
            kind=kind,
            start_time=start_time,
            end_time=self.get_float(ref, "end_time"),
            looping=self.get_flag(ref, "looping"),
            warped=is_midi or self.get_flag(ref, "warping"),
            start_marker=self.get_float(ref, "start_marker"),
            end_marker=self.get_float(ref, "end_marker"),
            loop_start=self.get_float(ref, "loop_start"),
            loop_end=self.get_float(ref, "loop_end"),
            is_arrangement=self.get_flag(ref, "is_arrangement_clip"),
            file_path=file_path,
        )

    # -- track queries ---------------------------------------------------

    def get_children(self, track: int) -> list[ClipRef]:
        raw = self.call("get_children", track=track)
        if not isinstance(raw, list):
            raise TimelineServiceError(f"get_children returned {type(raw).__name__}, expected list")
        return [ClipRef(normalize_clip_id(item), track) for item in raw]

    def arrangement_clips(self, track: int) -> list[ClipRef]:
        """Query the track from scratch and return fresh refs ordered by start time."""
        refs = [ref.at(self.get_float(ref, "start_time")) for ref in self.get_children(track)]
        return sorted(refs, key=lambda ref: (ref.start_time or 0.0, ref.clip_id))

    def clips_between(self, track: int, start: float, end: float) -> list[ClipRef]:
        """Fresh refs for arrangement clips whose start lies in `[start, end)`."""
        return [
            ref
            for ref in self.arrangement_clips(track)
            if ref.start_time is not None and start - EPSILON <= ref.start_time < end - EPSILON
        ]

    def track_content_end(self, track: int) -> float:
        ends = [self.get_float(ref, "end_time") for ref in self.get_children(track)]
        return max(ends, default=0.0)

    def find_free_slot(self, track: int) -> int:
        raw = self.call("get_slots", track=track)
        if not isinstance(raw, list):
            raise TimelineServiceError(f"get_slots returned {type(raw).__name__}, expected list")
        used: set[int] = set()
        for item in raw:
            if isinstance(item, dict) and item.get("has_clip"):
                used.add(int(item.get("index", -1)))
        slot = 0
        while slot in used:
            slot += 1
        return slot

    def resolve(self, ref: ClipRef) -> ClipRef:
        """Re-resolve a possibly stale reference against a fresh track query."""
        children = self.arrangement_clips(ref.track_index)
        for child in children:
            if child.clip_id == ref.clip_id:
                return child
        if ref.start_time is not None:
            for child in children:
                if child.start_time is not None and abs(child.start_time - ref.start_time) <= EPSILON:
                    logger.info(
                        "re-resolved stale clip %s on track %s to clip %s by position %.3f",
                        ref.clip_id,
                        ref.track_index,
                        child.clip_id,
                        ref.start_time,
                    )
                    return child
        raise InvalidReferenceError(
            f"clip {ref.clip_id} on track {ref.track_index} cannot be resolved"
        )


def _unwrap(op: str, response: object) -> object:
    if not isinstance(response, dict):
        raise TimelineServiceError(f"Timeline response to '{op}' must be a JSON object")
    error = response.get("error")
    if error is not None:
        if isinstance(error, dict):
            code = str(error.get("code") or "service_error")
            message = str(error.get("message") or code)
        else:
            code, message = "service_error", str(error)
        error_type = _ERROR_TYPES.get(code)
        if error_type is None:
            raise TimelineServiceError(f"{op}: {message}", code=code)
        raise error_type(f"{op}: {message}")
    return response.get("result")


def _default_http_transport(
    endpoint: str,
    payload: dict[str, object],
    headers: dict[str, str],
    timeout_sec: float,
) -> dict[str, object]:
    body = json.dumps(payload).encode("utf-8")
    req = Request(endpoint, data=body, headers=headers, method="POST")
    with urlopen(req, timeout=timeout_sec) as resp:  # noqa: S310
        raw = resp.read().decode("utf-8")
    decoded = json.loads(raw)
    if not isinstance(decoded, dict):
        raise TimelineServiceError("Timeline response must be a JSON object")
    return decoded
