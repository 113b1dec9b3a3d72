"""Timeline data model shared by the service client and the editing engine."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

EPSILON = 0.001


class ClipKind(str, Enum):
    MIDI = "midi"
    AUDIO = "audio"


class ClipVariant(str, Enum):
    """Boundary-editing behaviour class of a clip."""

    LOOPING = "looping"
    UNLOOPED_MIDI = "unlooped-midi"
    UNLOOPED_WARPED_AUDIO = "unlooped-warped-audio"
    UNLOOPED_UNWARPED_AUDIO = "unlooped-unwarped-audio"


@dataclass(slots=True, frozen=True)
class ClipRef:
    """Opaque clip identifier plus the path needed to re-resolve it.

    `start_time` records where the clip sat when the reference was issued, so a
    stale id can be re-resolved by position on `track_index`.
    """

    clip_id: int
    track_index: int
    start_time: float | None = None

    def at(self, start_time: float) -> ClipRef:
        return replace(self, start_time=start_time)


@dataclass(slots=True)
class ClipState:
    ref: ClipRef
    kind: ClipKind
    start_time: float
    end_time: float
    looping: bool
    warped: bool
    start_marker: float
    end_marker: float
    loop_start: float
    loop_end: float
    is_arrangement: bool = True
    file_path: str | None = None

    @property
    def length(self) -> float:
        return self.end_time - self.start_time

    @property
    def loop_length(self) -> float:
        return self.loop_end - self.loop_start

    @property
    def variant(self) -> ClipVariant:
        if self.looping:
            return ClipVariant.LOOPING
        if self.kind == ClipKind.MIDI:
            return ClipVariant.UNLOOPED_MIDI
        if self.warped:
            return ClipVariant.UNLOOPED_WARPED_AUDIO
        return ClipVariant.UNLOOPED_UNWARPED_AUDIO


def normalize_clip_id(raw: object) -> int:
    """Normalize the id shapes returned by the service into a plain int.

    Accepts `7`, `"7"`, `"id 7"`, `["id", 7]` and `("id", "7")`.
    """
    if isinstance(raw, bool):
        raise ValueError(f"invalid clip id: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("id "):
            text = text[3:].strip()
        if text.isdigit():
            return int(text)
        raise ValueError(f"invalid clip id: {raw!r}")
    if isinstance(raw, (list, tuple)) and len(raw) == 2 and raw[0] == "id":
        return normalize_clip_id(raw[1])
    raise ValueError(f"invalid clip id: {raw!r}")
