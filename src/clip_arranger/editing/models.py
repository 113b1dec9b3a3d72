"""Edit results and engine settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum

from clip_arranger.timeline.models import ClipRef

MAX_SPLIT_POINTS = 32
MAX_SLICES = 64
DEFAULT_HOLDING_GAP_BEATS = 100.0


class EditStatus(str, Enum):
    FULL = "full"
    CAPPED = "capped"
    UNCHANGED = "unchanged"


@dataclass(slots=True)
class EditOutcome:
    """What an engine produced, before the dispatcher wraps it for callers."""

    clips: list[ClipRef]
    achieved_duration: float
    status: EditStatus = EditStatus.FULL
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class EditResult:
    result_clips: list[ClipRef]
    achieved_duration: float
    status: EditStatus
    warnings: list[str] = field(default_factory=list)

    @staticmethod
    def from_outcome(outcome: EditOutcome) -> EditResult:
        return EditResult(
            result_clips=list(outcome.clips),
            achieved_duration=outcome.achieved_duration,
            status=outcome.status,
            warnings=list(outcome.warnings),
        )


@dataclass(slots=True, frozen=True)
class EditingSettings:
    silence_wav_path: str = ""
    holding_gap_beats: float = DEFAULT_HOLDING_GAP_BEATS
    holding_area_start: float | None = None

    @staticmethod
    def from_env() -> EditingSettings:
        silence = os.getenv("CLIP_ARRANGER_SILENCE_WAV", "").strip()
        gap = _env_float("CLIP_ARRANGER_HOLDING_GAP_BEATS")
        start = _env_float("CLIP_ARRANGER_HOLDING_AREA_START")
        return EditingSettings(
            silence_wav_path=silence,
            holding_gap_beats=gap if gap is not None and gap > 0 else DEFAULT_HOLDING_GAP_BEATS,
            holding_area_start=start if start is not None and start >= 0 else None,
        )


def _env_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None
