"""FastAPI request/response schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ClipRefModel(BaseModel):
    clip_id: int = Field(ge=0)
    track_index: int = Field(ge=0)
    start_time: float | None = Field(default=None, ge=0)


class LengthenRequest(BaseModel):
    clip: ClipRefModel
    target_duration: float = Field(gt=0)


class ShortenRequest(BaseModel):
    clip: ClipRefModel
    target_duration: float = Field(gt=0)


class SplitRequest(BaseModel):
    clip: ClipRefModel
    cut_points: list[float] = Field(min_length=1)


class SliceRequest(BaseModel):
    clip: ClipRefModel
    slice_length: float = Field(gt=0)


class MoveItem(BaseModel):
    clip: ClipRefModel
    new_start: float = Field(ge=0)


class MoveRequest(BaseModel):
    moves: list[MoveItem] = Field(min_length=1)


class PlacementRequest(BaseModel):
    clip: ClipRefModel
    new_start: float | None = Field(default=None, ge=0)
    target_duration: float | None = Field(default=None, gt=0)


class EditResponse(BaseModel):
    result_clips: list[ClipRefModel]
    achieved_duration: float
    status: Literal["full", "capped", "unchanged"]
    warnings: list[str]
