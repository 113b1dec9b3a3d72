"""HTTP endpoints for arrangement clip edits."""

from __future__ import annotations

from collections.abc import Callable

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from clip_arranger.api.schemas import (
    ClipRefModel,
    EditResponse,
    LengthenRequest,
    MoveRequest,
    PlacementRequest,
    ShortenRequest,
    SliceRequest,
    SplitRequest,
)
from clip_arranger.editing.models import EditResult
from clip_arranger.editing.service import ArrangementEditService
from clip_arranger.timeline.errors import (
    InvalidReferenceError,
    ServiceUnavailableError,
    TimelineServiceError,
    UnsupportedForClipStateError,
)
from clip_arranger.timeline.models import ClipRef


def create_app(service: ArrangementEditService | None = None) -> FastAPI:
    app = FastAPI(title="clip-arranger API", version="0.1.0")
    edit_service = service or ArrangementEditService()

    @app.get("/")
    def root() -> dict[str, str]:
        return {
            "service": "clip-arranger API",
            "status": "ok",
            "docs": "/docs",
        }

    @app.get("/favicon.ico", include_in_schema=False)
    def favicon() -> Response:
        return Response(status_code=204)

    @app.post("/v1/clips/lengthen", response_model=EditResponse)
    def lengthen_clip(payload: LengthenRequest) -> EditResponse:
        return _run(lambda: edit_service.lengthen_clip(_to_ref(payload.clip), payload.target_duration))

    @app.post("/v1/clips/shorten", response_model=EditResponse)
    def shorten_clip(payload: ShortenRequest) -> EditResponse:
        return _run(lambda: edit_service.shorten_clip(_to_ref(payload.clip), payload.target_duration))

    @app.post("/v1/clips/split", response_model=EditResponse)
    def split_clip(payload: SplitRequest) -> EditResponse:
        return _run(lambda: edit_service.split_clip(_to_ref(payload.clip), payload.cut_points))

    @app.post("/v1/clips/slice", response_model=EditResponse)
    def slice_clip(payload: SliceRequest) -> EditResponse:
        return _run(lambda: edit_service.slice_clip(_to_ref(payload.clip), payload.slice_length))

    @app.post("/v1/clips/move", response_model=EditResponse)
    def move_clips(payload: MoveRequest) -> EditResponse:
        moves = [(_to_ref(item.clip), item.new_start) for item in payload.moves]
        if len(moves) == 1:
            clip_ref, new_start = moves[0]
            return _run(lambda: edit_service.move_clip(clip_ref, new_start))
        return _run(lambda: edit_service.move_clips(moves))

    @app.post("/v1/clips/placement", response_model=EditResponse)
    def update_clip_placement(payload: PlacementRequest) -> EditResponse:
        return _run(
            lambda: edit_service.update_clip_placement(
                _to_ref(payload.clip),
                new_start=payload.new_start,
                target_duration=payload.target_duration,
            )
        )

    return app


def _run(operation: Callable[[], EditResult]) -> EditResponse:
    try:
        result = operation()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except InvalidReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except UnsupportedForClipStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (ServiceUnavailableError, TimelineServiceError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return EditResponse(
        result_clips=[
            ClipRefModel(clip_id=ref.clip_id, track_index=ref.track_index, start_time=ref.start_time)
            for ref in result.result_clips
        ],
        achieved_duration=result.achieved_duration,
        status=result.status.value,
        warnings=list(result.warnings),
    )


def _to_ref(model: ClipRefModel) -> ClipRef:
    return ClipRef(clip_id=model.clip_id, track_index=model.track_index, start_time=model.start_time)
