from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .clock import ClockUnavailableError
from .commands import (
    ClearSession,
    Command,
    CommandResult,
    CreateTag,
    DeleteSegment,
    DeleteTag,
    EditSegmentField,
    SetPendingTagName,
    SetRounding,
    StartSegment,
    StopSegment,
)
from .config import settings
from .schemas import (
    AppearanceUpdateRequest,
    BatchCommand,
    BatchCommandRequest,
    CommandResponse,
    CommandResultResponse,
    PendingTagNameRequest,
    RoundingUpdateRequest,
    SegmentDisplayResponse,
    SegmentEditRequest,
    SettingsResponse,
    SnapshotDocument,
    TagCreateRequest,
    TrackerStateResponse,
)
from .snapshot import serialize
from .state import TrackerContext

logger = logging.getLogger(__name__)


def get_context(request: Request) -> TrackerContext:
    return request.app.state.tracker


def _state_response(context: TrackerContext) -> TrackerStateResponse:
    return TrackerStateResponse.from_state(context.state, is_dark_mode=context.is_dark_mode)


def _result_response(result: CommandResult) -> CommandResultResponse:
    return CommandResultResponse(
        command=type(result.command).__name__,
        applied=result.applied,
        detail=result.detail,
        tag_id=result.tag_id,
        segment_id=result.segment_id,
        display=SegmentDisplayResponse.from_display(result.display) if result.display else None,
    )


def _run(context: TrackerContext, *commands: Command) -> CommandResponse:
    results = context.execute(*commands)
    return CommandResponse(
        results=[_result_response(result) for result in results],
        state=_state_response(context),
    )


def _require(value: Optional[object], name: str, kind: str) -> object:
    if value is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{kind} requires '{name}'")
    return value


def _batch_to_command(item: BatchCommand) -> Command:
    kind = item.type
    if kind == "create_tag":
        return CreateTag(name=item.name)
    if kind == "set_pending_tag_name":
        return SetPendingTagName(text=item.text or "")
    if kind == "start_segment":
        return StartSegment(tag_id=_require(item.tag_id, "tag_id", kind))
    if kind == "stop_segment":
        return StopSegment(tag_id=_require(item.tag_id, "tag_id", kind))
    if kind == "edit_segment_field":
        return EditSegmentField(
            segment_id=_require(item.segment_id, "segment_id", kind),
            field=_require(item.field, "field", kind),
            text=_require(item.text, "text", kind),
        )
    if kind == "delete_segment":
        return DeleteSegment(segment_id=_require(item.segment_id, "segment_id", kind))
    if kind == "delete_tag":
        return DeleteTag(tag_id=_require(item.tag_id, "tag_id", kind))
    if kind == "clear_session":
        return ClearSession()
    return SetRounding(
        enabled=_require(item.enabled, "enabled", kind),
        granularity_hours=_require(item.granularity_hours, "granularity_hours", kind),
    )


def create_app(context: Optional[TrackerContext] = None) -> FastAPI:
    tracker = context or TrackerContext.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        tracker.load()
        try:
            yield
        finally:
            tracker.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.tracker = tracker
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ClockUnavailableError)
    async def clock_unavailable(request: Request, exc: ClockUnavailableError) -> JSONResponse:
        logger.error("Local time unavailable: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": f"Local time unavailable: {exc}",
                "rejected": [type(result.command).__name__ for result in getattr(exc, "results", [])],
            },
        )

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/state", response_model=TrackerStateResponse)
    def read_state(ctx: TrackerContext = Depends(get_context)) -> TrackerStateResponse:
        return _state_response(ctx)

    @app.get("/snapshot", response_model=SnapshotDocument)
    def read_snapshot(ctx: TrackerContext = Depends(get_context)) -> SnapshotDocument:
        return serialize(ctx.state, is_dark_mode=ctx.is_dark_mode)

    @app.post("/tags", response_model=CommandResponse)
    def create_tag(payload: TagCreateRequest, ctx: TrackerContext = Depends(get_context)) -> CommandResponse:
        return _run(ctx, CreateTag(name=payload.name))

    @app.put("/tags/pending-name", response_model=CommandResponse)
    def set_pending_tag_name(
        payload: PendingTagNameRequest, ctx: TrackerContext = Depends(get_context)
    ) -> CommandResponse:
        return _run(ctx, SetPendingTagName(text=payload.text))

    @app.post("/tags/{tag_id}/start", response_model=CommandResponse)
    def start_tag(tag_id: str, ctx: TrackerContext = Depends(get_context)) -> CommandResponse:
        return _run(ctx, StartSegment(tag_id=tag_id))

    @app.post("/tags/{tag_id}/stop", response_model=CommandResponse)
    def stop_tag(tag_id: str, ctx: TrackerContext = Depends(get_context)) -> CommandResponse:
        return _run(ctx, StopSegment(tag_id=tag_id))

    @app.delete("/tags/{tag_id}", response_model=CommandResponse)
    def delete_tag(tag_id: str, ctx: TrackerContext = Depends(get_context)) -> CommandResponse:
        return _run(ctx, DeleteTag(tag_id=tag_id))

    @app.patch("/segments/{segment_id}", response_model=CommandResponse)
    def edit_segment(
        segment_id: str, payload: SegmentEditRequest, ctx: TrackerContext = Depends(get_context)
    ) -> CommandResponse:
        return _run(ctx, EditSegmentField(segment_id=segment_id, field=payload.field, text=payload.text))

    @app.delete("/segments/{segment_id}", response_model=CommandResponse)
    def delete_segment(segment_id: str, ctx: TrackerContext = Depends(get_context)) -> CommandResponse:
        return _run(ctx, DeleteSegment(segment_id=segment_id))

    @app.post("/session/clear", response_model=CommandResponse)
    def clear_session(ctx: TrackerContext = Depends(get_context)) -> CommandResponse:
        return _run(ctx, ClearSession())

    @app.post("/commands", response_model=CommandResponse)
    def run_commands(payload: BatchCommandRequest, ctx: TrackerContext = Depends(get_context)) -> CommandResponse:
        commands: List[Command] = [_batch_to_command(item) for item in payload.commands]
        return _run(ctx, *commands)

    @app.get("/settings", response_model=SettingsResponse)
    def read_settings(ctx: TrackerContext = Depends(get_context)) -> SettingsResponse:
        return _settings_response(ctx)

    @app.put("/settings/rounding", response_model=CommandResponse)
    def write_rounding(payload: RoundingUpdateRequest, ctx: TrackerContext = Depends(get_context)) -> CommandResponse:
        return _run(ctx, SetRounding(enabled=payload.enabled, granularity_hours=payload.granularity_hours))

    @app.put("/settings/appearance", response_model=SettingsResponse)
    def write_appearance(
        payload: AppearanceUpdateRequest, ctx: TrackerContext = Depends(get_context)
    ) -> SettingsResponse:
        ctx.set_dark_mode(payload.is_dark_mode)
        return _settings_response(ctx)

    return app


def _settings_response(ctx: TrackerContext) -> SettingsResponse:
    state = ctx.state
    return SettingsResponse(
        environment=settings.environment,
        timezone=ctx.timezone,
        storage=settings.storage_backend,
        rounding_enabled=state.rounding_enabled,
        rounding_granularity_hours=state.rounding_granularity_hours,
        is_dark_mode=ctx.is_dark_mode,
    )


app = create_app()
