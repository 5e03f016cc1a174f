"""FastAPI app entrypoint for agent-stream."""

from __future__ import annotations

from pathlib import Path
from typing import Any, AsyncIterator, Literal

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, field_validator

from agent_stream.config.settings import Settings, get_settings
from agent_stream.engine.events import StreamItem, encode_frame
from agent_stream.engine.profile import build_profile
from agent_stream.engine.runner import RunEngine
from agent_stream.engine.slides import SlideStreamer
from agent_stream.generation import GenerationAdapter, build_adapter_from_settings
from agent_stream.graph.quality_gate import QualityGate
from agent_stream.skills import SkillCatalog, SkillGateway, build_catalog

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class RunRequest(BaseModel):
    task: str
    mode: Literal["normal", "deep"] = "normal"

    @field_validator("task")
    @classmethod
    def _task_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("task must not be blank")
        return value


def build_engine(
    settings: Settings,
    *,
    adapter: GenerationAdapter,
    catalog: SkillCatalog,
) -> RunEngine:
    gateway = SkillGateway(
        catalog=catalog,
        skill_timeout_s=settings.skill_timeout_s,
        max_retries=settings.skill_max_retries,
        backoff_s=settings.skill_retry_backoff_s,
    )
    quality_gate = None
    if settings.quality_gate_enabled:
        quality_gate = QualityGate(
            adapter,
            threshold=settings.quality_threshold,
            critique_max_output_tokens=settings.critique_max_output_tokens,
            refine_max_output_tokens=settings.refine_max_output_tokens,
        )
    slides = SlideStreamer(adapter=adapter, max_output_tokens=settings.slides_max_output_tokens)
    return RunEngine(
        adapter=adapter,
        gateway=gateway,
        profile=build_profile(settings),
        quality_gate=quality_gate,
        deferred_handlers={slides.action: slides},
        heartbeat_interval_s=settings.heartbeat_interval_s,
    )


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    adapter_override: GenerationAdapter | None,
    catalog_override: SkillCatalog | None,
) -> None:
    if not hasattr(app.state, "settings"):
        app.state.settings = settings

    if not hasattr(app.state, "catalog"):
        app.state.catalog = catalog_override or build_catalog(
            inputs_dir=Path(settings.inputs_dir),
            workspace_dir=Path(settings.workspace_dir),
        )

    if not hasattr(app.state, "engine"):
        adapter = adapter_override or build_adapter_from_settings(settings)
        app.state.engine = build_engine(settings, adapter=adapter, catalog=app.state.catalog)


def create_app(
    *,
    adapter: GenerationAdapter | None = None,
    catalog: SkillCatalog | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    app = FastAPI(title=settings.app_name)
    _ensure_runtime_state(
        app,
        settings=settings,
        adapter_override=adapter,
        catalog_override=catalog,
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/skills")
    def list_skills(request: Request) -> dict[str, list[dict[str, Any]]]:
        return {"skills": request.app.state.catalog.to_api_response()}

    @app.get("/skills/enabled-tools")
    def enabled_tools(request: Request) -> dict[str, list[str]]:
        return {"tools": sorted(request.app.state.catalog.enabled_specs())}

    @app.post("/skills/{name}/toggle")
    def toggle_skill(name: str, request: Request) -> dict[str, Any]:
        toggled = request.app.state.catalog.toggle(name)
        if toggled is None:
            raise HTTPException(status_code=404, detail="Skill not found")
        return toggled

    @app.post("/runs")
    async def start_run(payload: RunRequest, request: Request) -> StreamingResponse:
        engine: RunEngine = request.app.state.engine
        stream = engine.start_run(payload.task, payload.mode)
        return StreamingResponse(
            _frames(stream),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return app


async def _frames(stream: AsyncIterator[StreamItem]) -> AsyncIterator[str]:
    try:
        async for item in stream:
            yield encode_frame(item)
    finally:
        await stream.aclose()


app = create_app()
