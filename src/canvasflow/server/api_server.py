import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from canvasflow.core.pipelines.matcher import suggest_connections
from canvasflow.core.pipelines.merge import merge_pipelines
from canvasflow.core.pipelines.schema import Pipeline
from canvasflow.core.pipelines.validator import collect_issues

from .event_bus import PIPELINE_SAVED, EventBus, set_event_bus
from .pipeline_store import InMemoryPipelineGateway, PipelineGateway
from .schema import (
    ConnectWidgetsRequest,
    ConnectWidgetsResponse,
    HealthResponse,
    MergeRequest,
    PipelineListResponse,
    SuggestionRequest,
    SuggestionResponse,
    ValidationResponse,
    WidgetLinksResponse,
)
from .settings import get_host, get_port
from .wiring import PipelineWiring

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    app.state.event_bus.set_loop(asyncio.get_running_loop())
    set_event_bus(app.state.event_bus)
    logger.info("Event bus initialized")

    yield

    set_event_bus(None)


def get_gateway(request: Request) -> PipelineGateway:
    """Dependency to get the persistence gateway."""
    return request.app.state.gateway


def get_event_bus(request: Request) -> EventBus:
    """Dependency to get the event bus."""
    return request.app.state.event_bus


def get_wiring(request: Request) -> PipelineWiring:
    """Dependency to get the interactive wiring service."""
    return request.app.state.wiring


def _validation_response(pipeline: Pipeline) -> ValidationResponse:
    issues = collect_issues(pipeline)
    errors = [i.message for i in issues if i.severity == "error"]
    return ValidationResponse(valid=not errors, errors=errors, issues=issues)


def create_app(
    gateway: PipelineGateway | None = None,
    event_bus: EventBus | None = None,
) -> FastAPI:
    """Create and configure the API FastAPI application."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        app_version = version("canvasflow")
    except PackageNotFoundError:
        app_version = "0.0.0"

    app = FastAPI(
        lifespan=lifespan,
        title="canvasflow API",
        description="Pipeline graphs wiring widget output ports to input ports",
        version=app_version,
    )
    app.state.gateway = gateway or InMemoryPipelineGateway()
    app.state.event_bus = event_bus or EventBus()
    app.state.wiring = PipelineWiring(app.state.gateway, app.state.event_bus)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(status="healthy", timestamp=datetime.now().isoformat())

    @app.get(
        "/api/v1/canvases/{canvas_id}/pipelines", response_model=PipelineListResponse
    )
    async def list_pipelines(
        canvas_id: str, gateway: PipelineGateway = Depends(get_gateway)
    ):
        pipelines = await gateway.list_pipelines_for_canvas(canvas_id)
        return PipelineListResponse(pipelines=pipelines)

    @app.put("/api/v1/pipelines/{pipeline_id}", response_model=Pipeline)
    async def save_pipeline(
        pipeline_id: str,
        pipeline: Pipeline,
        gateway: PipelineGateway = Depends(get_gateway),
        event_bus: EventBus = Depends(get_event_bus),
    ):
        """Validate and persist a pipeline. Invalid pipelines are not saved."""
        if pipeline.id != pipeline_id:
            raise HTTPException(
                status_code=400,
                detail=f"Pipeline id mismatch: path '{pipeline_id}', body '{pipeline.id}'",
            )
        validation = _validation_response(pipeline)
        if not validation.valid:
            raise HTTPException(status_code=422, detail={"errors": validation.errors})

        result = await gateway.save_pipeline(pipeline)
        if not result.success:
            raise HTTPException(status_code=500, detail=result.error)
        await event_bus.emit_async(
            PIPELINE_SAVED, pipeline_id=pipeline.id, canvas_id=pipeline.canvas_id
        )
        return result.pipeline or pipeline

    @app.delete("/api/v1/pipelines/{pipeline_id}")
    async def delete_pipeline(
        pipeline_id: str, wiring: PipelineWiring = Depends(get_wiring)
    ):
        if not await wiring.delete_pipeline(pipeline_id):
            raise HTTPException(status_code=404, detail=f"Pipeline {pipeline_id} not found")
        return {"deleted": pipeline_id}

    @app.post("/api/v1/pipelines/validate", response_model=ValidationResponse)
    async def validate(pipeline: Pipeline):
        return _validation_response(pipeline)

    @app.post("/api/v1/pipelines/merge", response_model=Pipeline)
    async def merge(request: MergeRequest):
        return merge_pipelines(request.base, request.addition)

    @app.post("/api/v1/suggestions", response_model=SuggestionResponse)
    async def suggestions(request: SuggestionRequest):
        return SuggestionResponse(suggestions=suggest_connections(request.widgets))

    @app.get(
        "/api/v1/canvases/{canvas_id}/connections", response_model=WidgetLinksResponse
    )
    async def list_connections(
        canvas_id: str, wiring: PipelineWiring = Depends(get_wiring)
    ):
        return WidgetLinksResponse(links=await wiring.list_widget_links(canvas_id))

    @app.post(
        "/api/v1/canvases/{canvas_id}/connections",
        response_model=ConnectWidgetsResponse,
    )
    async def connect_widgets(
        canvas_id: str,
        request: ConnectWidgetsRequest,
        wiring: PipelineWiring = Depends(get_wiring),
    ):
        """Create a connection; ``connection`` is null when nothing was created."""
        connection = await wiring.connect_widgets(
            canvas_id,
            request.widgets,
            request.from_widget_id,
            request.from_port,
            request.to_widget_id,
            request.to_port,
        )
        return ConnectWidgetsResponse(connection=connection)

    @app.delete("/api/v1/canvases/{canvas_id}/connections/{connection_id}")
    async def delete_connection(
        canvas_id: str,
        connection_id: str,
        wiring: PipelineWiring = Depends(get_wiring),
    ):
        if not await wiring.delete_connection(canvas_id, connection_id):
            raise HTTPException(
                status_code=404, detail=f"Connection {connection_id} not deleted"
            )
        return {"deleted": connection_id}

    @app.delete("/api/v1/canvases/{canvas_id}/nodes/{node_id}")
    async def delete_node(
        canvas_id: str,
        node_id: str,
        wiring: PipelineWiring = Depends(get_wiring),
    ):
        if not await wiring.delete_node(canvas_id, node_id):
            raise HTTPException(status_code=404, detail=f"Node {node_id} not deleted")
        return {"deleted": node_id}

    @app.get("/api/v1/events/stream")
    async def stream_events(event_bus: EventBus = Depends(get_event_bus)):
        """Server-sent events for pipeline lifecycle changes."""
        return StreamingResponse(
            event_bus.subscribe_sse(), media_type="text/event-stream"
        )

    return app


def run_api_server(host: str | None = None, port: int | None = None):
    """Run the API server with uvicorn."""
    host = host or get_host()
    port = port or get_port()
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(create_app(), host=host, port=port, log_config=None)
