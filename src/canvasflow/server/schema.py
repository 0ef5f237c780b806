"""Pydantic schemas for the FastAPI application."""

from pydantic import Field

from canvasflow.core.pipelines.matcher import SuggestedConnection
from canvasflow.core.pipelines.schema import (
    CamelModel,
    Pipeline,
    PipelineConnection,
    WidgetLink,
    WidgetRef,
)
from canvasflow.core.pipelines.validator import ValidationIssue


class HealthResponse(CamelModel):
    """Health check response schema."""

    status: str = Field(default="healthy")
    timestamp: str


class PipelineListResponse(CamelModel):
    pipelines: list[Pipeline]


class ValidationResponse(CamelModel):
    """Validation outcome: ``errors`` block saving, ``issues`` has every finding."""

    valid: bool
    errors: list[str]
    issues: list[ValidationIssue] = Field(default_factory=list)


class MergeRequest(CamelModel):
    base: Pipeline
    addition: Pipeline


class SuggestionRequest(CamelModel):
    widgets: list[WidgetRef] = Field(..., description="Batch of newly generated widgets")


class SuggestionResponse(CamelModel):
    suggestions: list[SuggestedConnection]


class ConnectWidgetsRequest(CamelModel):
    """Drag from one widget's output port to another widget's input port."""

    widgets: list[WidgetRef] = Field(..., description="Widgets currently on the canvas")
    from_widget_id: str
    from_port: str
    to_widget_id: str
    to_port: str


class ConnectWidgetsResponse(CamelModel):
    connection: PipelineConnection | None = None


class WidgetLinksResponse(CamelModel):
    links: list[WidgetLink]
