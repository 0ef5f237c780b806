"""Persistence gateway contract and an in-memory implementation.

The wiring layer and the API only talk to storage through
:class:`PipelineGateway`. :class:`InMemoryPipelineGateway` is the reference
implementation: pipelines are kept in a dict guarded by a threading lock and
every save bumps the pipeline's ``version``.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from pydantic import BaseModel

from canvasflow.core.pipelines.schema import Pipeline, utc_now

logger = logging.getLogger(__name__)


class SaveResult(BaseModel):
    """Outcome of a persistence call.

    A successful save may carry the stored copy (with its bumped ``version``).
    """

    success: bool
    error: str | None = None
    pipeline: Pipeline | None = None


class PipelineGateway(Protocol):
    """Storage collaborator for pipelines."""

    async def list_pipelines_for_canvas(self, canvas_id: str) -> list[Pipeline]: ...

    async def save_pipeline(self, pipeline: Pipeline) -> SaveResult: ...

    async def delete_pipeline(self, pipeline_id: str) -> SaveResult: ...


class InMemoryPipelineGateway:
    """Thread-safe in-memory pipeline store.

    Stored and returned pipelines are deep copies, so callers never share
    objects with the store.
    """

    def __init__(self, pipelines: list[Pipeline] | None = None):
        self._lock = threading.Lock()
        self._pipelines: dict[str, Pipeline] = {}
        for pipeline in pipelines or []:
            self._pipelines[pipeline.id] = pipeline.model_copy(deep=True)

    async def list_pipelines_for_canvas(self, canvas_id: str) -> list[Pipeline]:
        with self._lock:
            return [
                p.model_copy(deep=True)
                for p in self._pipelines.values()
                if p.canvas_id == canvas_id
            ]

    async def get_pipeline(self, pipeline_id: str) -> Pipeline | None:
        with self._lock:
            pipeline = self._pipelines.get(pipeline_id)
            return pipeline.model_copy(deep=True) if pipeline else None

    async def save_pipeline(self, pipeline: Pipeline) -> SaveResult:
        with self._lock:
            stored = pipeline.model_copy(
                deep=True,
                update={
                    "version": (pipeline.version or 0) + 1,
                    "updated_at": utc_now(),
                },
            )
            self._pipelines[pipeline.id] = stored
        logger.info(
            f"Saved pipeline {pipeline.id} (version {stored.version}) with "
            f"{len(stored.nodes)} nodes and {len(stored.connections)} connections"
        )
        return SaveResult(success=True, pipeline=stored.model_copy(deep=True))

    async def delete_pipeline(self, pipeline_id: str) -> SaveResult:
        with self._lock:
            removed = self._pipelines.pop(pipeline_id, None)
        if removed is None:
            return SaveResult(success=False, error=f"Pipeline {pipeline_id} not found")
        logger.info(f"Deleted pipeline {pipeline_id}")
        return SaveResult(success=True)
