"""Interactive wiring: the operations an authoring surface drives.

Drag-to-connect, delete-connection and delete-node all follow the same shape:
load the canvas's pipelines through the gateway, edit one pipeline with the
core graph primitives, validate, save, then announce ``pipeline:saved`` on
the event bus. Failures are logged and reported through the return value;
the graph is left unchanged and nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from canvasflow.core.pipelines.ids import IdFactory, new_id
from canvasflow.core.pipelines.registry import NodeRegistry
from canvasflow.core.pipelines.schema import (
    Endpoint,
    Pipeline,
    PipelineConnection,
    WidgetLink,
    WidgetRef,
    utc_now,
)
from canvasflow.core.pipelines.validator import validate_pipeline

from .event_bus import PIPELINE_DELETED, PIPELINE_SAVED, EventBus
from .pipeline_store import PipelineGateway
from .settings import get_default_pipeline_name

logger = logging.getLogger(__name__)


class PipelineWiring:
    """Applies interactive connection edits to a canvas's pipelines."""

    def __init__(
        self,
        gateway: PipelineGateway,
        event_bus: EventBus | None = None,
        default_name: str | None = None,
        id_factory: IdFactory = new_id,
    ):
        self.gateway = gateway
        self.event_bus = event_bus
        self.default_name = default_name or get_default_pipeline_name()
        self._id_factory = id_factory

    def _target_pipeline(self, canvas_id: str, pipelines: list[Pipeline]) -> Pipeline:
        """First existing pipeline of the canvas, or a new empty one."""
        if pipelines:
            return pipelines[0]
        logger.info(f"No pipeline for canvas {canvas_id}, creating '{self.default_name}'")
        return Pipeline(id=self._id_factory(), canvas_id=canvas_id, name=self.default_name)

    async def _save(self, pipeline: Pipeline) -> bool:
        errors = validate_pipeline(pipeline)
        if errors:
            logger.error(
                f"Not saving pipeline {pipeline.id}, validation failed: {'; '.join(errors)}"
            )
            return False

        result = await self.gateway.save_pipeline(pipeline)
        if not result.success:
            logger.error(f"Failed to save pipeline {pipeline.id}: {result.error}")
            return False

        if self.event_bus is not None:
            await self.event_bus.emit_async(
                PIPELINE_SAVED,
                pipeline_id=pipeline.id,
                canvas_id=pipeline.canvas_id,
                payload={"pipeline": pipeline.to_json_dict()},
            )
        return True

    async def connect_widgets(
        self,
        canvas_id: str,
        widgets: Sequence[WidgetRef],
        from_widget_id: str,
        from_port: str,
        to_widget_id: str,
        to_port: str,
    ) -> PipelineConnection | None:
        """Wire one widget's output port to another widget's input port.

        Returns the new connection, or None when nothing was created
        (self-connection, unknown widget, duplicate edge, failed save).
        """
        if from_widget_id == to_widget_id:
            logger.debug(f"Rejected self-connection on widget {from_widget_id}")
            return None

        by_id = {w.id: w for w in widgets}
        from_widget = by_id.get(from_widget_id)
        to_widget = by_id.get(to_widget_id)
        if from_widget is None or to_widget is None:
            logger.error(
                f"Widget not found while connecting {from_widget_id} -> {to_widget_id}"
            )
            return None

        pipelines = await self.gateway.list_pipelines_for_canvas(canvas_id)
        requested = (from_widget_id, from_port, to_widget_id, to_port)
        if any(link.key == requested for link in _widget_links(pipelines)):
            logger.debug(
                f"Connection {from_widget_id}.{from_port} -> {to_widget_id}.{to_port} already exists"
            )
            return None

        pipeline = self._target_pipeline(canvas_id, pipelines)
        registry = NodeRegistry.for_pipeline(pipeline, id_factory=self._id_factory)
        source_node = registry.ensure_node(from_widget)
        target_node = registry.ensure_node(to_widget)
        connection = PipelineConnection(
            id=self._id_factory(),
            source=Endpoint(node_id=source_node.id, port_name=from_port),
            target=Endpoint(node_id=target_node.id, port_name=to_port),
        )
        pipeline.connections.append(connection)
        pipeline.updated_at = utc_now()

        if not await self._save(pipeline):
            return None
        return connection

    async def delete_connection(self, canvas_id: str, connection_id: str) -> bool:
        """Remove a connection by id from whichever canvas pipeline holds it."""
        for pipeline in await self.gateway.list_pipelines_for_canvas(canvas_id):
            if pipeline.connection_by_id(connection_id) is None:
                continue
            return await self._save(pipeline.without_connection(connection_id))
        logger.error(f"Connection {connection_id} not found on canvas {canvas_id}")
        return False

    async def delete_node(self, canvas_id: str, node_id: str) -> bool:
        """Remove a node and every connection referencing it."""
        for pipeline in await self.gateway.list_pipelines_for_canvas(canvas_id):
            if pipeline.node_by_id(node_id) is None:
                continue
            return await self._save(pipeline.without_node(node_id))
        logger.error(f"Node {node_id} not found on canvas {canvas_id}")
        return False

    async def delete_pipeline(self, pipeline_id: str, canvas_id: str | None = None) -> bool:
        result = await self.gateway.delete_pipeline(pipeline_id)
        if not result.success:
            logger.error(f"Failed to delete pipeline {pipeline_id}: {result.error}")
            return False
        if self.event_bus is not None:
            await self.event_bus.emit_async(
                PIPELINE_DELETED, pipeline_id=pipeline_id, canvas_id=canvas_id
            )
        return True

    async def list_widget_links(self, canvas_id: str) -> list[WidgetLink]:
        """Connections between widget nodes, keyed by widget ids."""
        return _widget_links(await self.gateway.list_pipelines_for_canvas(canvas_id))


def _widget_links(pipelines: Sequence[Pipeline]) -> list[WidgetLink]:
    links: list[WidgetLink] = []
    for pipeline in pipelines:
        for conn in pipeline.connections:
            from_node = pipeline.node_by_id(conn.source.node_id)
            to_node = pipeline.node_by_id(conn.target.node_id)
            if (
                from_node is None
                or to_node is None
                or from_node.widget_instance_id is None
                or to_node.widget_instance_id is None
            ):
                continue
            links.append(
                WidgetLink(
                    id=conn.id,
                    pipeline_id=pipeline.id,
                    from_widget_id=from_node.widget_instance_id,
                    from_port=conn.source.port_name,
                    to_widget_id=to_node.widget_instance_id,
                    to_port=conn.target.port_name,
                )
            )
    return links
