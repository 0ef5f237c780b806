"""Node registry: one graph node per widget instance."""

from __future__ import annotations

import logging

from .ids import IdFactory, new_id
from .manifest import normalize_ports
from .schema import Pipeline, PipelineNode, Position, WidgetRef

logger = logging.getLogger(__name__)

# 4-column grid layout for auto-created nodes (cosmetic only)
GRID_COLUMNS = 4
GRID_ORIGIN = 50
GRID_COLUMN_WIDTH = 200
GRID_ROW_HEIGHT = 150


def grid_position(count: int) -> Position:
    """Layout position for the node created after *count* existing nodes."""
    return Position(
        x=GRID_ORIGIN + (count % GRID_COLUMNS) * GRID_COLUMN_WIDTH,
        y=GRID_ORIGIN + (count // GRID_COLUMNS) * GRID_ROW_HEIGHT,
    )


def new_widget_node(
    widget: WidgetRef,
    count: int,
    label: str | None = None,
    id_factory: IdFactory = new_id,
) -> PipelineNode:
    """Allocate a widget node at the grid slot for *count*.

    Ports are cached on the node only when the widget carries a manifest.
    """
    node = PipelineNode(
        id=id_factory(),
        widget_instance_id=widget.id,
        type="widget",
        position=grid_position(count),
        label=label if label is not None else widget.widget_def_id,
    )
    if widget.manifest is not None:
        ports = normalize_ports(widget.manifest)
        node.inputs = list(ports.inputs)
        node.outputs = list(ports.outputs)
    return node


class NodeRegistry:
    """Maps widget instances to graph nodes, creating nodes on first reference.

    The registry appends new nodes to the ``nodes`` list it was given, so a
    registry built with :meth:`for_pipeline` edits that pipeline in place.
    """

    def __init__(
        self,
        nodes: list[PipelineNode] | None = None,
        id_factory: IdFactory = new_id,
    ):
        self._nodes: list[PipelineNode] = nodes if nodes is not None else []
        self._id_factory = id_factory
        self._by_widget: dict[str, PipelineNode] = {}
        for node in self._nodes:
            if node.widget_instance_id is not None:
                self._by_widget.setdefault(node.widget_instance_id, node)

    @classmethod
    def for_pipeline(
        cls, pipeline: Pipeline, id_factory: IdFactory = new_id
    ) -> NodeRegistry:
        """Registry over *pipeline*'s node list (new nodes land in the pipeline)."""
        return cls(pipeline.nodes, id_factory=id_factory)

    @property
    def nodes(self) -> list[PipelineNode]:
        return self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, widget_id: object) -> bool:
        return widget_id in self._by_widget

    def get(self, widget_id: str) -> PipelineNode | None:
        return self._by_widget.get(widget_id)

    def ensure_node(self, widget: WidgetRef, label: str | None = None) -> PipelineNode:
        """Return the node for *widget*, creating it on first reference.

        Repeated calls with the same ``widget.id`` return the same node object.
        """
        existing = self._by_widget.get(widget.id)
        if existing is not None:
            return existing

        node = new_widget_node(
            widget, len(self._nodes), label=label, id_factory=self._id_factory
        )
        self._nodes.append(node)
        self._by_widget[widget.id] = node
        logger.debug(f"Registered node {node.id} for widget {widget.id}")
        return node
