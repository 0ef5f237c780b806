"""Pipeline graph schema.

Defines the JSON-friendly models that describe one canvas-scoped data-flow
graph:
- Nodes: widget instances (plus system/transform nodes with no widget)
- Connections: directed edges from a node's output port to another node's
  input port

Field names serialize as camelCase so records stay compatible with the
widget runtime:

    {
      "id": "p-1",
      "canvasId": "canvas-1",
      "name": "Canvas Connections",
      "enabled": true,
      "nodes": [
        {"id": "n-1", "widgetInstanceId": "w-timer", "type": "widget",
         "position": {"x": 50, "y": 50}, "label": "timer"},
        {"id": "n-2", "widgetInstanceId": "w-display", "type": "widget",
         "position": {"x": 250, "y": 50}, "label": "display"}
      ],
      "connections": [
        {"id": "c-1", "from": {"nodeId": "n-1", "portName": "tick"},
         "to": {"nodeId": "n-2", "portName": "value"}}
      ]
    }
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

ANY_PORT_TYPE = "any"

# (from.node_id, from.port_name, to.node_id, to.port_name)
ConnectionKey = tuple[str, str, str, str]


def utc_now() -> datetime:
    return datetime.now(UTC)


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "ignore",
    }

    def to_json_dict(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Position(CamelModel):
    """Authoring-tool layout position. Has no effect on routing."""

    x: float = 0
    y: float = 0


class Port(CamelModel):
    """A named, typed attachment point on a node."""

    name: str
    direction: Literal["input", "output"]
    type: str = Field(default=ANY_PORT_TYPE, description="Free-form payload type")
    description: str | None = None


class Endpoint(CamelModel):
    """One side of a connection."""

    node_id: str
    port_name: str


class PipelineNode(CamelModel):
    """A graph vertex bound to zero or one widget instance."""

    id: str
    widget_instance_id: str | None = None
    type: Literal["widget", "transform", "system"] = "widget"
    position: Position = Field(default_factory=Position)
    label: str | None = None
    inputs: list[Port] | None = None
    outputs: list[Port] | None = None

    def ports(self, direction: Literal["input", "output"]) -> list[Port]:
        """Return the cached ports for *direction* (empty when not cached)."""
        cached = self.inputs if direction == "input" else self.outputs
        return list(cached or [])


class PipelineConnection(CamelModel):
    """A directed edge from an output port to an input port."""

    id: str
    source: Endpoint = Field(..., alias="from")
    target: Endpoint = Field(..., alias="to")
    enabled: bool = True

    @property
    def key(self) -> ConnectionKey:
        return (
            self.source.node_id,
            self.source.port_name,
            self.target.node_id,
            self.target.port_name,
        )

    def touches(self, node_id: str) -> bool:
        """True if either endpoint references *node_id*."""
        return self.source.node_id == node_id or self.target.node_id == node_id


class Pipeline(CamelModel):
    """One canvas-scoped data-flow graph of nodes and connections."""

    id: str
    canvas_id: str
    name: str
    description: str | None = None
    enabled: bool = True
    version: int | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    nodes: list[PipelineNode] = Field(default_factory=list)
    connections: list[PipelineConnection] = Field(default_factory=list)

    def node_by_id(self, node_id: str) -> PipelineNode | None:
        """Return the node with the given id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_for_widget(self, widget_instance_id: str) -> PipelineNode | None:
        """Return the node bound to a widget instance, if any."""
        for node in self.nodes:
            if node.widget_instance_id == widget_instance_id:
                return node
        return None

    def connection_by_id(self, connection_id: str) -> PipelineConnection | None:
        for conn in self.connections:
            if conn.id == connection_id:
                return conn
        return None

    def connections_from(self, node_id: str) -> list[PipelineConnection]:
        """Return connections whose source is the given node."""
        return [c for c in self.connections if c.source.node_id == node_id]

    def connections_to(self, node_id: str) -> list[PipelineConnection]:
        """Return connections whose target is the given node."""
        return [c for c in self.connections if c.target.node_id == node_id]

    def has_connection(self, key: ConnectionKey) -> bool:
        return any(c.key == key for c in self.connections)

    def without_connection(self, connection_id: str) -> Pipeline:
        """Return a copy with the connection removed (unchanged if absent)."""
        return self.model_copy(
            update={
                "connections": [c for c in self.connections if c.id != connection_id],
                "updated_at": utc_now(),
            }
        )

    def without_node(self, node_id: str) -> Pipeline:
        """Return a copy with the node and every connection touching it removed."""
        return self.model_copy(
            update={
                "nodes": [n for n in self.nodes if n.id != node_id],
                "connections": [c for c in self.connections if not c.touches(node_id)],
                "updated_at": utc_now(),
            }
        )


class WidgetRef(CamelModel):
    """A widget instance as referenced by the graph.

    ``manifest`` is the raw capability declaration (v3 ``io`` or legacy
    ``inputs``/``outputs``); see :mod:`canvasflow.core.pipelines.manifest`.
    """

    id: str
    widget_def_id: str = ""
    manifest: dict[str, Any] | None = None


class WidgetLink(CamelModel):
    """Widget-level view of a connection between two widget nodes."""

    id: str
    pipeline_id: str
    from_widget_id: str
    from_port: str
    to_widget_id: str
    to_port: str

    @property
    def key(self) -> ConnectionKey:
        """``(from widget, from port, to widget, to port)``."""
        return (self.from_widget_id, self.from_port, self.to_widget_id, self.to_port)
