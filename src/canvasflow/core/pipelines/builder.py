"""Connection builder: turns ``connect(...).to(...)`` chains into edges.

The builder is a two-state machine. ``Idle`` has no pending edge;
``PendingFrom`` remembers the source widget and output port of the edge being
built. State is an explicit immutable value (:class:`BuilderState`) threaded
through the transition functions below; :class:`PipelineBuilder` is the
fluent facade over them.

Example:

    pipeline = (
        PipelineBuilder.create("timer to display", "canvas-1")
        .connect(timer, "tick")
        .to(display, "value")
        .build()
    )
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from .ids import IdFactory, new_id
from .registry import new_widget_node
from .schema import (
    Endpoint,
    Pipeline,
    PipelineConnection,
    PipelineNode,
    WidgetRef,
    utc_now,
)

logger = logging.getLogger(__name__)


class PipelineBuilderError(Exception):
    """Raised when the builder is used incorrectly."""


class NoPendingConnectionError(PipelineBuilderError):
    """Raised when ``to()`` is called without a preceding ``connect()``."""


@dataclass(frozen=True)
class PendingEdge:
    """Source half of an edge waiting for its target."""

    widget_id: str
    node_id: str
    port: str


@dataclass(frozen=True)
class BuilderState:
    """Immutable builder state: the pipeline so far, widget -> node, pending edge."""

    pipeline: Pipeline
    node_map: Mapping[str, PipelineNode] = field(default_factory=dict)
    pending: PendingEdge | None = None
    id_factory: IdFactory = new_id

    @property
    def is_pending(self) -> bool:
        return self.pending is not None


def initial_state(
    name: str,
    canvas_id: str,
    *,
    pipeline_id: str | None = None,
    id_factory: IdFactory = new_id,
) -> BuilderState:
    """Idle state over a new, empty pipeline."""
    pipeline = Pipeline(id=pipeline_id or id_factory(), canvas_id=canvas_id, name=name)
    return BuilderState(pipeline=pipeline, id_factory=id_factory)


def state_from_pipeline(pipeline: Pipeline, id_factory: IdFactory = new_id) -> BuilderState:
    """Idle state that continues editing a copy of an existing pipeline."""
    pipeline = pipeline.model_copy(deep=True)
    node_map: dict[str, PipelineNode] = {}
    for node in pipeline.nodes:
        if node.widget_instance_id is not None:
            node_map.setdefault(node.widget_instance_id, node)
    return BuilderState(pipeline=pipeline, node_map=node_map, id_factory=id_factory)


def ensure_node(
    state: BuilderState, widget: WidgetRef, label: str | None = None
) -> tuple[BuilderState, PipelineNode]:
    """Return the node for *widget*, adding one to the pipeline on first reference."""
    existing = state.node_map.get(widget.id)
    if existing is not None:
        return state, existing

    node = new_widget_node(
        widget, len(state.pipeline.nodes), label=label, id_factory=state.id_factory
    )
    pipeline = state.pipeline.model_copy(
        update={"nodes": [*state.pipeline.nodes, node]}
    )
    node_map = {**state.node_map, widget.id: node}
    return replace(state, pipeline=pipeline, node_map=node_map), node


def connect(state: BuilderState, widget: WidgetRef, output_port: str) -> BuilderState:
    """Idle -> PendingFrom. A second connect() replaces the pending source."""
    state, node = ensure_node(state, widget)
    if state.pending is not None:
        logger.debug(
            f"Replacing pending source {state.pending.widget_id}.{state.pending.port} "
            f"with {widget.id}.{output_port}"
        )
    return replace(
        state,
        pending=PendingEdge(widget_id=widget.id, node_id=node.id, port=output_port),
    )


def add_connection(
    state: BuilderState,
    from_node_id: str,
    from_port: str,
    to_node_id: str,
    to_port: str,
) -> BuilderState:
    """Append an edge between two nodes; an identical edge is silently skipped."""
    key = (from_node_id, from_port, to_node_id, to_port)
    if state.pipeline.has_connection(key):
        logger.debug(f"Skipping duplicate connection {key}")
        return state

    connection = PipelineConnection(
        id=state.id_factory(),
        source=Endpoint(node_id=from_node_id, port_name=from_port),
        target=Endpoint(node_id=to_node_id, port_name=to_port),
    )
    pipeline = state.pipeline.model_copy(
        update={
            "connections": [*state.pipeline.connections, connection],
            "updated_at": utc_now(),
        }
    )
    return replace(state, pipeline=pipeline)


def complete(state: BuilderState, widget: WidgetRef, input_port: str) -> BuilderState:
    """PendingFrom -> Idle, creating the edge to *widget*.*input_port*."""
    pending = state.pending
    if pending is None:
        raise NoPendingConnectionError(
            "No pending connection: call connect() before to()"
        )
    state, node = ensure_node(state, widget)
    state = add_connection(state, pending.node_id, pending.port, node.id, input_port)
    return replace(state, pending=None)


def disconnect(
    state: BuilderState,
    from_widget: WidgetRef,
    from_port: str,
    to_widget: WidgetRef,
    to_port: str,
) -> BuilderState:
    """Remove every connection matching the 4-tuple, enabled or not."""
    from_node = state.node_map.get(from_widget.id)
    to_node = state.node_map.get(to_widget.id)
    if from_node is None or to_node is None:
        return state
    key = (from_node.id, from_port, to_node.id, to_port)
    kept = [c for c in state.pipeline.connections if c.key != key]
    if len(kept) == len(state.pipeline.connections):
        return state
    pipeline = state.pipeline.model_copy(
        update={"connections": kept, "updated_at": utc_now()}
    )
    return replace(state, pipeline=pipeline)


def clear_connections(state: BuilderState) -> BuilderState:
    pipeline = state.pipeline.model_copy(
        update={"connections": [], "updated_at": utc_now()}
    )
    return replace(state, pipeline=pipeline)


def update_fields(state: BuilderState, **fields) -> BuilderState:
    """Set top-level pipeline fields (name, description, enabled)."""
    pipeline = state.pipeline.model_copy(update={**fields, "updated_at": utc_now()})
    return replace(state, pipeline=pipeline)


def finalize(state: BuilderState) -> Pipeline:
    """Snapshot the pipeline. A pending half-edge is dropped, never persisted."""
    if state.pending is not None:
        logger.warning(
            f"Discarding incomplete connection from "
            f"{state.pending.widget_id}.{state.pending.port}: to() was never called"
        )
    return state.pipeline.model_copy(deep=True)


class PipelineBuilder:
    """Fluent facade over the builder transitions. Every method returns ``self``."""

    def __init__(self, state: BuilderState):
        self._state = state

    @classmethod
    def create(
        cls,
        name: str,
        canvas_id: str,
        *,
        pipeline_id: str | None = None,
        id_factory: IdFactory = new_id,
    ) -> PipelineBuilder:
        return cls(
            initial_state(
                name, canvas_id, pipeline_id=pipeline_id, id_factory=id_factory
            )
        )

    @classmethod
    def from_pipeline(
        cls, pipeline: Pipeline, id_factory: IdFactory = new_id
    ) -> PipelineBuilder:
        return cls(state_from_pipeline(pipeline, id_factory=id_factory))

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._state.is_pending

    def ensure_node(self, widget: WidgetRef, label: str | None = None) -> PipelineNode:
        self._state, node = ensure_node(self._state, widget, label)
        return node

    def add_widget(self, widget: WidgetRef, label: str | None = None) -> PipelineBuilder:
        self.ensure_node(widget, label)
        return self

    def name(self, name: str) -> PipelineBuilder:
        self._state = update_fields(self._state, name=name)
        return self

    def description(self, description: str | None) -> PipelineBuilder:
        self._state = update_fields(self._state, description=description)
        return self

    def enabled(self, enabled: bool = True) -> PipelineBuilder:
        self._state = update_fields(self._state, enabled=enabled)
        return self

    def connect(self, widget: WidgetRef, output_port: str) -> PipelineBuilder:
        self._state = connect(self._state, widget, output_port)
        return self

    def to(self, widget: WidgetRef, input_port: str) -> PipelineBuilder:
        self._state = complete(self._state, widget, input_port)
        return self

    def disconnect(
        self,
        from_widget: WidgetRef,
        from_port: str,
        to_widget: WidgetRef,
        to_port: str,
    ) -> PipelineBuilder:
        self._state = disconnect(self._state, from_widget, from_port, to_widget, to_port)
        return self

    def clear_connections(self) -> PipelineBuilder:
        self._state = clear_connections(self._state)
        return self

    def build(self) -> Pipeline:
        return finalize(self._state)


@dataclass(frozen=True)
class WidgetPort:
    """A widget together with one of its port names."""

    widget: WidgetRef
    port: str


def create_fan_out_pipeline(
    name: str,
    canvas_id: str,
    source: WidgetPort,
    targets: Iterable[WidgetPort],
    *,
    id_factory: IdFactory = new_id,
) -> Pipeline:
    """One output feeding many inputs."""
    builder = PipelineBuilder.create(name, canvas_id, id_factory=id_factory)
    for target in targets:
        builder.connect(source.widget, source.port).to(target.widget, target.port)
    return builder.build()


def create_fan_in_pipeline(
    name: str,
    canvas_id: str,
    sources: Iterable[WidgetPort],
    target: WidgetPort,
    *,
    id_factory: IdFactory = new_id,
) -> Pipeline:
    """Many outputs feeding one input."""
    builder = PipelineBuilder.create(name, canvas_id, id_factory=id_factory)
    for source in sources:
        builder.connect(source.widget, source.port).to(target.widget, target.port)
    return builder.build()


def create_linear_pipeline(
    name: str,
    canvas_id: str,
    widgets: Iterable[WidgetRef],
    *,
    output_port: str = "output",
    input_port: str = "input",
    id_factory: IdFactory = new_id,
) -> Pipeline:
    """Chain widgets so each one's *output_port* feeds the next one's *input_port*."""
    builder = PipelineBuilder.create(name, canvas_id, id_factory=id_factory)
    previous: WidgetRef | None = None
    for widget in widgets:
        builder.add_widget(widget)
        if previous is not None:
            builder.connect(previous, output_port).to(widget, input_port)
        previous = widget
    return builder.build()
