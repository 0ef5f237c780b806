"""Merge two independently authored pipelines into one.

Nodes are deduplicated by widget identity, connections by their resolved
``(from node, from port, to node, to port)`` tuple. Merging a pipeline with
itself adds nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime

from .ids import IdFactory, new_id
from .schema import (
    ConnectionKey,
    Endpoint,
    Pipeline,
    PipelineConnection,
    PipelineNode,
    utc_now,
)

logger = logging.getLogger(__name__)


def _merge_nodes(
    base: Pipeline, addition: Pipeline, id_factory: IdFactory
) -> tuple[list[PipelineNode], dict[str, str]]:
    """Return merged nodes and the addition node id -> merged node id remap."""
    merged = list(base.nodes)
    remap: dict[str, str] = {}
    base_ids = {n.id for n in base.nodes}
    by_widget: dict[str, str] = {
        n.widget_instance_id: n.id
        for n in reversed(base.nodes)
        if n.widget_instance_id is not None
    }

    for node in addition.nodes:
        if node.widget_instance_id is not None:
            if node.widget_instance_id in by_widget:
                remap[node.id] = by_widget[node.widget_instance_id]
                continue
        elif node.id in base_ids:
            # Same system node already present in base
            remap[node.id] = node.id
            continue
        clone = node.model_copy(deep=True, update={"id": id_factory()})
        remap[node.id] = clone.id
        merged.append(clone)
        if clone.widget_instance_id is not None:
            by_widget[clone.widget_instance_id] = clone.id

    return merged, remap


def _merge_connections(
    base: Pipeline,
    addition: Pipeline,
    remap: dict[str, str],
    id_factory: IdFactory,
) -> list[PipelineConnection]:
    merged = list(base.connections)
    seen: set[ConnectionKey] = {c.key for c in base.connections}

    for conn in addition.connections:
        from_node = remap.get(conn.source.node_id, conn.source.node_id)
        to_node = remap.get(conn.target.node_id, conn.target.node_id)
        key = (from_node, conn.source.port_name, to_node, conn.target.port_name)
        if key in seen:
            continue
        seen.add(key)
        merged.append(
            conn.model_copy(
                update={
                    "id": id_factory(),
                    "source": Endpoint(node_id=from_node, port_name=conn.source.port_name),
                    "target": Endpoint(node_id=to_node, port_name=conn.target.port_name),
                }
            )
        )

    return merged


def merge_pipelines(
    base: Pipeline,
    addition: Pipeline,
    *,
    id_factory: IdFactory | None = None,
    now: datetime | None = None,
) -> Pipeline:
    """Combine *addition* into a copy of *base*.

    - An addition node whose ``widget_instance_id`` already has a node in
      *base* is not added; its connections are redirected to the base node.
    - A widget-less (system) addition node whose id already exists in
      *base* maps onto that node.
    - Every other addition node is cloned with a fresh id.
    - Addition connections are resolved through that remap (ids with no
      entry are kept as-is) and skipped when an equivalent edge exists.

    *base*'s own nodes and connections are never mutated or renumbered.
    """
    id_factory = id_factory or new_id
    nodes, remap = _merge_nodes(base, addition, id_factory)
    connections = _merge_connections(base, addition, remap, id_factory)

    added_nodes = len(nodes) - len(base.nodes)
    added_connections = len(connections) - len(base.connections)
    logger.info(
        f"Merged pipeline {addition.id} into {base.id}: "
        f"{added_nodes} new nodes, {added_connections} new connections"
    )

    return base.model_copy(
        update={
            "nodes": nodes,
            "connections": connections,
            "updated_at": now or utc_now(),
        }
    )
