"""Structural validation of a pipeline before it is persisted.

:func:`collect_issues` returns every finding with a severity;
:func:`validate_pipeline` returns just the blocking (error) messages, so an
empty list means the pipeline may be saved. Validation never mutates the
pipeline.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from typing import Any, Literal

from .compatibility import are_types_compatible, infer_port_type
from .manifest import Direction, is_default_port_list, normalize_ports
from .schema import (
    CamelModel,
    Endpoint,
    Pipeline,
    PipelineConnection,
    PipelineNode,
    Port,
)

Severity = Literal["error", "warning", "info"]

IssueCode = Literal[
    "INVALID_NODE",
    "DUPLICATE_NODE",
    "DUPLICATE_WIDGET",
    "PORT_NOT_FOUND",
    "PORT_TYPE_MISMATCH",
    "SELF_CONNECTION",
    "DUPLICATE_CONNECTION",
    "CIRCULAR_DEPENDENCY",
    "DISCONNECTED_NODE",
]


class ValidationIssue(CamelModel):
    """A single validation finding."""

    severity: Severity
    code: IssueCode
    message: str
    node_id: str | None = None
    connection_id: str | None = None


def _node_ports(
    node: PipelineNode,
    direction: Direction,
    manifests: Mapping[str, Mapping[str, Any]],
) -> list[Port]:
    """Cached ports, falling back to the widget's manifest when nothing is cached."""
    ports = node.ports(direction)
    if ports or node.widget_instance_id not in manifests:
        return ports
    port_set = normalize_ports(manifests[node.widget_instance_id])
    return list(port_set.inputs if direction == "input" else port_set.outputs)


def _check_nodes(pipeline: Pipeline) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    for node_id, count in Counter(n.id for n in pipeline.nodes).items():
        if count > 1:
            issues.append(
                ValidationIssue(
                    severity="error",
                    code="DUPLICATE_NODE",
                    message=f"Duplicate node ID: '{node_id}'",
                    node_id=node_id,
                )
            )

    widget_counts = Counter(
        n.widget_instance_id for n in pipeline.nodes if n.widget_instance_id is not None
    )
    for widget_id, count in widget_counts.items():
        if count > 1:
            issues.append(
                ValidationIssue(
                    severity="error",
                    code="DUPLICATE_WIDGET",
                    message=f"Widget '{widget_id}' is bound to {count} nodes",
                )
            )

    for node in pipeline.nodes:
        if node.type == "widget" and not node.widget_instance_id:
            issues.append(
                ValidationIssue(
                    severity="error",
                    code="INVALID_NODE",
                    message=f"Node '{node.id}' is a widget node but has no widgetInstanceId",
                    node_id=node.id,
                )
            )

    return issues


def _check_port(
    conn: PipelineConnection,
    node: PipelineNode,
    endpoint: Endpoint,
    direction: Direction,
    manifests: Mapping[str, Mapping[str, Any]],
) -> tuple[Port | None, ValidationIssue | None]:
    """Resolve the endpoint's port; unknown names are accepted when no ports are known."""
    ports = _node_ports(node, direction, manifests)
    for port in ports:
        if port.name == endpoint.port_name:
            return port, None
    if not ports or is_default_port_list(ports, direction):
        return None, None
    available = ", ".join(p.name for p in ports)
    return None, ValidationIssue(
        severity="error",
        code="PORT_NOT_FOUND",
        message=(
            f"{direction.capitalize()} port '{endpoint.port_name}' not found on "
            f"node '{node.id}' (available: {available})"
        ),
        node_id=node.id,
        connection_id=conn.id,
    )


def _check_connection(
    conn: PipelineConnection,
    nodes: Mapping[str, PipelineNode],
    manifests: Mapping[str, Mapping[str, Any]],
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    from_node = nodes.get(conn.source.node_id)
    to_node = nodes.get(conn.target.node_id)

    for endpoint, node, side in (
        (conn.source, from_node, "source"),
        (conn.target, to_node, "target"),
    ):
        if node is None:
            issues.append(
                ValidationIssue(
                    severity="error",
                    code="INVALID_NODE",
                    message=(
                        f"Connection '{conn.id}' references non-existent {side} "
                        f"node: '{endpoint.node_id}'"
                    ),
                    connection_id=conn.id,
                )
            )
    if from_node is None or to_node is None:
        return issues

    if from_node.id == to_node.id:
        issues.append(
            ValidationIssue(
                severity="error",
                code="SELF_CONNECTION",
                message=f"Connection '{conn.id}' creates a self-loop on node '{from_node.id}'",
                node_id=from_node.id,
                connection_id=conn.id,
            )
        )
        return issues

    out_port, out_issue = _check_port(conn, from_node, conn.source, "output", manifests)
    in_port, in_issue = _check_port(conn, to_node, conn.target, "input", manifests)
    issues.extend(i for i in (out_issue, in_issue) if i is not None)

    if out_port is not None and in_port is not None:
        out_type = infer_port_type(out_port.type)
        in_type = infer_port_type(in_port.type)
        if "unknown" not in (out_type, in_type) and not are_types_compatible(
            out_type, in_type
        ):
            issues.append(
                ValidationIssue(
                    severity="warning",
                    code="PORT_TYPE_MISMATCH",
                    message=(
                        f"Type mismatch on connection '{conn.id}': output "
                        f"'{out_port.type}' may not be compatible with input '{in_port.type}'"
                    ),
                    connection_id=conn.id,
                )
            )

    return issues


def _check_duplicates(pipeline: Pipeline) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    seen: set[tuple[str, str, str, str]] = set()
    for conn in pipeline.connections:
        if conn.key in seen:
            issues.append(
                ValidationIssue(
                    severity="error",
                    code="DUPLICATE_CONNECTION",
                    message=(
                        f"Duplicate connection from '{conn.source.port_name}' to "
                        f"'{conn.target.port_name}' ({conn.id})"
                    ),
                    connection_id=conn.id,
                )
            )
        seen.add(conn.key)
    return issues


def find_cycle(pipeline: Pipeline) -> list[str] | None:
    """Return one cycle as a node id path (first node repeated at the end), or None."""
    adjacency: dict[str, list[str]] = {n.id: [] for n in pipeline.nodes}
    for conn in pipeline.connections:
        if conn.source.node_id == conn.target.node_id:
            # Reported separately as SELF_CONNECTION
            continue
        adjacency.setdefault(conn.source.node_id, []).append(conn.target.node_id)

    visited: set[str] = set()
    for start in adjacency:
        if start in visited:
            continue
        path: list[str] = [start]
        on_path: set[str] = {start}
        stack = [iter(adjacency[start])]
        visited.add(start)
        while stack:
            neighbor = next(stack[-1], None)
            if neighbor is None:
                stack.pop()
                on_path.discard(path.pop())
                continue
            if neighbor in on_path:
                return path[path.index(neighbor) :] + [neighbor]
            if neighbor in visited:
                continue
            visited.add(neighbor)
            path.append(neighbor)
            on_path.add(neighbor)
            stack.append(iter(adjacency.get(neighbor, [])))
    return None


def _check_disconnected(pipeline: Pipeline) -> list[ValidationIssue]:
    connected: set[str] = set()
    for conn in pipeline.connections:
        connected.add(conn.source.node_id)
        connected.add(conn.target.node_id)
    return [
        ValidationIssue(
            severity="info",
            code="DISCONNECTED_NODE",
            message=f"Node '{node.label or node.id}' has no connections",
            node_id=node.id,
        )
        for node in pipeline.nodes
        if node.id not in connected
    ]


def collect_issues(
    pipeline: Pipeline,
    manifests: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[ValidationIssue]:
    """Run every check and return all findings.

    Args:
        pipeline: Pipeline to check.
        manifests: Optional widget instance id -> raw manifest, used for
            nodes that have no cached ports.
    """
    manifests = manifests or {}
    nodes = {}
    for node in pipeline.nodes:
        nodes.setdefault(node.id, node)

    issues = _check_nodes(pipeline)
    for conn in pipeline.connections:
        issues.extend(_check_connection(conn, nodes, manifests))
    issues.extend(_check_duplicates(pipeline))

    cycle = find_cycle(pipeline)
    if cycle is not None:
        issues.append(
            ValidationIssue(
                severity="error",
                code="CIRCULAR_DEPENDENCY",
                message=f"Circular dependency detected: {' -> '.join(cycle)}",
            )
        )

    issues.extend(_check_disconnected(pipeline))
    return issues


def validate_pipeline(
    pipeline: Pipeline,
    manifests: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[str]:
    """Return human-readable error messages (empty = valid)."""
    return [
        issue.message
        for issue in collect_issues(pipeline, manifests)
        if issue.severity == "error"
    ]


def validate_new_connection(
    pipeline: Pipeline,
    from_node_id: str,
    from_port: str,
    to_node_id: str,
    to_port: str,
    manifests: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[str]:
    """Validate *pipeline* as if the proposed connection had been added."""
    proposed = PipelineConnection(
        id="proposed-connection",
        source=Endpoint(node_id=from_node_id, port_name=from_port),
        target=Endpoint(node_id=to_node_id, port_name=to_port),
    )
    candidate = pipeline.model_copy(
        update={"connections": [*pipeline.connections, proposed]}
    )
    return validate_pipeline(candidate, manifests)
