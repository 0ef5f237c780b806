"""Type-aware port compatibility scoring.

A ranked complement to the name-only matcher in :mod:`.matcher`: ports are
mapped to a canonical data type, checked against a compatibility table and
scored by type fit, name similarity and shared name domain
(``timer.tick`` -> ``timer.reset``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel

from .manifest import port_names
from .schema import Port

PortDataType = Literal[
    "event",
    "string",
    "number",
    "boolean",
    "array",
    "object",
    "any",
    "color",
    "date",
    "unknown",
]

_TYPE_ALIASES: dict[str, PortDataType] = {
    "string": "string",
    "text": "string",
    "number": "number",
    "int": "number",
    "float": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "array": "array",
    "list": "array",
    "object": "object",
    "json": "object",
    "event": "event",
    "trigger": "event",
    "signal": "event",
    "any": "any",
    "*": "any",
    "color": "color",
    "hex": "color",
    "date": "date",
    "datetime": "date",
    "timestamp": "date",
}

# Keyword hints, checked in order; first hit wins.
_DESCRIPTION_HINTS: list[tuple[tuple[str, ...], PortDataType]] = [
    (("text", "string", "message"), "string"),
    (("number", "count", "value", "progress"), "number"),
    (("toggle", "enabled", "active"), "boolean"),
    (("list", "items", "array"), "array"),
    (("data", "state", "config"), "object"),
    (("click", "trigger", "press"), "event"),
    (("color", "rgb", "hex"), "color"),
]

_NAME_HINTS: list[tuple[tuple[str, ...], PortDataType]] = [
    (("click", "press", "trigger"), "event"),
    (("progress", "value", "count", "tick", "timer"), "number"),
    (("text", "message", "content", "title", "label", "name"), "string"),
    (("enabled", "active", "visible"), "boolean"),
    (("data", "state", "config"), "object"),
    (("color", "rgb"), "color"),
]

TYPE_COMPATIBILITY: dict[str, tuple[str, ...]] = {
    "event": ("event", "any"),
    "string": ("string", "any", "color"),
    "number": ("number", "any", "boolean"),
    "boolean": ("boolean", "any", "number"),
    "array": ("array", "any", "object"),
    "object": ("object", "any", "array"),
    "any": ("any", "string", "number", "boolean", "array", "object", "event", "color", "date"),
    "color": ("color", "string", "any"),
    "date": ("date", "string", "number", "any"),
    "unknown": ("any", "unknown"),
}


class PortCompatibility(BaseModel):
    """Score for wiring one output port into one input port."""

    output: Port
    input: Port
    score: float
    level: Literal["exact", "convertible", "incompatible"]
    reason: str
    conversion: str | None = None


def _first_hint(text: str, hints: list[tuple[tuple[str, ...], PortDataType]]) -> PortDataType:
    for keywords, data_type in hints:
        if any(k in text for k in keywords):
            return data_type
    return "unknown"


def infer_port_type(type_str: str | None, description: str | None = None) -> PortDataType:
    """Map a declared type string (or, failing that, a description) to a canonical type."""
    declared = (type_str or "").lower()
    if declared in _TYPE_ALIASES:
        return _TYPE_ALIASES[declared]
    return _first_hint((description or "").lower(), _DESCRIPTION_HINTS)


def infer_type_from_name(name: str) -> PortDataType:
    """Guess a canonical type from port naming conventions."""
    lower = name.lower()
    if lower.endswith((".started", ".stopped", ".complete")):
        return "event"
    hinted = _first_hint(lower, _NAME_HINTS)
    if hinted != "unknown":
        return hinted
    if lower.startswith(("is", "has", "can")):
        return "boolean"
    return "unknown"


def canonical_type(port: Port) -> PortDataType:
    """Canonical type of a normalized port.

    Ports left at the untyped default are typed from their name.
    """
    if port.type == "any" and not port.description:
        return infer_type_from_name(port.name)
    inferred = infer_port_type(port.type, port.description)
    if inferred == "unknown":
        return infer_type_from_name(port.name)
    return inferred


def are_types_compatible(output_type: str, input_type: str) -> bool:
    if output_type == input_type or "any" in (output_type, input_type):
        return True
    return input_type in TYPE_COMPATIBILITY.get(output_type, ())


def _keywords(name: str) -> list[str]:
    return [k.lower() for k in re.split(r"[.\-_]+|(?<=[a-z])(?=[A-Z])", name) if k]


def name_similarity(a: str, b: str) -> float:
    """1.0 for equal names, 0.7 for containment, else shared-keyword ratio."""
    flat_a = re.sub(r"[.\-_]", "", a.lower())
    flat_b = re.sub(r"[.\-_]", "", b.lower())
    if flat_a == flat_b:
        return 1.0
    if flat_a in flat_b or flat_b in flat_a:
        return 0.7
    words_a = _keywords(a)
    words_b = _keywords(b)
    common = [k for k in words_a if k in words_b]
    if not common:
        return 0.0
    return len(common) / max(len(words_a), len(words_b))


def score_ports(output: Port, input: Port) -> PortCompatibility:
    out_type = canonical_type(output)
    in_type = canonical_type(input)

    if not are_types_compatible(out_type, in_type):
        return PortCompatibility(
            output=output,
            input=input,
            score=0.0,
            level="incompatible",
            reason=f"Type mismatch: {out_type} -> {in_type}",
        )

    conversion = None
    if out_type == in_type:
        score = 0.5
        level = "exact"
        reason = "Exact type match"
    else:
        score = 0.3
        level = "convertible"
        reason = f"Convertible: {out_type} -> {in_type}"
        conversion = f"convert_{out_type}_to_{in_type}"

    similarity = name_similarity(output.name, input.name)
    score += similarity * 0.3
    if similarity > 0.7:
        reason += ", names match"

    if output.name.split(".")[0] == input.name.split(".")[0]:
        score += 0.2
        reason += ", same domain"

    return PortCompatibility(
        output=output,
        input=input,
        score=min(1.0, score),
        level=level,
        reason=reason,
        conversion=conversion,
    )


def detect_compatible_ports(
    manifest_a: Mapping[str, Any] | None,
    manifest_b: Mapping[str, Any] | None,
) -> list[PortCompatibility]:
    """Compatible pairs of declared ports in both directions, best first."""
    ports_a = port_names(manifest_a)
    ports_b = port_names(manifest_b)
    results: list[PortCompatibility] = []
    for outputs, inputs in ((ports_a.outputs, ports_b.inputs), (ports_b.outputs, ports_a.inputs)):
        for output in outputs:
            for input_ in inputs:
                compat = score_ports(output, input_)
                if compat.score > 0:
                    results.append(compat)
    return sorted(results, key=lambda c: c.score, reverse=True)


def best_connection(
    manifest_a: Mapping[str, Any] | None,
    manifest_b: Mapping[str, Any] | None,
) -> PortCompatibility | None:
    compatibilities = detect_compatible_ports(manifest_a, manifest_b)
    return compatibilities[0] if compatibilities else None
