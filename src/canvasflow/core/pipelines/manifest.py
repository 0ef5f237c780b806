"""Port normalization for widget manifests.

Widgets declare their capabilities in one of two shapes:

- v3 ``io`` format: ``io.inputs`` / ``io.outputs`` are ordered lists of bare
  strings or objects ``{id | name, type?, payloadType?, description?}``.
- legacy format: ``inputs`` / ``outputs`` map a port name to a schema object.

A raw manifest is classified once by :func:`parse_manifest` into one of the
variants below, and :func:`normalize_ports` turns any variant into the single
canonical :class:`PortSet`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from .schema import ANY_PORT_TYPE, Port

logger = logging.getLogger(__name__)

DEFAULT_INPUT_NAME = "input"
DEFAULT_OUTPUT_NAME = "output"

Direction = Literal["input", "output"]


@dataclass(frozen=True)
class IoManifest:
    """v3 manifest: ordered port entries under ``io``."""

    inputs: tuple[Any, ...] = ()
    outputs: tuple[Any, ...] = ()
    kind: Literal["io"] = "io"
    # Some manifests carry both shapes; legacy maps are appended after io ports.
    legacy: LegacyManifest | None = None


@dataclass(frozen=True)
class LegacyManifest:
    """Legacy manifest: port name -> schema object."""

    inputs: Mapping[str, Any] = field(default_factory=dict)
    outputs: Mapping[str, Any] = field(default_factory=dict)
    kind: Literal["legacy"] = "legacy"


@dataclass(frozen=True)
class EmptyManifest:
    """Manifest declaring no ports at all."""

    kind: Literal["empty"] = "empty"


WidgetManifest = IoManifest | LegacyManifest | EmptyManifest


@dataclass(frozen=True)
class PortSet:
    """Canonical, ordered ports of one widget."""

    inputs: tuple[Port, ...]
    outputs: tuple[Port, ...]

    def names(self, direction: Direction) -> list[str]:
        ports = self.inputs if direction == "input" else self.outputs
        return [p.name for p in ports]


def _as_sequence(value: Any) -> tuple[Any, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return ()


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    return {}


def parse_manifest(data: Mapping[str, Any] | None) -> WidgetManifest:
    """Classify a raw manifest dict into a manifest variant."""
    if not data:
        return EmptyManifest()

    legacy: LegacyManifest | None = None
    legacy_inputs = _as_mapping(data.get("inputs"))
    legacy_outputs = _as_mapping(data.get("outputs"))
    if legacy_inputs or legacy_outputs:
        legacy = LegacyManifest(inputs=legacy_inputs, outputs=legacy_outputs)

    io = data.get("io")
    if isinstance(io, Mapping):
        return IoManifest(
            inputs=_as_sequence(io.get("inputs")),
            outputs=_as_sequence(io.get("outputs")),
            legacy=legacy,
        )
    if legacy is not None:
        return legacy
    return EmptyManifest()


def _io_port(entry: Any, direction: Direction) -> Port | None:
    if isinstance(entry, str):
        return Port(name=entry, direction=direction)
    if not isinstance(entry, Mapping):
        return None
    name = entry.get("id") or entry.get("name")
    if not name:
        logger.debug(f"Skipping {direction} port entry without id or name: {entry}")
        return None
    return Port(
        name=name,
        direction=direction,
        type=entry.get("type") or entry.get("payloadType") or ANY_PORT_TYPE,
        description=entry.get("description"),
    )


def _legacy_port(name: str, schema: Any, direction: Direction) -> Port:
    if not isinstance(schema, Mapping):
        return Port(name=name, direction=direction)
    return Port(
        name=name,
        direction=direction,
        type=schema.get("type") or ANY_PORT_TYPE,
        description=schema.get("description"),
    )


def _normalize_io(manifest: IoManifest, direction: Direction) -> list[Port]:
    entries = manifest.inputs if direction == "input" else manifest.outputs
    ports = [p for p in (_io_port(e, direction) for e in entries) if p is not None]
    if manifest.legacy is not None:
        ports.extend(_normalize_legacy(manifest.legacy, direction))
    return ports


def _normalize_legacy(manifest: LegacyManifest, direction: Direction) -> list[Port]:
    schemas = manifest.inputs if direction == "input" else manifest.outputs
    return [_legacy_port(name, schema, direction) for name, schema in schemas.items()]


def _dedupe(ports: list[Port]) -> tuple[Port, ...]:
    seen: set[str] = set()
    unique: list[Port] = []
    for port in ports:
        if port.name in seen:
            continue
        seen.add(port.name)
        unique.append(port)
    return tuple(unique)


def declared_ports(manifest: WidgetManifest) -> PortSet:
    """Return only the ports the manifest actually declares."""
    if isinstance(manifest, IoManifest):
        return PortSet(
            inputs=_dedupe(_normalize_io(manifest, "input")),
            outputs=_dedupe(_normalize_io(manifest, "output")),
        )
    if isinstance(manifest, LegacyManifest):
        return PortSet(
            inputs=_dedupe(_normalize_legacy(manifest, "input")),
            outputs=_dedupe(_normalize_legacy(manifest, "output")),
        )
    return PortSet(inputs=(), outputs=())


def default_ports() -> PortSet:
    """The fallback port for each direction a widget leaves empty."""
    return PortSet(
        inputs=(Port(name=DEFAULT_INPUT_NAME, direction="input"),),
        outputs=(Port(name=DEFAULT_OUTPUT_NAME, direction="output"),),
    )


def normalize_ports(manifest: WidgetManifest | Mapping[str, Any] | None) -> PortSet:
    """Normalize a manifest (raw dict or parsed variant) into a PortSet.

    The fallback applies per direction: a widget declaring no inputs gets one
    default input named ``"input"``, and one declaring no outputs gets one
    default output named ``"output"``.
    """
    if not isinstance(manifest, (IoManifest, LegacyManifest, EmptyManifest)):
        manifest = parse_manifest(manifest)
    declared = declared_ports(manifest)
    defaults = default_ports()
    return PortSet(
        inputs=declared.inputs or defaults.inputs,
        outputs=declared.outputs or defaults.outputs,
    )


def port_names(manifest: WidgetManifest | Mapping[str, Any] | None) -> PortSet:
    """Like :func:`normalize_ports` but without the default-port fallback.

    A name declared in both the io and legacy shapes appears once.
    """
    if not isinstance(manifest, (IoManifest, LegacyManifest, EmptyManifest)):
        manifest = parse_manifest(manifest)
    return declared_ports(manifest)


def is_default_port_list(ports: list[Port], direction: Direction) -> bool:
    """True if *ports* is exactly the synthesized fallback for *direction*."""
    expected = DEFAULT_INPUT_NAME if direction == "input" else DEFAULT_OUTPUT_NAME
    return (
        len(ports) == 1
        and ports[0].name == expected
        and ports[0].type == ANY_PORT_TYPE
    )
