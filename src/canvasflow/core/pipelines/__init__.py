"""Pipeline graph model: schema, builder, merge, matching and validation."""

from .builder import (
    BuilderState,
    NoPendingConnectionError,
    PendingEdge,
    PipelineBuilder,
    PipelineBuilderError,
    WidgetPort,
    create_fan_in_pipeline,
    create_fan_out_pipeline,
    create_linear_pipeline,
)
from .compatibility import (
    PortCompatibility,
    are_types_compatible,
    best_connection,
    detect_compatible_ports,
    infer_port_type,
)
from .ids import new_id
from .manifest import PortSet, normalize_ports, parse_manifest, port_names
from .matcher import (
    SuggestedConnection,
    apply_suggestions,
    build_suggested_pipeline,
    suggest_connections,
)
from .merge import merge_pipelines
from .record import (
    RECORD_FORMAT_VERSION,
    PipelineRecord,
    dump_record,
    load_record,
    migrate_record,
)
from .registry import NodeRegistry, grid_position
from .schema import (
    Endpoint,
    Pipeline,
    PipelineConnection,
    PipelineNode,
    Port,
    Position,
    WidgetLink,
    WidgetRef,
)
from .validator import (
    ValidationIssue,
    collect_issues,
    validate_new_connection,
    validate_pipeline,
)

__all__ = [
    "RECORD_FORMAT_VERSION",
    "BuilderState",
    "Endpoint",
    "NoPendingConnectionError",
    "NodeRegistry",
    "PendingEdge",
    "Pipeline",
    "PipelineBuilder",
    "PipelineBuilderError",
    "PipelineConnection",
    "PipelineNode",
    "PipelineRecord",
    "Port",
    "PortCompatibility",
    "PortSet",
    "Position",
    "SuggestedConnection",
    "ValidationIssue",
    "WidgetLink",
    "WidgetPort",
    "WidgetRef",
    "apply_suggestions",
    "are_types_compatible",
    "best_connection",
    "build_suggested_pipeline",
    "collect_issues",
    "create_fan_in_pipeline",
    "create_fan_out_pipeline",
    "create_linear_pipeline",
    "detect_compatible_ports",
    "dump_record",
    "grid_position",
    "infer_port_type",
    "load_record",
    "merge_pipelines",
    "migrate_record",
    "new_id",
    "normalize_ports",
    "parse_manifest",
    "port_names",
    "suggest_connections",
    "validate_new_connection",
    "validate_pipeline",
]
