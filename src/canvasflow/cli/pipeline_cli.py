"""CLI for working with pipeline files.

All commands print JSON. Pipeline files may be stored records
(``{"format": "canvasflow-pipeline", ...}``) or bare pipeline objects.
"""

import json
import sys
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from canvasflow.core.pipelines.matcher import suggest_connections
from canvasflow.core.pipelines.merge import merge_pipelines
from canvasflow.core.pipelines.record import PipelineRecord, migrate_record
from canvasflow.core.pipelines.schema import Pipeline, WidgetRef
from canvasflow.core.pipelines.validator import collect_issues


def output(data: Any, ctx):
    if ctx.obj.get("pretty"):
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(json.dumps(data))


def fail(message: str):
    click.echo(json.dumps({"error": message}), err=True)
    sys.exit(1)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        fail(f"Could not read {path}: {e}")


def _load_pipeline(path: Path) -> Pipeline:
    data = _read_json(path)
    try:
        if isinstance(data, dict) and "format" in data:
            return PipelineRecord.model_validate(migrate_record(data)).pipeline
        return Pipeline.model_validate(data)
    except (ValidationError, ValueError) as e:
        fail(f"Invalid pipeline in {path}: {e}")


@click.group()
@click.option("--pretty", is_flag=True, help="Pretty-print JSON output")
@click.pass_context
def cli(ctx, pretty):
    """Build, merge and validate widget pipelines."""
    ctx.ensure_object(dict)
    ctx.obj["pretty"] = pretty


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def validate(ctx, file):
    """Validate a pipeline file. Exits 1 when there are errors."""
    pipeline = _load_pipeline(file)
    issues = collect_issues(pipeline)
    errors = [i.message for i in issues if i.severity == "error"]
    output(
        {
            "valid": not errors,
            "errors": errors,
            "issues": [i.to_json_dict() for i in issues],
        },
        ctx,
    )
    if errors:
        sys.exit(1)


@cli.command()
@click.argument("base", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("addition", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def merge(ctx, base, addition):
    """Merge ADDITION into BASE and print the merged pipeline record."""
    merged = merge_pipelines(_load_pipeline(base), _load_pipeline(addition))
    output(PipelineRecord(pipeline=merged).to_json_dict(), ctx)


@cli.command()
@click.argument(
    "widgets_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.pass_context
def suggest(ctx, widgets_file):
    """Suggest connections for a JSON list of widgets."""
    data = _read_json(widgets_file)
    if not isinstance(data, list):
        fail(f"{widgets_file} must contain a JSON list of widgets")
    try:
        widgets = [WidgetRef.model_validate(w) for w in data]
    except ValidationError as e:
        fail(f"Invalid widget in {widgets_file}: {e}")
    suggestions = suggest_connections(widgets)
    output({"suggestions": [s.to_json_dict() for s in suggestions]}, ctx)


@cli.command()
@click.option("--host", default=None, help="Bind host (default: CANVASFLOW_HOST)")
@click.option("--port", default=None, type=int, help="Bind port (default: CANVASFLOW_PORT)")
@click.option("--no-log-file", is_flag=True, help="Log to the console only")
def serve(host, port, no_log_file):
    """Run the HTTP API server."""
    from canvasflow.server.api_server import run_api_server
    from canvasflow.server.logs_config import configure_logging

    configure_logging(log_to_file=not no_log_file)
    run_api_server(host=host, port=port)


def main():
    cli()


if __name__ == "__main__":
    main()
