"""Persisted pipeline record: the versioned envelope written to storage.

The record is a long-term contract. New *optional* fields may be added in
future versions; readers tolerate unknown fields. Older format versions are
upgraded by :func:`migrate_record` before Pydantic validation; newer ones are
rejected.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from packaging.version import Version

from .schema import CamelModel, Pipeline

RECORD_FORMAT = "canvasflow-pipeline"
RECORD_FORMAT_VERSION = "1.0"


class PipelineRecord(CamelModel):
    """Root schema for a stored pipeline."""

    format: Literal["canvasflow-pipeline"] = RECORD_FORMAT
    format_version: str = RECORD_FORMAT_VERSION
    pipeline: Pipeline


def migrate_record(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate a raw record dict to the current format version.

    Returns *data* unchanged if it is already at the current version.
    Raises :class:`ValueError` if the format version is newer than supported.
    """
    version = Version(data.get("formatVersion", data.get("format_version", "1.0")))
    current = Version(RECORD_FORMAT_VERSION)

    if version > current:
        raise ValueError(
            f"Pipeline record format version {version} is newer than supported ({current})"
        )

    if version == current:
        return data

    # Future: add migration steps for older versions here.
    return data


def dump_record(pipeline: Pipeline, *, indent: int | None = None) -> str:
    """Serialize *pipeline* as a JSON record."""
    record = PipelineRecord(pipeline=pipeline)
    return json.dumps(record.to_json_dict(), indent=indent)


def load_record(text: str) -> Pipeline:
    """Parse a JSON record (migrating it if needed) and return its pipeline."""
    data = migrate_record(json.loads(text))
    return PipelineRecord.model_validate(data).pipeline
