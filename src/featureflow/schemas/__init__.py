"""Featureflow JSON Schema definitions and validation utilities.

Schemas:
    - pipeline.schema.json: Stage graph, role registry and retry mapping
    - document.schema.json: Persisted coordination document

Usage:
    from featureflow.schemas import validate_pipeline

    with open("pipeline.json") as f:
        data = json.load(f)
    validate_pipeline(data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from functools import cache
from importlib.resources import files
from typing import Any

import jsonschema


@cache
def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'pipeline.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("featureflow.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_pipeline_schema() -> dict[str, Any]:
    return _load_schema("pipeline.schema.json")


def get_document_schema() -> dict[str, Any]:
    return _load_schema("document.schema.json")


def validate_pipeline(data: dict[str, Any]) -> None:
    """Validate a pipeline configuration against the schema.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_pipeline_schema())


def validate_document(data: dict[str, Any]) -> None:
    """Validate a persisted document against the schema.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_document_schema())


__all__ = [
    "get_pipeline_schema",
    "get_document_schema",
    "validate_pipeline",
    "validate_document",
]
