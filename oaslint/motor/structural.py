"""Structural check of a document against the bundled OpenAPI meta-schemas."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import validators
from yaml.nodes import Node

from oaslint.document.nodes import canonical_path, mapping_get, node_at, to_data
from oaslint.document.spec_info import SpecInfo
from oaslint.functions.base import result
from oaslint.models import RuleFunctionResult

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

OAS2_RULE = "oas2-schema"
OAS3_RULE = "oas3-schema"


@lru_cache(maxsize=None)
def load_meta_schema(name: str) -> dict[str, Any]:
    with open(SCHEMA_DIR / f"{name}.yml", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


@lru_cache(maxsize=None)
def _validator(name: str):
    schema = load_meta_schema(name)
    cls = validators.validator_for(schema)
    return cls(schema)


def rule_id_for(spec_info: SpecInfo) -> str | None:
    """The marker rule that switches the check on for this document, if any."""
    if spec_info.is_oas2:
        return OAS2_RULE
    if spec_info.is_oas3:
        return OAS3_RULE
    return None


def check_structure(root: Node, spec_info: SpecInfo) -> list[RuleFunctionResult]:
    """Validate *root* against the meta-schema for its version.

    Raises
    ------
    ValueError
        When the document's version has no meta-schema.
    """
    if spec_info.is_oas2:
        validator = _validator("oas2")
    elif spec_info.is_oas3:
        validator = _validator("oas3")
    else:
        raise ValueError(spec_info.version_error or "unsupported document version")

    data = to_data(root)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    results: list[RuleFunctionResult] = []
    for error in errors:
        segments: list[str | int] = list(error.absolute_path)
        node, depth = node_at(root, segments)
        if depth == len(segments) and segments and isinstance(segments[-1], str):
            parent, _ = node_at(root, segments[:-1])
            key, _ = mapping_get(parent, segments[-1])
            node = key if key is not None else node
        path = canonical_path(segments[:depth])
        results.append(result(f"schema invalid: {error.message}", node, path))
    return results
