"""Parameter checks: guessable identifiers and credentials in URLs."""

from __future__ import annotations

import re

from yaml.nodes import MappingNode, Node

from oaslint.document.nodes import get_str, mapping_get, scalar_value, sequence_items
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_OWASP, RuleFunctionResult

CREDENTIALS = re.compile(
    r"(?i)^.*(client_?secret|token|access_?token|refresh_?token|id_?token|password|secret|api-?key).*$"
)


def _is_id_name(name: str) -> bool:
    # covers id, *_id, *-id and *id
    return name.lower().endswith("id")


def _types(schema: Node | None) -> list[str]:
    _, node = mapping_get(schema, "type")
    if node is None:
        return []
    items = sequence_items(node)
    if items:
        return [str(scalar_value(n)) for n in items]
    return [str(scalar_value(node))]


class NoNumericIds(RuleFunction):
    name = "owaspNoNumericIds"
    category_id = CATEGORY_OWASP

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for param in ctx.doctor.parameters:
            if not _is_id_name(param.name):
                continue
            schema = ctx.doctor.deref(param.schema) if param.schema is not None else None
            # swagger 2 puts the type on the parameter itself
            if schema is not None:
                holder, base_path = schema, f"{param.path}.schema"
            else:
                holder, base_path = param.node, param.path
            if not isinstance(holder, MappingNode) or "integer" not in _types(holder):
                continue
            key, _ = mapping_get(holder, "type")
            results.append(
                result(
                    ctx.rule.message
                    or "don't use numeric IDs, use random IDs that cannot be guessed like UUIDs",
                    key,
                    f"{base_path}.type",
                )
            )
        return results


class NoCredentialsInUrl(RuleFunction):
    name = "owaspNoCredentialsInUrl"
    category_id = CATEGORY_OWASP

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for param in ctx.doctor.parameters:
            if param.location not in ("query", "path") or not CREDENTIALS.match(param.name):
                continue
            key, _ = mapping_get(param.node, "name")
            results.append(
                result(
                    ctx.rule.message
                    or "URL parameters must not contain credentials, passwords, or secrets "
                    f"(`{get_str(param.node, 'name')}`)",
                    key or param.node,
                    f"{param.path}.name",
                )
            )
        return results
