"""``oasSchemaCheck``: schema types are known and their constraints are coherent."""

from __future__ import annotations

from yaml.nodes import Node, ScalarNode

from oaslint.document.doctor import DSchema
from oaslint.document.nodes import (
    is_number_node,
    mapping_get,
    mapping_items,
    scalar_value,
    sequence_items,
)
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_SCHEMAS, RuleFunctionResult

KNOWN_TYPES = ("string", "integer", "number", "boolean", "array", "object", "null")

# type -> (lower, upper) pairs, each checked for sign and order
_BOUNDS = {
    "string": [("minLength", "maxLength")],
    "array": [("minItems", "maxItems"), ("minContains", "maxContains")],
    "object": [("minProperties", "maxProperties")],
}


def _number(schema: DSchema, key: str) -> tuple[Node | None, float | None]:
    _, node = mapping_get(schema.node, key)
    if is_number_node(node):
        return node, scalar_value(node)
    return node, None


class SchemaTypeCheck(RuleFunction):
    name = "oasSchemaCheck"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        known = KNOWN_TYPES + (("file",) if ctx.doctor.spec_info.is_oas2 else ())
        results: list[RuleFunctionResult] = []
        for schema in ctx.doctor.schemas:
            if ctx.cancelled:
                break
            _, type_node = mapping_get(schema.node, "type")
            types = schema.types
            for t in types:
                if t not in known:
                    results.append(
                        result(f"unknown schema type: `{t}`", type_node, f"{schema.path}.type")
                    )
            if "integer" in types or "number" in types:
                results.extend(self._numeric(schema))
            for t, pairs in _BOUNDS.items():
                if t in types:
                    for lower, upper in pairs:
                        results.extend(self._bounded(schema, lower, upper))
            if "object" in types:
                results.extend(self._required(schema))
        return results

    @staticmethod
    def _numeric(schema: DSchema) -> list[RuleFunctionResult]:
        out = []
        node, multiple = _number(schema, "multipleOf")
        if multiple is not None and multiple <= 0:
            out.append(
                result(
                    "`multipleOf` should be a number greater than `0`",
                    node,
                    f"{schema.path}.multipleOf",
                )
            )
        for lower, upper, message in (
            ("minimum", "maximum", "`maximum` should be a number greater than or equal to `minimum`"),
            (
                "exclusiveMinimum",
                "exclusiveMaximum",
                "`exclusiveMaximum` should be greater than or equal to `exclusiveMinimum`",
            ),
        ):
            _, low = _number(schema, lower)
            node, high = _number(schema, upper)
            if low is not None and high is not None and high < low:
                out.append(result(message, node, f"{schema.path}.{upper}"))
        return out

    @staticmethod
    def _bounded(schema: DSchema, lower: str, upper: str) -> list[RuleFunctionResult]:
        out = []
        low_node, low = _number(schema, lower)
        high_node, high = _number(schema, upper)
        for key, node, value in ((lower, low_node, low), (upper, high_node, high)):
            if value is not None and value < 0:
                out.append(
                    result(f"`{key}` should be a non-negative number", node, f"{schema.path}.{key}")
                )
        if low is not None and high is not None and low > high:
            out.append(
                result(
                    f"`{upper}` should be greater than or equal to `{lower}`",
                    high_node,
                    f"{schema.path}.{upper}",
                )
            )
        return out

    @staticmethod
    def _required(schema: DSchema) -> list[RuleFunctionResult]:
        properties = schema.get("properties")
        if properties is None:
            return []
        declared = {k.value for k, _ in mapping_items(properties) if isinstance(k, ScalarNode)}
        out = []
        for i, item in enumerate(sequence_items(schema.get("required"))):
            if isinstance(item, ScalarNode) and item.value not in declared:
                out.append(
                    result(
                        f"`required` field `{item.value}` is not defined in `properties`",
                        item,
                        f"{schema.path}.required[{i}]",
                    )
                )
        return out
