"""Schema hardening checks run over every schema the doctor document found.

Array and string limits only apply to schemas that can appear in a request;
the remaining checks apply everywhere.
"""

from __future__ import annotations

from yaml.nodes import MappingNode, Node

from oaslint.document.doctor import DSchema
from oaslint.document.nodes import is_bool_node, mapping_get, scalar_value
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_OWASP, RuleFunctionResult


def schema_result(schema: DSchema, message: str) -> RuleFunctionResult:
    key, _ = mapping_get(schema.node, "type")
    paths = [schema.path] + schema.paths if schema.paths else []
    return result(message, key or schema.node, schema.path, paths=paths)


def _additional(schema: DSchema) -> str:
    """``"schema"``, ``"true"``, ``"false"`` or ``""`` when absent."""
    node = schema.get("additionalProperties")
    if node is None:
        return ""
    if isinstance(node, MappingNode):
        return "schema"
    if is_bool_node(node):
        return "true" if scalar_value(node) else "false"
    return ""


class _SchemaCheck(RuleFunction):
    category_id = CATEGORY_OWASP
    default_message = ""

    def applies(self, schema: DSchema) -> bool:
        return True

    def violated(self, schema: DSchema) -> bool:
        raise NotImplementedError

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        message = ctx.rule.message or self.default_message
        return [
            schema_result(s, message)
            for s in ctx.doctor.schemas
            if self.applies(s) and self.violated(s)
        ]


class IntegerLimit(_SchemaCheck):
    name = "owaspIntegerLimit"
    default_message = (
        "schema of type `integer` must specify `minimum` and `maximum` or "
        "`exclusiveMinimum` and `exclusiveMaximum`"
    )

    def applies(self, schema: DSchema) -> bool:
        return schema.is_type("integer")

    def violated(self, schema: DSchema) -> bool:
        lo, hi = schema.has("minimum"), schema.has("maximum")
        xlo, xhi = schema.has("exclusiveMinimum"), schema.has("exclusiveMaximum")
        ok = (lo and hi) or (lo and xhi) or (hi and xlo) or (xlo and xhi)
        return not ok


class IntegerFormat(_SchemaCheck):
    name = "owaspIntegerFormat"
    default_message = "schema of type `integer` must specify a format of `int32` or `int64`"

    def applies(self, schema: DSchema) -> bool:
        return schema.is_type("integer")

    def violated(self, schema: DSchema) -> bool:
        return schema.scalar("format") not in ("int32", "int64")


class ArrayLimit(_SchemaCheck):
    name = "owaspArrayLimit"
    default_message = "schema of type `array` must specify `maxItems`"

    def applies(self, schema: DSchema) -> bool:
        return schema.is_type("array") and schema.is_request

    def violated(self, schema: DSchema) -> bool:
        return not schema.has("maxItems")


class StringLimit(_SchemaCheck):
    name = "owaspStringLimit"
    default_message = "schema of type `string` must specify `maxLength`, `const` or `enum`"

    def applies(self, schema: DSchema) -> bool:
        return schema.is_type("string") and schema.is_request

    def violated(self, schema: DSchema) -> bool:
        return not (schema.has("maxLength") or schema.has("const") or schema.has("enum"))


class StringRestricted(_SchemaCheck):
    name = "owaspStringRestricted"
    default_message = "schema of type `string` must specify `format`, `const`, `enum` or `pattern`"

    def applies(self, schema: DSchema) -> bool:
        return schema.is_type("string")

    def violated(self, schema: DSchema) -> bool:
        return not any(schema.has(k) for k in ("format", "const", "enum", "pattern"))


class NoAdditionalProperties(_SchemaCheck):
    name = "owaspNoAdditionalProperties"
    default_message = "`additionalProperties` should not be set, or set to `false`"

    def applies(self, schema: DSchema) -> bool:
        return schema.is_type("object")

    def violated(self, schema: DSchema) -> bool:
        return _additional(schema) in ("schema", "true")


class AdditionalPropertiesConstrained(_SchemaCheck):
    name = "owaspAdditionalPropertiesConstrained"
    default_message = "schema should also define `maxProperties` when `additionalProperties` is an object"

    def applies(self, schema: DSchema) -> bool:
        return schema.is_type("object")

    def violated(self, schema: DSchema) -> bool:
        return _additional(schema) in ("schema", "true") and not schema.has("maxProperties")
