"""Schema hygiene: missing types, nullable enums, lonely combinators and property casing."""

from __future__ import annotations

from yaml.nodes import Node, ScalarNode

from oaslint.document.doctor import DSchema
from oaslint.document.nodes import bracket, mapping_get, mapping_items, scalar_value, sequence_items
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_SCHEMAS, RuleFunctionResult

COMBINATORS = ("allOf", "anyOf", "oneOf")
_SHAPE_KEYWORDS = ("properties", "items", "additionalProperties", "patternProperties")


def _is_property(schema: DSchema) -> bool:
    return bool(schema.name) and schema.path.endswith(f".properties{bracket(schema.name)}")


class MissingType(RuleFunction):
    """Schemas should say what type they describe."""

    name = "oasMissingType"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for schema in ctx.doctor.schemas:
            if schema.types or any(schema.has(k) for k in COMBINATORS):
                continue
            if schema.has("const") or schema.has("enum"):
                continue
            if any(schema.has(k) for k in _SHAPE_KEYWORDS):
                continue
            if _is_property(schema):
                message = f"schema property `{schema.name}` is missing a `type` field"
            else:
                message = "schema is missing a `type` field"
            results.append(
                result(
                    message,
                    schema.key_node or schema.node,
                    schema.path,
                    end_node=schema.node,
                    paths=schema.paths,
                )
            )
        return results


class NullableEnum(RuleFunction):
    name = "oasNullableEnum"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for schema in ctx.doctor.schemas:
            key_node, enum = mapping_get(schema.node, "enum")
            if key_node is None:
                continue
            if schema.scalar("nullable") is not True and not schema.is_type("null"):
                continue
            # the string "null" does not count
            if any(isinstance(n, ScalarNode) and scalar_value(n) is None for n in sequence_items(enum)):
                continue
            results.append(
                result(
                    "enum is defined as nullable but does not contain a `null` value. Nullable enums "
                    'must explicitly include `null` in the enum array (not the string "null")',
                    key_node,
                    f"{schema.path}.enum",
                    end_node=enum,
                )
            )
        return results


class UnnecessaryCombinator(RuleFunction):
    name = "oasUnnecessaryCombinator"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for schema in ctx.doctor.schemas:
            for keyword in COMBINATORS:
                key_node, value = mapping_get(schema.node, keyword)
                if key_node is not None and len(sequence_items(value)) == 1:
                    results.append(
                        result(
                            f"schema with `{keyword}` combinator containing only one item should "
                            "be replaced with the item directly",
                            key_node,
                            f"{schema.path}.{keyword}",
                            end_node=value,
                        )
                    )
        return results


# ---------------------------------------------------------------------------
# Property casing
# ---------------------------------------------------------------------------


def is_camel_case(name: str) -> bool:
    return bool(name) and name[0].islower() and name.isalnum()


def case_type(name: str) -> str:
    """Best guess at the naming convention *name* follows."""
    if not name or not all(c.isalnum() or c in "_-" for c in name):
        return "unknown"
    underscore = "_" in name
    hyphen = "-" in name
    upper = name.isupper()
    lower = name.islower()
    if underscore and upper:
        return "SCREAMING_SNAKE_CASE"
    if hyphen and upper:
        return "SCREAMING-KEBAB-CASE"
    if underscore:
        return "snake_case" if lower else "Snake_Case"
    if hyphen:
        return "kebab-case" if lower else "Kebab-Case"
    if upper:
        return "UPPERCASE"
    if lower:
        return "lowercase"
    if name[0].isupper():
        return "PascalCase"
    if name[0].islower():
        return "mixedCase"
    return "unknown"


class CamelCaseProperties(RuleFunction):
    name = "oasCamelCaseProperties"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for schema in ctx.doctor.schemas:
            for k, _ in mapping_items(schema.get("properties")):
                if not isinstance(k, ScalarNode) or is_camel_case(k.value):
                    continue
                results.append(
                    result(
                        f"property `{k.value}` is `{case_type(k.value)}` not `camelCase`",
                        k,
                        f"{schema.path}.properties{bracket(k.value)}",
                    )
                )
        return results
