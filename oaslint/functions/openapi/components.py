"""Schema and component checks: enums, ``$ref`` usage and polymorphism."""

from __future__ import annotations

from typing import Any

from yaml.nodes import MappingNode, Node, ScalarNode

from oaslint.document.doctor import DSchema
from oaslint.document.nodes import (
    get_scalar,
    last_child,
    mapping_get,
    scalar_value,
    sequence_items,
)
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_SCHEMAS, RuleFunctionResult

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


def _enum_holders(ctx: RuleFunctionContext) -> list[tuple[MappingNode, str]]:
    """Schemas (and OAS2 parameters) that declare an ``enum``."""
    holders = [(s.node, s.path) for s in ctx.doctor.schemas if s.has("enum")]
    if ctx.doctor.spec_info.is_oas2:
        holders += [(p.node, p.path) for p in ctx.doctor.parameters if mapping_get(p.node, "enum")[0]]
    return holders


def _matches_type(value: Any, type_name: str) -> bool:
    if type_name == "string":
        return isinstance(value, str)
    if type_name == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if type_name == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_name == "boolean":
        return isinstance(value, bool)
    if type_name == "null":
        return value is None
    if type_name == "array":
        return isinstance(value, list)
    if type_name == "object":
        return isinstance(value, dict)
    return True


def _enum_value(node: Node) -> Any:
    if isinstance(node, ScalarNode):
        return scalar_value(node)
    if isinstance(node, MappingNode):
        return {}
    return []


class TypedEnum(RuleFunction):
    """Enum values must match the declared ``type``."""

    name = "typedEnum"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for node, path in _enum_holders(ctx):
            types = DSchema(node, path).types
            if not types:
                continue
            nullable = get_scalar(node, "nullable") is True
            _, enum = mapping_get(node, "enum")
            for item in sequence_items(enum):
                value = _enum_value(item)
                if value is None and nullable:
                    continue
                if any(_matches_type(value, t) for t in types):
                    continue
                results.append(
                    result(
                        f"enum type mismatch: value `{item.value if isinstance(item, ScalarNode) else value}` "
                        f"is not of type `{', '.join(types)}`",
                        item,
                        f"{path}.enum",
                    )
                )
        return results


class DuplicatedEnum(RuleFunction):
    name = "duplicatedEnum"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for node, path in _enum_holders(ctx):
            _, enum = mapping_get(node, "enum")
            seen: set[tuple[str, str]] = set()
            for item in sequence_items(enum):
                if not isinstance(item, ScalarNode):
                    continue
                marker = (item.tag, item.value)
                if marker in seen:
                    results.append(
                        result(f"enum contains a duplicate: {item.value}", item, f"{path}.enum")
                    )
                seen.add(marker)
        return results


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class RefSiblings(RuleFunction):
    """A ``$ref`` mapping must not carry other keys."""

    name = "refSiblings"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.index is None:
            return []
        results = []
        for site in ctx.index.references:
            if len(site.node.value) <= 1:
                continue
            key, value = mapping_get(site.node, "$ref")
            results.append(
                result(
                    "a $ref cannot be placed next to any other properties",
                    key,
                    site.path,
                    end_node=value,
                )
            )
        return results


# Sections whose entries are referenced by name rather than by ``$ref``.
_NAMED_ONLY = {"securitySchemes", "securityDefinitions"}


class UnusedComponent(RuleFunction):
    """Components nothing references, and local references that go nowhere."""

    name = "oasUnusedComponent"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.index is None:
            return []
        results = []
        for site in ctx.index.references:
            if site.is_local and site.target is None:
                key, value = mapping_get(site.node, "$ref")
                results.append(
                    result(
                        f"$ref '{site.ref}' does not exist in the document (cannot be found)",
                        value or site.node,
                        site.path,
                    )
                )
        referenced = ctx.index.referenced_pointers()
        for comp in ctx.index.components:
            if comp.section in _NAMED_ONLY or comp.pointer in referenced:
                continue
            results.append(
                result(
                    f"the definition '{comp.name}' is potentially unused or has been orphaned",
                    comp.key_node,
                    comp.path,
                    end_node=last_child(comp.node),
                )
            )
        return results


# ---------------------------------------------------------------------------
# Polymorphism
# ---------------------------------------------------------------------------


class _Polymorphic(RuleFunction):
    keyword = ""
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for schema in ctx.doctor.schemas:
            key, value = mapping_get(schema.node, self.keyword)
            if key is None:
                continue
            results.append(
                result(
                    f"`{self.keyword}` polymorphic reference: {ctx.rule.description}",
                    key,
                    f"{schema.path}.{self.keyword}",
                    end_node=last_child(value),
                )
            )
        return results


class PolymorphicAnyOf(_Polymorphic):
    name = "oasPolymorphicAnyOf"
    keyword = "anyOf"


class PolymorphicOneOf(_Polymorphic):
    name = "oasPolymorphicOneOf"
    keyword = "oneOf"
