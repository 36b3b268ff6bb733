"""Field presence checks: ``truthy``, ``falsy``, ``defined``, ``undefined`` and ``xor``."""

from __future__ import annotations

from yaml.nodes import Node

from oaslint.document.nodes import last_child
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    find_field,
    is_truthy_node,
    option_list,
    result,
)
from oaslint.models import RuleFunctionResult


class Truthy(RuleFunction):
    """The field must exist and be non-empty, non-zero and not ``false``."""

    name = "truthy"

    def schema(self) -> RuleFunctionSchema:
        return _field_schema(self.name)

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        results = []
        for i, node in enumerate(nodes):
            _, value = find_field(node, ctx.field)
            if not is_truthy_node(value):
                results.append(
                    result(
                        f"'{ctx.field}' must be truthy",
                        node,
                        ctx.path_for(i, len(nodes)),
                        end_node=last_child(node),
                    )
                )
        return results


class Falsy(RuleFunction):
    """A present field must be empty, zero or ``false``; an absent field passes."""

    name = "falsy"

    def schema(self) -> RuleFunctionSchema:
        return _field_schema(self.name)

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        results = []
        for i, node in enumerate(nodes):
            key, value = find_field(node, ctx.field)
            if key is not None and is_truthy_node(value):
                results.append(
                    result(f"'{ctx.field}' must be falsy", key, ctx.path_for(i, len(nodes)), value)
                )
        return results


class Defined(RuleFunction):
    name = "defined"

    def schema(self) -> RuleFunctionSchema:
        return _field_schema(self.name)

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        results = []
        for i, node in enumerate(nodes):
            key, _ = find_field(node, ctx.field)
            if key is None:
                message = ctx.rule.message or f"{ctx.rule.description}: `{ctx.field}` must be defined"
                results.append(
                    result(message, node, ctx.path_for(i, len(nodes)), end_node=last_child(node))
                )
        return results


class Undefined(RuleFunction):
    name = "undefined"

    def schema(self) -> RuleFunctionSchema:
        return _field_schema(self.name)

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        results = []
        for i, node in enumerate(nodes):
            key, _ = find_field(node, ctx.field)
            if key is not None:
                results.append(
                    result(f"'{ctx.field}' must be undefined", key, ctx.path_for(i, len(nodes)))
                )
        return results


class Xor(RuleFunction):
    """Exactly one of two properties must be present."""

    name = "xor"

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["properties"],
            properties=[
                RuleFunctionProperty(
                    "properties",
                    "'xor' requires two values separated by a comma, only one of them may be present",
                )
            ],
            min_properties=2,
            max_properties=2,
            error_message=(
                "'xor' function has invalid options supplied. Example valid options are "
                "'properties' = 'a, b' or 'properties' = '1, 2'"
            ),
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        properties = option_list(ctx.options, "properties")
        if len(properties) != 2:
            return []
        first, second = properties
        results = []
        for i, node in enumerate(nodes):
            seen = sum(1 for p in properties if find_field(node, p)[0] is not None)
            if seen != 1:
                message = ctx.rule.message or (
                    f"{ctx.rule.description}: `{first}` and `{second}` "
                    "must not be both defined or undefined"
                )
                results.append(
                    result(message, node, ctx.path_for(i, len(nodes)), end_node=last_child(node))
                )
        return results


def _field_schema(name: str) -> RuleFunctionSchema:
    return RuleFunctionSchema(
        name=name,
        requires_field=True,
        error_message=f"'{name}' requires a 'field' value to be set",
    )
