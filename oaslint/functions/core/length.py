"""``length``: size bounds on strings, numbers, mappings and sequences."""

from __future__ import annotations

from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from oaslint.document.nodes import is_number_node, scalar_value
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    find_field,
    option_int,
    result,
)
from oaslint.models import RuleFunctionResult


def _too_short(label: str, bound: int) -> str:
    return f"'{label}' must be longer/greater than '{bound}'"


def _too_long(label: str, bound: int) -> str:
    return f"'{label}' must not be longer/greater than '{bound}'"


class Length(RuleFunction):
    name = "length"

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            properties=[
                RuleFunctionProperty("min", "'length' requires minimum value to check against"),
                RuleFunctionProperty("max", "'length' requires maximum value to check against"),
            ],
            min_properties=1,
            max_properties=2,
            error_message="'length' needs 'min' or 'max' (or both) properties being set to operate",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        lo = option_int(ctx.options, "min")
        hi = option_int(ctx.options, "max")
        if lo is None and hi is None:
            return []

        results: list[RuleFunctionResult] = []
        for i, node in enumerate(nodes):
            path = ctx.path_for(i, len(nodes))
            target: Node | None = node
            if ctx.field:
                _, target = find_field(node, ctx.field)
            if target is None:
                continue

            if isinstance(target, ScalarNode):
                if is_number_node(target):
                    size = scalar_value(target)
                else:
                    size = len(target.value)
                label = target.value
            elif isinstance(target, (MappingNode, SequenceNode)):
                size = len(target.value)
                label = ctx.field or ctx.given
            else:
                continue

            if lo is not None and size < lo:
                results.append(result(_too_short(label, lo), node, path))
            elif hi is not None and size > hi:
                results.append(result(_too_long(label, hi), node, path))
        return results
