"""``alphabetical``: sequences and maps must be in order."""

from __future__ import annotations

from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from oaslint.document.nodes import get_value, is_bool_node, is_number_node, scalar_value
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    option_str,
    result,
)
from oaslint.models import RuleFunctionResult


class Alphabetical(RuleFunction):
    name = "alphabetical"

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            properties=[
                RuleFunctionProperty(
                    "keyedBy", "this is the key of an object you want to use to sort objects"
                )
            ],
            error_message=(
                "'alphabetical' function has invalid options supplied. To sort objects use "
                "'keyedBy' and decide which property on the array of objects you want to use."
            ),
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        keyed_by = option_str(ctx.options, "keyedBy")
        results: list[RuleFunctionResult] = []
        for i, node in enumerate(nodes):
            path = ctx.path_for(i, len(nodes))
            values = self._ordered_values(node, keyed_by)
            if values is None:
                continue
            message = _first_disorder(values)
            if message:
                results.append(result(message, node, path))
        return results

    def _ordered_values(self, node: Node, keyed_by: str) -> list | None:
        """The sequence that must be sorted, or ``None`` to skip the container."""
        if isinstance(node, MappingNode):
            if keyed_by:
                return _keyed_values([v for _, v in node.value], keyed_by)
            keys = [k for k, _ in node.value]
            if not all(isinstance(k, ScalarNode) and k.tag == "tag:yaml.org,2002:str" for k in keys):
                return None
            return [k.value for k in keys]

        if isinstance(node, SequenceNode) and node.value:
            items = node.value
            if any(is_bool_node(n) for n in items):
                return None
            first = items[0]
            if isinstance(first, MappingNode):
                return _keyed_values(items, keyed_by) if keyed_by else None
            if is_number_node(first):
                nums = [scalar_value(n) for n in items if is_number_node(n)]
                return nums
            if isinstance(first, ScalarNode):
                return [n.value for n in items if isinstance(n, ScalarNode) and not is_number_node(n)]
        return None


def _keyed_values(items: list[Node], keyed_by: str) -> list | None:
    values = []
    for item in items:
        v = get_value(item, keyed_by)
        if isinstance(v, ScalarNode) and not is_bool_node(v):
            values.append(scalar_value(v) if is_number_node(v) else v.value)
    if not values:
        return None
    # mixed strings and numbers cannot be ordered against each other
    if len({isinstance(v, str) for v in values}) > 1:
        return None
    return values


def _first_disorder(values: list) -> str | None:
    for a, b in zip(values, values[1:]):
        if a > b:
            if isinstance(a, str):
                return f"'{b}' must be placed before '{a}' (alphabetical)"
            return f"'{b}' is less than '{a}', they need to be swapped (numerical ordering)"
    return None
