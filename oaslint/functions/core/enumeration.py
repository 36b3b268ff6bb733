"""``enumeration``: a scalar must be one of a fixed set of values."""

from __future__ import annotations

from yaml.nodes import Node, ScalarNode

from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    find_field,
    option_list,
    result,
)
from oaslint.models import RuleFunctionResult


class Enumeration(RuleFunction):
    name = "enumeration"

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["values"],
            properties=[
                RuleFunctionProperty(
                    "values",
                    "'enumerate' requires a set of values to operate against, e.g. 'cake, egg, milk'",
                )
            ],
            min_properties=1,
            error_message=(
                "'enumerate' needs 'values' to operate. A valid example of 'values' are: "
                "'cake, egg, milk'"
            ),
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        values = option_list(ctx.options, "values")
        if not values:
            return []
        results = []
        for i, node in enumerate(nodes):
            target = node
            if ctx.field:
                _, target = find_field(node, ctx.field)
            if not isinstance(target, ScalarNode):
                continue
            if target.value.strip() not in values:
                results.append(
                    result(
                        f"'{target.value}' must equal to one of the following: "
                        + ", ".join(values),
                        target,
                        ctx.path_for(i, len(nodes)),
                    )
                )
        return results
