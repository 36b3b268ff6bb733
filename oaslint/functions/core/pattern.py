"""``pattern``: a scalar must (not) match a regular expression."""

from __future__ import annotations

import re

from yaml.nodes import MappingNode, Node, ScalarNode

from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    compile_pattern,
    find_field,
    option_str,
    result,
)
from oaslint.models import RuleFunctionResult


class Pattern(RuleFunction):
    name = "pattern"

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            properties=[
                RuleFunctionProperty("match", "'pattern' needs 'match' or 'notMatch' to be set"),
                RuleFunctionProperty("notMatch", "'pattern' needs 'match' or 'notMatch' to be set"),
            ],
            min_properties=1,
            max_properties=2,
            error_message="'pattern' needs 'match' or 'notMatch' properties being set to operate",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        match = option_str(ctx.options, "match")
        not_match = option_str(ctx.options, "notMatch")
        if not match and not not_match:
            return []

        cache: dict[str, re.Pattern[str]] = {}
        precompiled = ctx.precompiled_pattern
        if precompiled is not None and precompiled.pattern in (match, not_match):
            cache[precompiled.pattern] = precompiled

        results: list[RuleFunctionResult] = []
        for i, node in enumerate(nodes):
            path = ctx.path_for(i, len(nodes))
            targets = self._targets(node, ctx.field)
            for target in targets:
                value = target.value
                if match:
                    rx = self._compile(match, cache)
                    if rx is None:
                        results.append(result(
                            f"'{match}' cannot be compiled into a regular expression", node, path
                        ))
                        return results
                    if not rx.search(value):
                        results.append(
                            result(f"'{value}' does not match the expression '{match}'", target, path)
                        )
                if not_match:
                    rx = self._compile(not_match, cache)
                    if rx is None:
                        results.append(result(
                            f"'{not_match}' cannot be compiled into a regular expression", node, path
                        ))
                        return results
                    if rx.search(value):
                        results.append(
                            result(f"'{value}' matches the expression '{not_match}'", target, path)
                        )
        return results

    @staticmethod
    def _targets(node: Node, field_name: str) -> list[ScalarNode]:
        if field_name:
            _, value = find_field(node, field_name)
            return [value] if isinstance(value, ScalarNode) else []
        if isinstance(node, ScalarNode):
            return [node]
        if isinstance(node, MappingNode):
            return [k for k, _ in node.value if isinstance(k, ScalarNode)]
        return []

    @staticmethod
    def _compile(expression: str, cache: dict[str, re.Pattern[str]]) -> re.Pattern[str] | None:
        if expression not in cache:
            try:
                cache[expression] = compile_pattern(expression)
            except re.error:
                return None
        return cache[expression]
