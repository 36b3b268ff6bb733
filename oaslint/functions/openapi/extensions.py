"""Checks on vendor extension keys."""

from __future__ import annotations

from yaml.nodes import Node

from oaslint.document.nodes import canonical_path, find_keys
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_VALIDATION, RuleFunctionResult

ZALLY_IGNORE_KEY = "x-zally-ignore"


class MigrateZallyIgnore(RuleFunction):
    """``x-zally-ignore`` is not honoured; ``x-lint-ignore`` is."""

    name = "oasMigrateZallyIgnore"
    category_id = CATEGORY_VALIDATION

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        results = []
        for node in nodes:
            for key_node, _, segments in find_keys(node, ZALLY_IGNORE_KEY):
                results.append(
                    result(
                        "Convert ignore rules to use x-lint-ignore",
                        key_node,
                        canonical_path(segments),
                    )
                )
        return results
