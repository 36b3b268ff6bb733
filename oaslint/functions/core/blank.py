"""``blank``: placeholder for rules whose results come from elsewhere."""

from __future__ import annotations

from yaml.nodes import Node

from oaslint.functions.base import RuleFunction, RuleFunctionContext
from oaslint.models import RuleFunctionResult


class Blank(RuleFunction):
    name = "blank"

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        return []
