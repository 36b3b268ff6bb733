"""``casing``: scalar values (or mapping keys) must follow a naming convention."""

from __future__ import annotations

import re
from functools import lru_cache

from yaml.nodes import MappingNode, Node, ScalarNode

from oaslint.document.nodes import bracket
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    option_bool,
    option_str,
    result,
)
from oaslint.models import RuleFunctionResult

CASING_TYPES = ("flat", "camel", "pascal", "pascal-kebab", "kebab", "cobol", "snake", "macro")


@lru_cache(maxsize=None)
def casing_pattern(casing: str, disallow_digits: bool = False) -> str:
    d = "" if disallow_digits else "0-9"
    return {
        "flat": f"[a-z][a-z{d}]*",
        "camel": f"[a-z][a-z{d}]*(?:[A-Z{d}](?:[a-z{d}]+|$))*",
        "pascal": f"[A-Z][a-z{d}]*(?:[A-Z{d}](?:[a-z{d}]+|$))*",
        "pascal-kebab": f"[A-Z][a-z{d}]*(?:-[A-Z][a-z{d}]*)*",
        "kebab": f"[a-z{d}-]+",
        "cobol": f"[A-Z{d}-]+",
        "snake": f"[a-z{d}_]+",
        "macro": f"[A-Z{d}_]+",
    }[casing]


@lru_cache(maxsize=256)
def _compile(casing: str, disallow_digits: bool, separator: str, allow_leading: bool) -> re.Pattern[str]:
    pattern = casing_pattern(casing, disallow_digits)
    if not separator:
        return re.compile(f"^{pattern}$")
    sep = f"[{re.escape(separator)}]"
    if allow_leading:
        return re.compile(f"^(?:{sep})?{pattern}(?:{sep}{pattern})*$")
    return re.compile(f"^(?:{pattern})+(?:{sep}(?:{pattern}))*$")


class Casing(RuleFunction):
    name = "casing"

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["type"],
            properties=[
                RuleFunctionProperty(
                    "type",
                    "'casing' requires a 'type' to be supplied, which can be one of: "
                    + ", ".join(CASING_TYPES),
                ),
                RuleFunctionProperty(
                    "disallowDigits", "don't allow any digits in the string being checked"
                ),
                RuleFunctionProperty(
                    "separator.char", "a character that separates words, for example '/'"
                ),
                RuleFunctionProperty(
                    "separator.allowLeading", "the value may start with the separator character"
                ),
            ],
            error_message=(
                "'casing' function has invalid options supplied. Example valid options are "
                "'type' = 'camel' or 'disallowDigits' = true"
            ),
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        casing = option_str(ctx.options, "type")
        if casing not in CASING_TYPES:
            return []
        separator = option_str(ctx.options, "separator.char")
        allow_leading = option_bool(ctx.options, "separator.allowLeading")
        rx = _compile(
            casing, option_bool(ctx.options, "disallowDigits"), separator, allow_leading
        )

        results: list[RuleFunctionResult] = []
        for i, node in enumerate(nodes):
            path = ctx.path_for(i, len(nodes))
            if isinstance(node, MappingNode):
                for k, _ in node.value:
                    if isinstance(k, ScalarNode) and not self._ok(k.value, rx, separator, allow_leading):
                        results.append(
                            result(f"'{k.value}' is not {casing} case!", k, path + bracket(k.value))
                        )
            elif isinstance(node, ScalarNode):
                if not self._ok(node.value, rx, separator, allow_leading):
                    results.append(result(f"'{node.value}' is not {casing} case!", node, path))
        return results

    @staticmethod
    def _ok(value: str, rx: re.Pattern[str], separator: str, allow_leading: bool) -> bool:
        if separator and allow_leading and value == separator:
            return True
        return rx.match(value) is not None
