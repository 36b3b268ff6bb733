"""Global tag checks."""

from __future__ import annotations

from yaml.nodes import Node, ScalarNode

from oaslint.document.nodes import get_str, last_child, mapping_get, sequence_items
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_TAGS, RuleFunctionResult


class TagDefined(RuleFunction):
    """Operation tags must appear in the global ``tags`` list."""

    name = "oasTagDefined"
    category_id = CATEGORY_TAGS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        defined = {tag.name for tag in ctx.doctor.tags}
        results = []
        for op in ctx.doctor.operations:
            _, tags = mapping_get(op.node, "tags")
            for i, tag in enumerate(sequence_items(tags)):
                if not isinstance(tag, ScalarNode) or tag.value in defined:
                    continue
                message = ctx.rule.message or (
                    f"tag `{tag.value}` for `{op.method.upper()}` operation is not defined as a global tag"
                )
                results.append(result(message, tag, f"{op.path}.tags[{i}]"))
        return results


class TagDescription(RuleFunction):
    name = "oasTagDescription"
    category_id = CATEGORY_TAGS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for tag in ctx.doctor.tags:
            if get_str(tag.node, "description"):
                continue
            message = ctx.rule.message or f"tag `{tag.name}` must have a description"
            results.append(result(message, tag.node, tag.path, end_node=last_child(tag.node)))
        return results
