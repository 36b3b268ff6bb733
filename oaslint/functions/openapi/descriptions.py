"""Description and summary checks: presence, length, duplication and unsafe content."""

from __future__ import annotations

from yaml.nodes import MappingNode, Node, ScalarNode

from oaslint.document.nodes import (
    bracket,
    canonical_path,
    find_keys,
    get_str,
    last_child,
    mapping_get,
    mapping_items,
)
from oaslint.document.resolver import ref_of
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    compile_pattern,
    option_int,
    option_str,
    result,
)
from oaslint.models import CATEGORY_DESCRIPTIONS, RuleFunctionResult


def word_count(text: str) -> int:
    return len(text.split(" "))


def _min_words_schema(name: str) -> RuleFunctionSchema:
    return RuleFunctionSchema(
        name=name,
        properties=[RuleFunctionProperty("minWords", "minimum number of words a description needs")],
        error_message=(
            f"'{name}' function has invalid options supplied. "
            "Set the 'minWords' property to a valid integer"
        ),
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class OperationDescription(RuleFunction):
    """Operations, request bodies and responses need descriptions.

    Options
    -------
    minWords:
        Descriptions shorter than this many words are reported too.
    """

    name = "oasDescriptions"
    category_id = CATEGORY_DESCRIPTIONS

    def schema(self) -> RuleFunctionSchema:
        return _min_words_schema(self.name)

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        min_words = option_int(ctx.options, "minWords") or 0
        results: list[RuleFunctionResult] = []

        def check(text: str, method: str, location: str, missing: str, path: str, node: Node | None) -> None:
            if not text:
                message = f"operation method `{method}` {location} is missing a `{missing}`"
            elif word_count(text) < min_words:
                message = (
                    f"operation method `{method}` {location} has a `{missing}` that must be "
                    f"at least `{min_words}` words long"
                )
            else:
                return
            results.append(result(ctx.rule.message or message, node, path))

        for op in ctx.doctor.operations:
            method = op.method.upper()
            at_path = f"at path `{op.path_key}`"
            check(get_str(op.node, "description"), method, at_path, "description", op.path, op.key_node)
            check(get_str(op.node, "summary"), method, at_path, "summary", op.path, op.key_node)

            body_key, body = mapping_get(op.node, "requestBody")
            body = ctx.doctor.deref(body)
            if isinstance(body, MappingNode):
                check(
                    get_str(body, "description"),
                    method,
                    f"`requestBody` at path `{op.path_key}`",
                    "description",
                    f"{op.path}.requestBody",
                    body_key,
                )
            for code_key, response in mapping_items(op.get("responses")):
                response = ctx.doctor.deref(response)
                if not isinstance(code_key, ScalarNode) or not isinstance(response, MappingNode):
                    continue
                check(
                    get_str(response, "description"),
                    method,
                    f"response code `{code_key.value}` `responseBody` at path `{op.path_key}`",
                    "description",
                    f"{op.path}.responses{bracket(code_key.value)}",
                    code_key,
                )
        return results


# ---------------------------------------------------------------------------
# Components and parameters
# ---------------------------------------------------------------------------


class ComponentDescription(RuleFunction):
    name = "oasComponentDescriptions"
    category_id = CATEGORY_DESCRIPTIONS

    def schema(self) -> RuleFunctionSchema:
        return _min_words_schema(self.name)

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.index is None:
            return []
        min_words = option_int(ctx.options, "minWords") or 0
        results = []
        for comp in ctx.index.components:
            if not isinstance(comp.node, MappingNode) or ref_of(comp.node) is not None:
                continue
            desc_key, desc = mapping_get(comp.node, "description")
            if desc_key is None:
                results.append(
                    result(
                        f"Component '{comp.name}' of type '{comp.section}' is missing a description",
                        comp.key_node,
                        comp.path,
                        end_node=last_child(comp.node),
                    )
                )
                continue
            text = desc.value if isinstance(desc, ScalarNode) else ""
            words = word_count(text)
            if words < min_words:
                results.append(
                    result(
                        f"Component '{comp.name}' of type '{comp.section}' description must be "
                        f"at least {min_words} words long, ({words} is not enough)",
                        desc_key,
                        comp.path,
                        end_node=desc,
                    )
                )
        return results


class ParameterDescription(RuleFunction):
    name = "oasParamDescriptions"
    category_id = CATEGORY_DESCRIPTIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for param in ctx.doctor.parameters:
            if not param.location or get_str(param.node, "description"):
                continue
            results.append(
                result(
                    f"the parameter '{param.name}' does not contain a description",
                    param.node,
                    param.path,
                    end_node=last_child(param.node),
                )
            )
        return results


# ---------------------------------------------------------------------------
# Document-wide text checks
# ---------------------------------------------------------------------------


def _text_entries(root: Node, key: str) -> list[tuple[Node, str]]:
    """Scalar ``description`` / ``summary`` values with their canonical paths."""
    return [
        (value, canonical_path(segments))
        for _, value, segments in find_keys(root, key)
        if isinstance(value, ScalarNode) and value.value
    ]


class DescriptionDuplication(RuleFunction):
    """Descriptions and summaries should not be copy-pasted."""

    name = "oasDescriptionDuplication"
    category_id = CATEGORY_DESCRIPTIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        results = []
        for root in nodes:
            descriptions: dict[str, Node] = {}
            summaries: dict[str, Node] = {}
            for node, path in _text_entries(root, "description"):
                first = descriptions.setdefault(node.value, node)
                if first is not node:
                    results.append(_duplicate("Description", node, first, path))
            for node, path in _text_entries(root, "summary"):
                first = summaries.setdefault(node.value, node)
                if first is not node:
                    results.append(_duplicate("Summary", node, first, path))
                elif node.value in descriptions:
                    results.append(_duplicate("Description", node, descriptions[node.value], path))
        return results


def _duplicate(label: str, node: Node, first: Node, path: str) -> RuleFunctionResult:
    return result(
        f"{label} at line '{node.start_mark.line + 1}' is a duplicate of line "
        f"'{first.start_mark.line + 1}'",
        node,
        path,
    )


class NoEvalInDescriptions(RuleFunction):
    """Descriptions must not match a forbidden ``pattern``."""

    name = "noEvalDescriptions"
    category_id = CATEGORY_DESCRIPTIONS

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["pattern"],
            properties=[RuleFunctionProperty("pattern", "regular expression that must not match")],
            error_message="'noEvalDescriptions' needs a 'pattern' to search for",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes:
            return []
        pattern = option_str(ctx.options, "pattern")
        compiled = ctx.precompiled_pattern or compile_pattern(pattern)
        results = []
        for root in nodes:
            for node, path in _text_entries(root, "description"):
                if compiled.search(node.value):
                    results.append(
                        result(f"description contains content with '{pattern}', forbidden", node, path)
                    )
        return results
