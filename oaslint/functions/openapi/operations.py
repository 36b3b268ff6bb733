"""Operation level checks: ids, tags, parameters and response codes."""

from __future__ import annotations

from yaml.nodes import MappingNode, Node, ScalarNode

from oaslint.document.nodes import (
    get_str,
    get_value,
    last_child,
    mapping_get,
    mapping_items,
    sequence_items,
)
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    option_list,
    result,
)
from oaslint.models import CATEGORY_OPERATIONS, CATEGORY_TAGS, RuleFunctionResult


def _codes(op) -> list[tuple[Node, str]]:
    return [(k, k.value) for k, _ in mapping_items(op.get("responses")) if isinstance(k, ScalarNode)]


def _in_range(code: str, low: int, high: int) -> bool:
    """``code`` is a number in ``[low, high]`` or a range like ``4XX`` covering it."""
    if code.isdigit():
        return low <= int(code) <= high
    upper = code.upper()
    if len(upper) == 3 and upper[0].isdigit() and upper[1:] == "XX":
        return low <= int(upper[0]) * 100 <= high
    return False


class SuccessResponse(RuleFunction):
    """Operations must define at least one 2xx or 3xx response."""

    name = "oasOpSuccessResponse"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for op in ctx.doctor.operations:
            key, _ = mapping_get(op.node, "responses")
            if key is None:
                continue
            if any(_in_range(code, 200, 399) for _, code in _codes(op)):
                continue
            label = op.operation_id or "undefined operation (no operationId)"
            results.append(
                result(
                    f"Operation '{label}' must define at least a single 2xx or 3xx response",
                    key,
                    f"{op.path}.responses",
                )
            )
        return results


class OperationErrorResponse(RuleFunction):
    name = "oasOpErrorResponse"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for op in ctx.doctor.operations:
            if mapping_get(op.node, "responses")[0] is None:
                continue
            if any(_in_range(code, 400, 499) for _, code in _codes(op)):
                continue
            results.append(
                result(
                    "Operation must define at least one 4xx error response",
                    op.key_node,
                    op.path,
                    end_node=last_child(op.node),
                )
            )
        return results


class PostResponseSuccess(RuleFunction):
    """A located responses map must contain one of the configured codes."""

    name = "postResponseSuccess"
    category_id = CATEGORY_OPERATIONS

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["properties"],
            min_properties=1,
            properties=[RuleFunctionProperty("properties", "response codes, one of which must exist")],
            error_message="'postResponseSuccess' needs a list of response codes in 'properties'",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        codes = option_list(ctx.options, "properties")
        results = []
        for i, node in enumerate(nodes):
            present = {k.value for k, _ in mapping_items(node) if isinstance(k, ScalarNode)}
            if present & set(codes):
                continue
            results.append(
                result(
                    "operations must define a success response with one of the following codes: "
                    f"'{', '.join(codes)}'",
                    node,
                    ctx.path_for(i, len(nodes)),
                )
            )
        return results


class OperationId(RuleFunction):
    name = "oasOpId"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        return [
            result(
                f"the '{op.method}' operation at path '{op.path_key}' does not contain an operationId",
                op.key_node,
                op.path,
                end_node=last_child(op.node),
            )
            for op in ctx.doctor.operations
            if not op.operation_id
        ]


class UniqueOperationId(RuleFunction):
    """Every operation has an ``operationId`` and none repeats."""

    name = "oasOpIdUnique"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        seen: set[str] = set()
        for op in ctx.doctor.operations:
            op_id = op.operation_id
            if not op_id:
                results.append(
                    result(
                        f"the '{op.method}' operation at path '{op.path_key}' does not contain an operationId",
                        op.key_node,
                        op.path,
                    )
                )
            elif op_id in seen:
                id_key, _ = mapping_get(op.node, "operationId")
                results.append(
                    result(
                        f"the '{op.method}' operation at path '{op.path_key}' contains a "
                        f"duplicate operationId '{op_id}'",
                        id_key,
                        op.path,
                    )
                )
            else:
                seen.add(op_id)
        return results


class OperationParameters(RuleFunction):
    """Parameters need an ``in``, must not repeat and must not mix body with formData."""

    name = "oasOpParams"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for op in ctx.doctor.operations:
            path = f"{op.path}.parameters"
            seen_in: set[str] = set()
            seen_pairs: set[tuple[str, str]] = set()
            where = f"the '{op.method}' operation at path '{op.path_key}'"
            for raw, _ in op.parameters:
                param = ctx.doctor.deref(raw)
                if not isinstance(param, MappingNode):
                    continue
                location = get_str(param, "in")
                name = get_str(param, "name")
                if not location:
                    results.append(result(f"{where} contains a parameter with no 'in' value", raw, path))
                    continue
                if (name, location) in seen_pairs:
                    results.append(
                        result(
                            f"{where} contains a duplicate parameter '{name}' in '{location}'",
                            raw,
                            path,
                        )
                    )
                    continue
                seen_pairs.add((name, location))
                if location in seen_in:
                    if location == "body":
                        results.append(
                            result(f"{where} contains a duplicate param in:body definition", raw, path)
                        )
                    continue
                if location in ("body", "formData") and seen_in & {"body", "formData"}:
                    results.append(
                        result(
                            f"{where} contains parameters using both in:body and in:formData",
                            raw,
                            path,
                        )
                    )
                seen_in.add(location)
        return results


class OperationSingleTag(RuleFunction):
    name = "oasOpSingleTag"
    category_id = CATEGORY_TAGS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for op in ctx.doctor.operations:
            key, tags = mapping_get(op.node, "tags")
            count = len(sequence_items(tags))
            if count > 1:
                results.append(
                    result(
                        f"the `{op.method}` operation at path `{op.path_key}` contains more "
                        f"than one tag ({count} is too many)",
                        key,
                        op.path,
                        end_node=last_child(tags),
                    )
                )
        return results


class OperationTags(RuleFunction):
    """Operations must carry at least one tag."""

    name = "oasOpTags"
    category_id = CATEGORY_TAGS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for op in ctx.doctor.operations:
            key, tags = mapping_get(op.node, "tags")
            if key is None:
                state = "missing"
            elif not sequence_items(tags):
                state = "empty"
            else:
                continue
            results.append(
                result(
                    f"Tags for `{op.method}` operation at path `{op.path_key}` are {state}",
                    op.key_node,
                    op.path,
                    end_node=last_child(op.node),
                )
            )
        return results


class NoRequestBody(RuleFunction):
    name = "noRequestBody"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for op in ctx.doctor.operations:
            if op.method not in ("get", "delete") or get_value(op.node, "requestBody") is None:
                continue
            message = ctx.rule.message or (
                f"`{op.method.upper()}` operation should not have a requestBody defined"
            )
            results.append(result(message, op.key_node, op.path))
        return results
