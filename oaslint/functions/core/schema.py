"""``schema``: validate a node, or one of its fields, against an inline JSON Schema."""

from __future__ import annotations

import logging
from typing import Any

from jsonschema import exceptions as js_exceptions
from jsonschema import validators
from yaml.nodes import MappingNode, Node, SequenceNode

from oaslint.document.nodes import last_child, to_data
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    find_field,
    option_bool,
    result,
)
from oaslint.models import RuleFunctionResult

logger = logging.getLogger(__name__)


def describe_error(error: js_exceptions.ValidationError) -> str:
    location = "/".join(str(p) for p in error.absolute_path)
    if location:
        return f"{error.message} (at /{location})"
    return error.message


class Schema(RuleFunction):
    name = "schema"

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["schema"],
            properties=[
                RuleFunctionProperty("schema", "a JSON Schema to validate against"),
                RuleFunctionProperty("unpack", "validate each child of the located node"),
                RuleFunctionProperty(
                    "forceValidation", "report a missing 'field' instead of skipping the node"
                ),
                RuleFunctionProperty(
                    "forceValidationOnCurrentNode", "ignore 'field' and validate the located node"
                ),
            ],
            error_message="'schema' needs a 'schema' to validate against",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        schema = ctx.options.get("schema")
        if not isinstance(schema, (dict, bool)):
            return []
        cls = validators.validator_for(schema, default=validators.Draft202012Validator)
        try:
            cls.check_schema(schema)
        except js_exceptions.SchemaError as exc:
            logger.error("rule '%s' has an invalid schema: %s", ctx.rule.id, exc.message)
            return []
        validator = cls(schema)

        if option_bool(ctx.options, "unpack") and nodes:
            first = nodes[0]
            if isinstance(first, MappingNode):
                nodes = [v for _, v in first.value]
            elif isinstance(first, SequenceNode):
                nodes = list(first.value)

        force = option_bool(ctx.options, "forceValidation")
        on_current = option_bool(ctx.options, "forceValidationOnCurrentNode")
        desc = ctx.rule.description

        results: list[RuleFunctionResult] = []
        for x, node in enumerate(nodes):
            path = ctx.indexed_path(x)
            if on_current or not ctx.field:
                target: Node | None = node
            else:
                _, target = find_field(node, ctx.field)
            if target is None:
                if force:
                    results.append(
                        result(
                            f"{desc}: `{ctx.field}`, is missing and is required",
                            node,
                            path,
                            end_node=last_child(node),
                        )
                    )
                continue
            results.extend(self._validate(validator, target, desc, path))
        return results

    @staticmethod
    def _validate(validator: Any, target: Node, desc: str, path: str) -> list[RuleFunctionResult]:
        instance = to_data(target)
        out = []
        errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])
        for error in errors:
            out.append(result(f"{desc}: {describe_error(error)}", target, path))
        return out
