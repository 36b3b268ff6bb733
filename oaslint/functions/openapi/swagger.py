"""Checks that only make sense for Swagger 2.0 documents."""

from __future__ import annotations

from yaml.nodes import Node, ScalarNode

from oaslint.document.nodes import get_str, get_value, mapping_get, scalar_value, sequence_items
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_OPERATIONS, CATEGORY_SCHEMAS, RuleFunctionResult

FORM_MEDIA_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class Discriminator(RuleFunction):
    """A Swagger discriminator names a property, and that property must be required."""

    name = "oasDiscriminator"
    category_id = CATEGORY_SCHEMAS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for schema in ctx.doctor.schemas:
            key_node, value = mapping_get(schema.node, "discriminator")
            if key_node is None:
                continue
            label = schema.name or schema.path
            path = f"{schema.path}.discriminator"
            if not isinstance(value, ScalarNode) or not isinstance(scalar_value(value), str):
                results.append(
                    result(
                        f"the schema '{label}' uses a non string discriminator",
                        key_node,
                        path,
                        end_node=value,
                    )
                )
                continue
            required_key, required = mapping_get(schema.node, "required")
            if required_key is None:
                results.append(
                    result(
                        f"schema '{label}' uses a discriminator but has no 'required' property set",
                        key_node,
                        path,
                        end_node=value,
                    )
                )
                continue
            names = [scalar_value(n) for n in sequence_items(required)]
            if value.value not in names:
                results.append(
                    result(
                        f"schema '{label}' uses a discriminator but is not included in "
                        "'required' properties",
                        key_node,
                        path,
                        end_node=value,
                    )
                )
        return results


class FormDataConsumeCheck(RuleFunction):
    """``in: formData`` parameters need a form media type in ``consumes``.

    The operation's own ``consumes`` wins; otherwise the document-level one
    applies.
    """

    name = "oasOpFormDataConsumeCheck"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        global_consumes = get_value(ctx.doctor.root, "consumes")
        results = []
        for op in ctx.doctor.operations:
            consumes = op.get("consumes")
            if consumes is None:
                consumes = global_consumes
            media = [n.value for n in sequence_items(consumes) if isinstance(n, ScalarNode)]
            for param_node, path in op.parameters:
                param = ctx.doctor.deref(param_node)
                if get_str(param, "in") != "formData":
                    continue
                name = get_str(param, "name")
                if consumes is None:
                    results.append(
                        result(
                            f"in:formData param '{name}' used without 'consumes' defined",
                            param_node,
                            path,
                        )
                    )
                if not any(m in media for m in FORM_MEDIA_TYPES):
                    results.append(
                        result(
                            f"in:formData param '{name}' parameter must include "
                            "'application/x-www-form-urlencoded' or 'multipart/form-data' "
                            "in their 'consumes' property",
                            param_node,
                            path,
                        )
                    )
        return results
