"""``owaspCheckSecurity``: operations must be protected by a security requirement."""

from __future__ import annotations

from yaml.nodes import MappingNode, Node, SequenceNode

from oaslint.document.nodes import get_value, last_child, mapping_get
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    option_bool,
    option_list,
    result,
)
from oaslint.models import CATEGORY_OWASP, RuleFunctionResult


class CheckSecurity(RuleFunction):
    name = "owaspCheckSecurity"
    category_id = CATEGORY_OWASP

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["methods"],
            properties=[
                RuleFunctionProperty("methods", "HTTP methods that must be protected"),
                RuleFunctionProperty("nullable", "allow empty ({}) security requirements"),
            ],
            error_message="'owaspCheckSecurity' needs 'methods' to know which operations to check",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        methods = {m.lower() for m in option_list(ctx.options, "methods")}
        nullable = option_bool(ctx.options, "nullable")
        global_security = get_value(ctx.doctor.root, "security")

        results: list[RuleFunctionResult] = []
        for op in ctx.doctor.operations:
            if op.method not in methods:
                continue
            _, security = mapping_get(op.node, "security")
            if security is None:
                security = global_security
            where = f"for path \"{op.path_key}\" in method \"{op.method}\""
            if security is None:
                results.append(
                    result(f"'security' was not defined: {where}.", op.key_node or op.node, op.path)
                )
                continue
            if not isinstance(security, SequenceNode) or not security.value:
                results.append(
                    result(f"'security' is empty: {where}.", security, f"{op.path}.security")
                )
                continue
            if nullable:
                continue
            for requirement in security.value:
                if isinstance(requirement, MappingNode) and not requirement.value:
                    results.append(
                        result(
                            f"'security' has null elements: {where} with element.",
                            requirement,
                            f"{op.path}.security",
                            end_node=last_child(requirement),
                        )
                    )
        return results
