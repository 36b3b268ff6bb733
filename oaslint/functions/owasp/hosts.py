"""``owaspHostsHttps``: servers must use TLS."""

from __future__ import annotations

from yaml.nodes import Node, ScalarNode

from oaslint.document.nodes import get_value, mapping_get, sequence_items
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_OWASP, RuleFunctionResult

_MESSAGE = "server URLs should use TLS (https)"


class HostsHttps(RuleFunction):
    name = "owaspHostsHttps"
    category_id = CATEGORY_OWASP

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        message = ctx.rule.message or _MESSAGE
        for server in ctx.doctor.servers:
            if not server.url.startswith("https"):
                key, _ = mapping_get(server.node, "url")
                results.append(result(message, key or server.node, f"{server.path}.url"))

        if ctx.doctor.spec_info.is_oas2:
            schemes = get_value(ctx.doctor.root, "schemes")
            for i, scheme in enumerate(sequence_items(schemes)):
                if isinstance(scheme, ScalarNode) and scheme.value.lower() not in ("https", "wss"):
                    results.append(result(message, scheme, f"$.schemes[{i}]"))
        return results
