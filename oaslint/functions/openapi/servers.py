"""Root level checks: servers, operation security and license."""

from __future__ import annotations

from urllib.parse import urlsplit

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
    option_str,
    result,
)
from oaslint.models import (
    CATEGORY_INFO,
    CATEGORY_OPERATIONS,
    CATEGORY_SECURITY,
    RuleFunctionResult,
)


class APIServers(RuleFunction):
    """Root servers must exist and each must carry a usable URL."""

    name = "oasAPIServers"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.document is None:
            return []
        root = ctx.document
        key, servers = mapping_get(root, "servers")
        if key is None:
            return [
                result("No servers defined for the specification", root, "$.servers", last_child(root))
            ]
        items = sequence_items(servers)
        if not items:
            return [result("Servers definition is empty, contains no servers!", key, "$.servers")]

        results = []
        for i, server in enumerate(items):
            url_key, url = mapping_get(server, "url")
            if url_key is None or not isinstance(url, ScalarNode):
                results.append(
                    result(
                        "Server definition is missing a URL",
                        server,
                        f"$.servers[{i}]",
                        last_child(server),
                    )
                )
                continue
            message = _url_problem(url.value)
            if message:
                results.append(result(message, url_key, f"$.servers[{i}].url", url))
        return results


def _url_problem(url: str) -> str:
    try:
        parsed = urlsplit(url)
    except ValueError as exc:
        return f"Server URL cannot be parsed: {exc}"
    if not parsed.netloc and not parsed.path:
        return "Server URL is not valid: no hostname or path provided"
    if parsed.path and parsed.path.endswith("/"):
        return "Server URL is not valid: must not have a trailing slash"
    return ""


class OperationSecurityDefined(RuleFunction):
    """Operation ``security`` entries must name a defined scheme.

    ``schemesPath`` points at the map of schemes; it defaults to
    ``components.securitySchemes`` (or ``securityDefinitions`` for
    Swagger 2.0).
    """

    name = "oasOpSecurityDefined"
    category_id = CATEGORY_SECURITY

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            properties=[
                RuleFunctionProperty("schemesPath", "dotted path to the security schemes map")
            ],
            max_properties=1,
            error_message="'oasOpSecurityDefined' accepts a single 'schemesPath' option",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        defined = self._defined(ctx)
        results = []
        for op in ctx.doctor.operations:
            for i, requirement in enumerate(sequence_items(op.get("security"))):
                for name_key, _ in mapping_items(requirement):
                    if not isinstance(name_key, ScalarNode) or name_key.value in defined:
                        continue
                    results.append(
                        result(
                            f"operation at '{op.path_key}' references an undefined security "
                            f"schema '{name_key.value}'",
                            name_key,
                            f"{op.path}.security[{i}]",
                        )
                    )
        return results

    def _defined(self, ctx: RuleFunctionContext) -> set[str]:
        path = option_str(ctx.options, "schemesPath").strip()
        if path.startswith("$."):
            path = path[2:]
        if not path:
            path = "securityDefinitions" if ctx.doctor.spec_info.is_oas2 else "components.securitySchemes"
        node: Node | None = ctx.doctor.root
        for part in path.split("."):
            node = get_value(node, part)
        return {k.value for k, _ in mapping_items(node) if isinstance(k, ScalarNode)}


class InfoLicenseURLSPDX(RuleFunction):
    name = "infoLicenseURLSPDX"
    category_id = CATEGORY_INFO

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.document is None:
            return []
        license_key, license_node = mapping_get(get_value(ctx.document, "info"), "license")
        if not isinstance(license_node, MappingNode):
            return []
        if get_str(license_node, "url") and get_str(license_node, "identifier"):
            message = ctx.rule.message or (
                "`license` must contain either a `url` or an `identifier`, not both"
            )
            return [result(message, license_key, "$.info.license", last_child(license_node))]
        return []
