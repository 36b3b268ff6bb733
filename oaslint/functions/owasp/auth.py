"""Security scheme checks."""

from __future__ import annotations

from yaml.nodes import Node

from oaslint.document.nodes import get_str, mapping_get
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_OWASP, RuleFunctionResult


def _key(node: Node, name: str, fallback: Node) -> Node:
    key, _ = mapping_get(node, name)
    return key if key is not None else fallback


class NoBasicAuth(RuleFunction):
    name = "owaspNoBasicAuth"
    category_id = CATEGORY_OWASP

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for scheme in ctx.doctor.security_schemes:
            basic_oas2 = scheme.type == "basic"
            insecure_http = scheme.type == "http" and scheme.scheme in ("basic", "negotiate")
            if basic_oas2 or insecure_http:
                field_name = "type" if basic_oas2 else "scheme"
                results.append(
                    result(
                        ctx.rule.message
                        or "security scheme uses HTTP Basic Auth, which is an insecure practice",
                        _key(scheme.node, field_name, scheme.node),
                        f"{scheme.path}.{field_name}",
                    )
                )
        return results


class AuthInsecureSchemes(RuleFunction):
    name = "owaspAuthInsecureSchemes"
    category_id = CATEGORY_OWASP

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for scheme in ctx.doctor.security_schemes:
            if scheme.type == "http" and scheme.scheme in ("negotiate", "oauth"):
                results.append(
                    result(
                        ctx.rule.message
                        or "authentication scheme is considered outdated or insecure",
                        _key(scheme.node, "scheme", scheme.node),
                        f"{scheme.path}.scheme",
                    )
                )
        return results


class JWTBestPractice(RuleFunction):
    name = "owaspJWTBestPractice"
    category_id = CATEGORY_OWASP

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for scheme in ctx.doctor.security_schemes:
            bearer = get_str(scheme.node, "bearerFormat").lower()
            if scheme.type != "oauth2" and bearer != "jwt":
                continue
            if "RFC8725" in get_str(scheme.node, "description"):
                continue
            results.append(
                result(
                    ctx.rule.message
                    or "JWTs must explicitly declare support for `RFC8725` in the description",
                    _key(scheme.node, "description", scheme.key_node or scheme.node),
                    f"{scheme.path}.description",
                )
            )
        return results


class NoApiKeyInUrl(RuleFunction):
    name = "owaspNoApiKeyInUrl"
    category_id = CATEGORY_OWASP

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for scheme in ctx.doctor.security_schemes:
            location = get_str(scheme.node, "in")
            if scheme.type.lower() == "apikey" and location.lower() in ("query", "path"):
                results.append(
                    result(
                        ctx.rule.message
                        or f"API keys must not be passed via URL parameters (`{location}`)",
                        _key(scheme.node, "in", scheme.node),
                        f"{scheme.path}.in",
                    )
                )
        return results
