"""Response checks: error responses, rate limiting headers and ``Retry-After``."""

from __future__ import annotations

from yaml.nodes import MappingNode, Node, ScalarNode

from oaslint.document.doctor import DOperation
from oaslint.document.nodes import bracket, get_value, mapping_get, mapping_items
from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionProperty,
    RuleFunctionSchema,
    option_list,
    option_str,
    result,
)
from oaslint.models import CATEGORY_OWASP, RuleFunctionResult


def _responses(op: DOperation, ctx: RuleFunctionContext) -> tuple[Node | None, list[tuple[Node, Node]]]:
    """The ``responses`` key node and its (code key, dereferenced response) pairs."""
    key, value = mapping_get(op.node, "responses")
    pairs = []
    for k, v in mapping_items(value):
        if isinstance(k, ScalarNode):
            pairs.append((k, ctx.doctor.deref(v)))
    return key, pairs


def _has_schema(response: Node | None, oas2: bool) -> bool:
    if not isinstance(response, MappingNode):
        return False
    if oas2:
        return get_value(response, "schema") is not None
    for _, media in mapping_items(get_value(response, "content")):
        if get_value(media, "schema") is not None:
            return True
    return False


class CheckErrorResponse(RuleFunction):
    """An operation must define a response for ``code`` and give it a schema."""

    name = "owaspCheckErrorResponse"
    category_id = CATEGORY_OWASP

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["code"],
            properties=[RuleFunctionProperty("code", "the response code that must be defined")],
            error_message="'owaspCheckErrorResponse' needs a response 'code' to check for",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        code = option_str(ctx.options, "code")
        oas2 = ctx.doctor.spec_info.is_oas2
        results = []
        for op in ctx.doctor.operations:
            responses_key, pairs = _responses(op, ctx)
            path = f"{op.path}.responses"
            found = [(k, v) for k, v in pairs if k.value == code]
            anchor = responses_key or op.key_node or op.node
            if not found:
                results.append(
                    result(f"missing response code '{code}' for '{op.method.upper()}'", anchor, path)
                )
                continue
            code_key, response = found[0]
            if not _has_schema(response, oas2):
                results.append(
                    result(
                        f"missing schema for '{code}' response on '{op.method.upper()}'",
                        code_key,
                        path,
                    )
                )
        return results


class DefineErrorDefinition(RuleFunction):
    """Every operation must define at least one of the configured error codes."""

    name = "owaspDefineErrorDefinition"
    category_id = CATEGORY_OWASP

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["codes"],
            properties=[RuleFunctionProperty("codes", "response codes, one of which must exist")],
            error_message="'owaspDefineErrorDefinition' needs a list of response 'codes'",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        codes = option_list(ctx.options, "codes")
        if not codes:
            return []
        results = []
        for op in ctx.doctor.operations:
            responses_key, pairs = _responses(op, ctx)
            if any(k.value in codes for k, _ in pairs):
                continue
            joined = "`, `".join(codes)
            results.append(
                result(
                    f"missing one of `{joined}` response codes",
                    responses_key or op.key_node or op.node,
                    f"{op.path}.responses",
                )
            )
        return results


class HeaderDefinition(RuleFunction):
    """2xx and 4xx responses must declare one complete set of rate limit headers."""

    name = "owaspHeaderDefinition"
    category_id = CATEGORY_OWASP

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(
            name=self.name,
            required=["headers"],
            properties=[
                RuleFunctionProperty("headers", "a list of header sets, one set must be present")
            ],
            error_message="'owaspHeaderDefinition' needs a list of 'headers' sets",
        )

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        header_sets = _header_sets(ctx.options.get("headers"))
        if not header_sets:
            return []
        results = []
        for op in ctx.doctor.operations:
            _, pairs = _responses(op, ctx)
            for code_key, response in pairs:
                code = code_key.value
                if not (code.startswith("2") or code.startswith("4")) or len(code) != 3:
                    continue
                message = _header_message(code, header_sets)
                response_path = f"{op.path}.responses{bracket(code)}"
                headers_key, headers = mapping_get(response, "headers")
                if headers_key is None:
                    results.append(result(message, code_key, response_path))
                    continue
                names = {k.value for k, _ in mapping_items(headers) if isinstance(k, ScalarNode)}
                if not any(all(h in names for h in hs) for hs in header_sets):
                    results.append(result(message, headers_key, f"{response_path}.headers"))
        return results


def _header_sets(raw: object) -> list[list[str]]:
    sets = []
    for entry in raw or []:
        if isinstance(entry, (list, tuple)):
            sets.append([str(h) for h in entry])
        elif isinstance(entry, str):
            sets.append([h.strip() for h in entry.split(",") if h.strip()])
    return sets


def _header_message(code: str, header_sets: list[list[str]]) -> str:
    rendered = " ".join("{" + ", ".join(hs) + "}" for hs in header_sets)
    return f"Response with code {code}, must contain one of the defined 'headers': {{{rendered}}}"


class RatelimitRetryAfter(RuleFunction):
    name = "owaspRatelimitRetryAfter"
    category_id = CATEGORY_OWASP

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for op in ctx.doctor.operations:
            _, pairs = _responses(op, ctx)
            for code_key, response in pairs:
                if code_key.value != "429":
                    continue
                headers = get_value(response, "headers")
                names = {k.value.lower() for k, _ in mapping_items(headers) if isinstance(k, ScalarNode)}
                if "retry-after" in names:
                    continue
                results.append(
                    result(
                        ctx.rule.message or "missing 'Retry-After' header for 429 error response",
                        code_key,
                        f"{op.path}.responses{bracket('429')}",
                    )
                )
        return results
