"""Checks over the keys of the ``paths`` object."""

from __future__ import annotations

import re

from yaml.nodes import MappingNode, Node

from oaslint.document.doctor import HTTP_METHODS, DPathItem
from oaslint.document.nodes import (
    get_str,
    get_value,
    is_bool_node,
    mapping_get,
    scalar_value,
    sequence_items,
)
from oaslint.document.resolver import ref_of
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import CATEGORY_OPERATIONS, RuleFunctionResult

PATH_PARAM = re.compile(r"(\{;?\??[a-zA-Z0-9_-]+\*?\})")
_PARAM_DECORATION = re.compile(r"[{}?*;]")
_VARIABLE_SEGMENT = re.compile(r"^\{.+?\}$")
_KEBAB_SEGMENT = re.compile(r"^[{}a-z\d\-.]+$")


def path_params(path: str) -> list[str]:
    """Names of the ``{templated}`` segments of *path*, in order."""
    return [_PARAM_DECORATION.sub("", p) for p in PATH_PARAM.findall(path)]


def _segments(path: str) -> list[str]:
    return path.split("/")[1:]


# ---------------------------------------------------------------------------
# Path parameters
# ---------------------------------------------------------------------------


class PathParameters(RuleFunction):
    """Templated path segments and ``in: path`` parameters must line up.

    Equivalent paths (same shape, different parameter names) are reported,
    as are parameters used twice in one path, path parameters that are not
    ``required: true``, parameters defined twice, parameters the path never
    uses and path segments no parameter defines.
    """

    name = "oasPathParam"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results: list[RuleFunctionResult] = []
        seen_shapes: dict[str, str] = {}
        for item in ctx.doctor.path_items:
            shape = PATH_PARAM.sub("%", item.key)
            if shape in seen_shapes:
                results.append(
                    result(
                        f"Paths '{seen_shapes[shape]}' and '{item.key}' must not be equivalent, "
                        "paths must be unique",
                        item.key_node,
                        item.path,
                    )
                )
            else:
                seen_shapes[shape] = item.key
            results.extend(self._check_item(item, ctx))
        return results

    def _check_item(self, item: DPathItem, ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        results: list[RuleFunctionResult] = []
        used: list[str] = []
        for param in path_params(item.key):
            if param in used:
                results.append(
                    result(
                        f"Path '{item.key}' must not use the parameter '{param}' multiple times",
                        item.key_node,
                        item.path,
                    )
                )
            else:
                used.append(param)

        resolved = ctx.doctor.deref(item.node)
        if not isinstance(resolved, MappingNode):
            return results

        shared = self._declared(
            get_value(resolved, "parameters"), item.key, "", f"{item.path}.parameters", ctx, results
        )
        ops = [
            (method, get_value(resolved, method))
            for method in HTTP_METHODS
            if isinstance(get_value(resolved, method), MappingNode)
        ]
        declared_sets = []
        for method, op in ops:
            own = self._declared(
                get_value(op, "parameters"),
                item.key,
                method,
                f"{item.path}.{method}.parameters",
                ctx,
                results,
            )
            declared_sets.append(shared | own)
        if not ops:
            declared_sets.append(shared)

        reported: set[str] = set()
        for declared in declared_sets:
            for name in sorted(declared - set(used)):
                message = f"parameter '{name}' must be used in path '{item.key}'"
                if message not in reported:
                    reported.add(message)
                    results.append(result(message, item.key_node, item.path))
            for name in used:
                if name in declared:
                    continue
                message = f"Operation must define parameter '{name}' as expected by path '{item.key}'"
                if message not in reported:
                    reported.add(message)
                    results.append(result(message, item.key_node, item.path))
        return results

    def _declared(
        self,
        params: Node | None,
        path_key: str,
        method: str,
        path: str,
        ctx: RuleFunctionContext,
        results: list[RuleFunctionResult],
    ) -> set[str]:
        names: set[str] = set()
        where = " ".join(p for p in (path_key, method) if p)
        for raw in sequence_items(params):
            param = ctx.doctor.deref(raw)
            if get_str(param, "in") != "path":
                continue
            name = get_str(param, "name")
            if not name:
                continue
            required_key, required = mapping_get(param, "required")
            if required_key is not None and not (is_bool_node(required) and scalar_value(required)):
                results.append(
                    result(
                        f"{where} must have 'required' parameter that is set to 'true'",
                        required_key,
                        path,
                        end_node=required,
                    )
                )
            if name in names:
                name_key, _ = mapping_get(param, "name")
                results.append(
                    result(
                        f"{where} has a parameter '{name}' defined multiple times",
                        name_key,
                        path,
                    )
                )
                continue
            names.add(name)
        return names


# ---------------------------------------------------------------------------
# Path shape
# ---------------------------------------------------------------------------


def paths_ambiguous(a: str, b: str) -> bool:
    """Same length, same literal segments and the same number of variables."""
    seg_a, seg_b = _segments(a), _segments(b)
    if len(seg_a) != len(seg_b):
        return False
    vars_a = vars_b = 0
    for x, y in zip(seg_a, seg_b):
        x_var = bool(_VARIABLE_SEGMENT.match(x))
        y_var = bool(_VARIABLE_SEGMENT.match(y))
        if x_var or y_var:
            vars_a += x_var
            vars_b += y_var
            continue
        if x != y:
            return False
    return vars_a == vars_b


class AmbiguousPaths(RuleFunction):
    name = "noAmbiguousPaths"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        seen: list[str] = []
        for item in ctx.doctor.path_items:
            for earlier in seen:
                if paths_ambiguous(earlier, item.key):
                    results.append(
                        result(
                            f"Paths are ambiguous with one another: `{earlier}` and `{item.key}`",
                            item.key_node,
                            item.path,
                        )
                    )
            seen.append(item.key)
        return results


class DuplicatePaths(RuleFunction):
    """The same key twice under ``paths``: parsers keep only the last one."""

    name = "duplicatePaths"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        seen: set[str] = set()
        for item in ctx.doctor.path_items:
            if item.key in seen:
                results.append(
                    result(
                        f"duplicate path '{item.key}' found; only the last definition will be "
                        "used, previous definitions are ignored",
                        item.key_node,
                        item.path,
                    )
                )
            seen.add(item.key)
        return results


class VerbsInPath(RuleFunction):
    name = "noVerbsInPath"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for item in ctx.doctor.path_items:
            for seg in _segments(item.key):
                if seg.lower() in HTTP_METHODS:
                    results.append(
                        result(
                            f"path `{item.key}` contains an HTTP Verb `{seg}`",
                            item.key_node,
                            item.path,
                        )
                    )
                    break
        return results


def non_kebab_segments(path: str) -> list[str]:
    found = []
    for seg in _segments(path):
        if not seg or _KEBAB_SEGMENT.match(seg) or _VARIABLE_SEGMENT.match(seg):
            continue
        found.append(seg)
    return found


class PathsKebabCase(RuleFunction):
    name = "pathsKebabCase"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results = []
        for item in ctx.doctor.path_items:
            if item.key == "/":
                continue
            bad = non_kebab_segments(item.key)
            if bad:
                joined = "`, `".join(bad)
                results.append(
                    result(
                        f"Path segments `{joined}` do not use kebab-case",
                        item.key_node,
                        item.path,
                    )
                )
        return results


class PathItemReferences(RuleFunction):
    name = "pathItemReferences"
    category_id = CATEGORY_OPERATIONS

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if ctx.doctor is None:
            return []
        results = []
        for item in ctx.doctor.path_items:
            if ref_of(item.node) is None:
                continue
            message = ctx.rule.message or (
                f"path `{item.key}` item uses a $ref, it's technically not allowed"
            )
            results.append(result(message, item.key_node, item.path))
        return results
