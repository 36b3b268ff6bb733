"""Example checks: examples should exist, be well formed and match their schema."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from jsonschema import exceptions as js_exceptions
from jsonschema import validators
from yaml.nodes import MappingNode, Node, ScalarNode

from oaslint.document.doctor import DSchema
from oaslint.document.nodes import (
    bracket,
    get_value,
    has_key,
    mapping_items,
    scalar_value,
    sequence_items,
    to_data,
)
from oaslint.document.resolver import ref_of
from oaslint.document.spec_info import FORMAT_OAS3_1
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.functions.core.schema import describe_error
from oaslint.models import CATEGORY_EXAMPLES, RuleFunctionResult

logger = logging.getLogger(__name__)

_SELF_EXPLANATORY_TYPES = ("boolean", "string", "number", "integer")


# ---------------------------------------------------------------------------
# Schema conversion
# ---------------------------------------------------------------------------


def schema_data(node: Node, ctx: RuleFunctionContext) -> Any:
    """Plain JSON Schema for *node*, local ``$ref`` targets inlined.

    A reference back into a schema that is still being converted becomes
    ``{}``, as do references that cannot be resolved locally.  Before
    OpenAPI 3.1, ``nullable: true`` is rewritten into a ``null`` type.
    """
    nullable_keyword = ctx.doctor.spec_info.format != FORMAT_OAS3_1
    on_path: set[int] = set()

    def convert(n: Node) -> Any:
        if isinstance(n, ScalarNode):
            return scalar_value(n)
        ref = ref_of(n)
        if ref is not None:
            target = ctx.doctor.deref(n) if ref.startswith("#") else None
            if target is None or ref_of(target) is not None:
                return {}
            n = target
        if id(n) in on_path:
            return {}
        on_path.add(id(n))
        try:
            if isinstance(n, MappingNode):
                out: Any = {}
                for k, v in n.value:
                    key = k.value if isinstance(k, ScalarNode) else str(convert(k))
                    out[key] = convert(v)
                if nullable_keyword and out.get("nullable") is True:
                    _allow_null(out)
            else:
                out = [convert(item) for item in n.value]
        finally:
            on_path.discard(id(n))
        return out

    return convert(node)


def _allow_null(schema: dict[str, Any]) -> None:
    declared = schema.get("type")
    if isinstance(declared, str):
        schema["type"] = [declared, "null"]
    enum = schema.get("enum")
    if isinstance(enum, list) and None not in enum:
        enum.append(None)


def _validator(schema: Any, ctx: RuleFunctionContext) -> Any:
    """A validator for *schema*, or ``None`` when it is not a usable JSON Schema."""
    if ctx.doctor.spec_info.format == FORMAT_OAS3_1:
        cls = validators.Draft202012Validator
    else:
        # boolean exclusiveMinimum / exclusiveMaximum
        cls = validators.Draft4Validator
    try:
        cls.check_schema(schema)
    except js_exceptions.SchemaError as exc:
        logger.debug("skipping example validation, schema unusable: %s", exc.message)
        return None
    return cls(schema)


# ---------------------------------------------------------------------------
# Locating examples
# ---------------------------------------------------------------------------


def _named_examples(
    owner: Node, owner_path: str, ctx: RuleFunctionContext
) -> Iterator[tuple[Node, Node, str]]:
    """``(key_node, value_node, path)`` for every inline ``examples`` entry with a ``value``."""
    for k, v in mapping_items(get_value(owner, "examples")):
        if not isinstance(k, ScalarNode):
            continue
        example = ctx.doctor.deref(v)
        value = get_value(example, "value")
        if value is not None:
            yield k, value, f"{owner_path}.examples{bracket(k.value)}"


def _owner_examples(
    owner: Node, owner_path: str, ctx: RuleFunctionContext
) -> list[tuple[Node, Node, str]]:
    """Examples held by a parameter, header or media type.

    ``examples`` wins over ``example`` when both are present.
    """
    named = list(_named_examples(owner, owner_path, ctx))
    if named:
        return named
    for k, v in mapping_items(owner):
        if isinstance(k, ScalarNode) and k.value == "example":
            return [(k, v, f"{owner_path}.example")]
    return []


def _schema_examples(schema: DSchema) -> list[tuple[Node, Node, str]]:
    found = []
    for k, v in mapping_items(schema.node):
        if not isinstance(k, ScalarNode):
            continue
        if k.value == "example":
            found.append((k, v, f"{schema.path}.example"))
        elif k.value == "examples":
            for i, item in enumerate(sequence_items(v)):
                found.append((k, item, f"{schema.path}.examples[{i}]"))
    return found


def _has_example(node: Node | None) -> bool:
    return has_key(node, "example") or has_key(node, "examples")


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


class ExampleSchema(RuleFunction):
    """Every example must validate against the schema it illustrates."""

    name = "oasExampleSchema"
    category_id = CATEGORY_EXAMPLES

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results: list[RuleFunctionResult] = []

        for schema in ctx.doctor.schemas:
            if ctx.cancelled:
                return results
            examples = _schema_examples(schema)
            if examples:
                results.extend(self._check(schema.node, examples, ctx))

        owners: list[tuple[Node, str, Node | None, str]] = []
        owners += [(p.node, p.path, p.schema, "") for p in ctx.doctor.parameters]
        owners += [(h.node, h.path, h.schema, "") for h in ctx.doctor.headers]
        owners += [(m.node, m.path, m.schema, m.name) for m in ctx.doctor.media_types]
        for owner, path, schema_node, media in owners:
            if ctx.cancelled:
                return results
            if schema_node is None:
                continue
            examples = _owner_examples(owner, path, ctx)
            if "xml" in media:
                # serialised XML is not checked against the schema
                examples = [e for e in examples if not isinstance(e[1], ScalarNode)]
            if examples:
                results.extend(self._check(schema_node, examples, ctx))
        return results

    @staticmethod
    def _check(
        schema_node: Node,
        examples: list[tuple[Node, Node, str]],
        ctx: RuleFunctionContext,
    ) -> list[RuleFunctionResult]:
        validator = _validator(schema_data(schema_node, ctx), ctx)
        if validator is None:
            return []
        out = []
        for key_node, value, path in examples:
            instance = to_data(ctx.doctor.deref(value) or value)
            errors = sorted(
                validator.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path]
            )
            for error in errors:
                out.append(
                    result(
                        f"example does not match its schema: {describe_error(error)}",
                        key_node,
                        path,
                        end_node=value,
                    )
                )
        return out


def _self_explanatory(schema_node: Node | None, ctx: RuleFunctionContext) -> bool:
    """Schemas simple enough that an example would add nothing."""
    node = ctx.doctor.deref(schema_node)
    if not isinstance(node, MappingNode):
        return True
    if _has_example(node):
        return True
    for keyword in ("enum", "const", "default"):
        if has_key(node, keyword):
            return True
    types = DSchema(node, "").types
    if not types or any(t in _SELF_EXPLANATORY_TYPES for t in types):
        return True
    return has_key(ctx.doctor.deref(get_value(node, "items")), "enum")


class ExampleMissing(RuleFunction):
    """Parameters, headers, media types and component schemas should carry examples."""

    name = "oasExampleMissing"
    category_id = CATEGORY_EXAMPLES

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        results: list[RuleFunctionResult] = []

        for label, entries in (("parameter", ctx.doctor.parameters), ("header", ctx.doctor.headers)):
            for entry in entries:
                if entry.schema is None or _has_example(entry.node):
                    continue
                if _self_explanatory(entry.schema, ctx):
                    continue
                results.append(
                    result(f"{label} is missing `examples` or `example`", entry.node, entry.path)
                )

        for media in ctx.doctor.media_types:
            if media.schema is None or _has_example(media.node):
                continue
            if _self_explanatory(media.schema, ctx):
                continue
            results.append(
                result("media type is missing `examples` or `example`", media.node, media.path)
            )

        for schema in ctx.doctor.schemas:
            if ctx.cancelled:
                return results
            if not schema.name or schema.path != schema.root_path:
                continue
            if not schema.path.startswith("$.components.schemas"):
                continue
            if _self_explanatory(schema.node, ctx):
                continue
            results.extend(self._component(schema, ctx))
        return results

    @staticmethod
    def _component(schema: DSchema, ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        out = []
        properties = mapping_items(schema.get("properties"))
        for k, v in properties:
            if isinstance(k, ScalarNode) and not _has_example(ctx.doctor.deref(v)):
                out.append(
                    result(
                        f"schema property `{k.value}` is missing `examples` or `example`",
                        k,
                        f"{schema.path}.properties{bracket(k.value)}",
                    )
                )
                break
        if out or not properties:
            out.append(
                result(
                    "schema is missing `examples` or `example`",
                    schema.key_node or schema.node,
                    schema.path,
                    end_node=schema.node,
                )
            )
        return out


class ExampleExternalCheck(RuleFunction):
    """An Example object holds either ``value`` or ``externalValue``, never both."""

    name = "oasExampleExternalCheck"
    category_id = CATEGORY_EXAMPLES

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        if not nodes or ctx.doctor is None:
            return []
        owners = [("parameter", p.node, p.path) for p in ctx.doctor.parameters]
        owners += [("header", h.node, h.path) for h in ctx.doctor.headers]
        owners += [("media type", m.node, m.path) for m in ctx.doctor.media_types]
        results = []
        for label, owner, owner_path in owners:
            for k, v in mapping_items(get_value(owner, "examples")):
                if not isinstance(k, ScalarNode):
                    continue
                example = ctx.doctor.deref(v)
                if has_key(example, "value") and has_key(example, "externalValue"):
                    results.append(
                        result(
                            f"{label} example contains both `externalValue` and `value`",
                            k,
                            f"{owner_path}.examples{bracket(k.value)}",
                            end_node=example,
                        )
                    )
        return results
