"""Rule function protocol, context and shared helpers.

A rule function receives the nodes a rule's ``given`` located and a
:class:`RuleFunctionContext`, and returns a list of
:class:`~oaslint.models.RuleFunctionResult`.  Functions never stamp rule
metadata themselves; the engine does that after the call.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from oaslint.document.nodes import scalar_value
from oaslint.models import (
    CATEGORY_VALIDATION,
    Rule,
    RuleAction,
    RuleCategory,
    RuleFunctionResult,
    get_category,
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


@dataclass
class RuleFunctionProperty:
    name: str
    description: str = ""


@dataclass
class RuleFunctionSchema:
    """What a function expects from ``functionOptions``."""

    name: str
    required: list[str] = field(default_factory=list)
    min_properties: int = 0
    max_properties: int = 0
    properties: list[RuleFunctionProperty] = field(default_factory=list)
    error_message: str = ""
    requires_field: bool = False

    def property_description(self, name: str) -> str:
        for prop in self.properties:
            if prop.name == name:
                return prop.description
        return ""


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass
class RuleFunctionContext:
    """Everything a function may look at while it runs."""

    rule: Rule
    action: RuleAction
    given: str = ""
    options: dict[str, Any] = field(default_factory=dict)
    document: Node | None = None
    index: Any = None
    doctor: Any = None
    spec_info: Any = None
    http_client_config: Any = None
    precompiled_pattern: Any = None
    base: str = ""
    cancel: threading.Event | None = None

    @property
    def field(self) -> str:
        return self.action.field

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def indexed_path(self, index: int) -> str:
        """``given`` suffixed with the position of the node being checked."""
        return f"{self.given}[{index}]"

    def path_for(self, index: int, total: int) -> str:
        return self.given if total == 1 else self.indexed_path(index)


# ---------------------------------------------------------------------------
# Function base
# ---------------------------------------------------------------------------


class RuleFunction:
    """Base class for built-in rule functions."""

    name: str = ""
    category_id: str = CATEGORY_VALIDATION

    def schema(self) -> RuleFunctionSchema:
        return RuleFunctionSchema(name=self.name)

    def category(self) -> RuleCategory:
        return get_category(self.category_id)

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class CallableFunction(RuleFunction):
    """Wraps a plain callable ``fn(nodes, ctx) -> list`` as a rule function."""

    def __init__(
        self,
        name: str,
        fn: Callable[[list[Node], RuleFunctionContext], list[RuleFunctionResult]],
        schema: RuleFunctionSchema | None = None,
    ) -> None:
        self.name = name
        self._fn = fn
        self._schema = schema

    def schema(self) -> RuleFunctionSchema:
        return self._schema or RuleFunctionSchema(name=self.name)

    def run(self, nodes: list[Node], ctx: RuleFunctionContext) -> list[RuleFunctionResult]:
        return list(self._fn(nodes, ctx) or [])


def as_rule_function(name: str, candidate: Any) -> RuleFunction:
    if isinstance(candidate, RuleFunction):
        return candidate
    if callable(candidate):
        return CallableFunction(name, candidate)
    raise TypeError(f"custom function '{name}' is not callable")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def result(
    message: str,
    node: Node | None,
    path: str,
    end_node: Node | None = None,
    paths: list[str] | None = None,
) -> RuleFunctionResult:
    return RuleFunctionResult(
        message=message,
        start_node=node,
        end_node=end_node if end_node is not None else node,
        path=path,
        paths=list(paths or []),
    )


def find_field(node: Node, field_name: str) -> tuple[Node | None, Node | None]:
    """Locate *field_name* below *node*.

    Dotted names (``contact.email``) walk nested mappings.  Returns the key
    node and the value node, or ``(None, None)``.
    """
    if not field_name or not isinstance(node, MappingNode):
        return None, None
    current: Node | None = node
    key_node = None
    for part in field_name.split("."):
        if not isinstance(current, MappingNode):
            return None, None
        key_node, value = None, None
        for k, v in current.value:
            if isinstance(k, ScalarNode) and k.value == part:
                key_node, value = k, v
                break
        if key_node is None:
            return None, None
        current = value
    return key_node, current


def is_truthy_node(node: Node | None) -> bool:
    if node is None:
        return False
    if isinstance(node, ScalarNode):
        return node.value not in ("", "false", "0") and scalar_value(node) is not None
    if isinstance(node, (MappingNode, SequenceNode)):
        return bool(node.value)
    return True


def option_str(options: dict[str, Any], key: str, default: str = "") -> str:
    value = options.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def option_bool(options: dict[str, Any], key: str, default: bool = False) -> bool:
    value = options.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def option_int(options: dict[str, Any], key: str) -> int | None:
    value = options.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def option_list(options: dict[str, Any], key: str) -> list[str]:
    """A list option given as a YAML list or a comma separated string."""
    value = options.get(key)
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value]
    return [part.strip() for part in str(value).split(",") if part.strip()]


def compile_pattern(expression: str) -> re.Pattern[str]:
    """Compile a rule regex; ``/body/flags`` literals are accepted too."""
    if len(expression) > 2 and expression.startswith("/") and expression.rfind("/") > 0:
        end = expression.rfind("/")
        flags = expression[end + 1 :]
        if all(f in "imsux" for f in flags):
            inline = "".join(f for f in flags if f in "ims")
            body = expression[1:end]
            return re.compile(f"(?{inline}){body}" if inline else body)
    return re.compile(expression)
