"""Node-tree helpers on top of PyYAML's composer.

Specifications are composed (not loaded) so every value keeps its
``start_mark`` / ``end_mark``.  JSON documents go through the same path,
JSON being (near enough) a subset of YAML.
"""

from __future__ import annotations

from typing import Any, Iterator

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from oaslint.errors import DocumentParseError

_CONSTRUCTOR = yaml.constructor.SafeConstructor()

_TYPED_SCALARS = {
    "tag:yaml.org,2002:null",
    "tag:yaml.org,2002:bool",
    "tag:yaml.org,2002:int",
    "tag:yaml.org,2002:float",
}


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_ast(data: bytes | str) -> Node:
    """Compose *data* into a node tree, raising :class:`DocumentParseError`."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if not data.strip():
        raise DocumentParseError("document is empty")
    try:
        root = yaml.compose(data, Loader=yaml.SafeLoader)
    except yaml.YAMLError as exc:
        raise DocumentParseError(f"unable to parse document: {exc}") from exc
    if root is None:
        raise DocumentParseError("document is empty")
    return root


# ---------------------------------------------------------------------------
# Kinds and values
# ---------------------------------------------------------------------------


def is_mapping(node: Any) -> bool:
    return isinstance(node, MappingNode)


def is_sequence(node: Any) -> bool:
    return isinstance(node, SequenceNode)


def is_scalar(node: Any) -> bool:
    return isinstance(node, ScalarNode)


def scalar_value(node: Node) -> Any:
    """Convert a scalar node to a Python value (str, int, float, bool or None)."""
    if not isinstance(node, ScalarNode):
        return None
    if node.tag in _TYPED_SCALARS:
        try:
            return _CONSTRUCTOR.yaml_constructors[node.tag](_CONSTRUCTOR, node)
        except (ValueError, yaml.constructor.ConstructorError):
            return node.value
    return node.value


def is_bool_node(node: Any) -> bool:
    return isinstance(node, ScalarNode) and node.tag == "tag:yaml.org,2002:bool"


def is_number_node(node: Any) -> bool:
    return isinstance(node, ScalarNode) and node.tag in (
        "tag:yaml.org,2002:int",
        "tag:yaml.org,2002:float",
    )


def line_col(node: Any) -> tuple[int, int]:
    """1-based line and column of *node*."""
    mark = getattr(node, "start_mark", None)
    if mark is None:
        return 1, 1
    return mark.line + 1, mark.column + 1


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


def mapping_items(node: Any) -> list[tuple[Node, Node]]:
    if not isinstance(node, MappingNode):
        return []
    return list(node.value)


def mapping_get(node: Any, key: str) -> tuple[Node | None, Node | None]:
    """Return ``(key_node, value_node)`` for *key*, or ``(None, None)``."""
    if not isinstance(node, MappingNode):
        return None, None
    for k, v in node.value:
        if isinstance(k, ScalarNode) and k.value == key:
            return k, v
    return None, None


def get_value(node: Any, key: str) -> Node | None:
    return mapping_get(node, key)[1]


def get_scalar(node: Any, key: str, default: Any = None) -> Any:
    v = get_value(node, key)
    if isinstance(v, ScalarNode):
        return scalar_value(v)
    return default


def get_str(node: Any, key: str) -> str:
    v = get_value(node, key)
    if isinstance(v, ScalarNode):
        return v.value
    return ""


def has_key(node: Any, key: str) -> bool:
    return mapping_get(node, key)[0] is not None


def sequence_items(node: Any) -> list[Node]:
    if not isinstance(node, SequenceNode):
        return []
    return list(node.value)


def last_child(node: Any) -> Node:
    """Deepest last descendant, used as the end of a span."""
    seen: set[int] = set()
    while id(node) not in seen:
        seen.add(id(node))
        if isinstance(node, MappingNode) and node.value:
            node = node.value[-1][1]
        elif isinstance(node, SequenceNode) and node.value:
            node = node.value[-1]
        else:
            break
    return node


def walk(node: Node) -> Iterator[Node]:
    """Yield *node* and every descendant (keys included), once each."""
    seen: set[int] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        if isinstance(current, MappingNode):
            for k, v in reversed(current.value):
                stack.append(v)
                stack.append(k)
        elif isinstance(current, SequenceNode):
            stack.extend(reversed(current.value))


# ---------------------------------------------------------------------------
# Plain-data conversion
# ---------------------------------------------------------------------------


def to_data(node: Node, registry: dict[int, Node] | None = None) -> Any:
    """Convert a node tree into plain Python data.

    Mapping keys are always strings (``200:`` stays ``"200"``).  When
    *registry* is given, ``id()`` of every produced dict/list is mapped
    back to its source node.
    """
    on_path: set[int] = set()

    def convert(n: Node) -> Any:
        if isinstance(n, ScalarNode):
            return scalar_value(n)
        if id(n) in on_path:
            return None
        on_path.add(id(n))
        try:
            if isinstance(n, MappingNode):
                out: Any = {}
                for k, v in n.value:
                    key = k.value if isinstance(k, ScalarNode) else str(convert(k))
                    out[key] = convert(v)
            else:
                out = [convert(item) for item in n.value]
        finally:
            on_path.discard(id(n))
        if registry is not None:
            registry[id(out)] = n
        return out

    return convert(node)


# ---------------------------------------------------------------------------
# Canonical paths
# ---------------------------------------------------------------------------


def bracket(key: str) -> str:
    """``['key']`` segment, used for user-named map entries."""
    escaped = key.replace("\\", "\\\\").replace("'", "\\'")
    return f"['{escaped}']"


def path_segment(key: str | int) -> str:
    """Render one segment of a canonical JSONPath."""
    if isinstance(key, int):
        return f"[{key}]"
    if key and (key[0].isalpha() or key[0] in "_$") and all(
        c.isalnum() or c in "_-$" for c in key
    ):
        return f".{key}"
    return bracket(key)


def render_path(segments: list[str | int], root: str = "$") -> str:
    return root + "".join(path_segment(s) for s in segments)


def node_at(root: Node, segments: list[str | int]) -> tuple[Node, int]:
    """Walk *segments* from *root*; return the deepest node reached and its depth."""
    node = root
    for depth, seg in enumerate(segments):
        if isinstance(node, MappingNode):
            child = get_value(node, str(seg))
        elif isinstance(node, SequenceNode) and isinstance(seg, int) and seg < len(node.value):
            child = node.value[seg]
        else:
            child = None
        if child is None:
            return node, depth
        node = child
    return node, len(segments)


# Map sections whose children are user-chosen names.
_NAMED_SECTIONS = {
    "paths",
    "schemas",
    "properties",
    "responses",
    "parameters",
    "definitions",
    "securitySchemes",
    "securityDefinitions",
    "requestBodies",
    "headers",
    "content",
    "examples",
    "links",
    "callbacks",
    "pathItems",
    "patternProperties",
    "webhooks",
    "$defs",
}


def canonical_path(segments: list[str | int]) -> str:
    """Like :func:`render_path`, bracketing names that sit below a named section.

    ``["paths", "/a", "get"]`` renders as ``$.paths['/a'].get``.
    """
    out = "$"
    parent_is_section = False
    for seg in segments:
        if isinstance(seg, str) and parent_is_section:
            out += bracket(seg)
            parent_is_section = False
        else:
            out += path_segment(seg)
            parent_is_section = isinstance(seg, str) and seg in _NAMED_SECTIONS
    return out


def find_keys(root: Node, name: str) -> list[tuple[Node, Node, list[str | int]]]:
    """Every ``(key_node, value_node, segments)`` whose key is *name*, in document order."""
    found: list[tuple[Node, Node, list[str | int]]] = []
    seen: set[int] = set()
    stack: list[tuple[Node, list[str | int]]] = [(root, [])]
    while stack:
        node, segments = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        if isinstance(node, MappingNode):
            children = []
            for k, v in node.value:
                key = k.value if isinstance(k, ScalarNode) else ""
                if key == name:
                    found.append((k, v, segments + [key]))
                children.append((v, segments + [key]))
            stack.extend(reversed(children))
        elif isinstance(node, SequenceNode):
            stack.extend(reversed([(item, segments + [i]) for i, item in enumerate(node.value)]))
    found.sort(key=lambda entry: (entry[0].start_mark.line, entry[0].start_mark.column))
    return found
