"""Typed, cross-referenced view of an OpenAPI document.

The doctor document walks the raw node tree once and hands rule functions
flat lists of the things they care about: schemas, parameters, headers,
media types, security schemes, servers, operations and tags.  Every entry
keeps its source node and canonical JSONPath so results can point straight
back at the document.

Schemas also carry a *direction*: ``request`` when reachable from a request
body or parameter, ``response`` when reachable from a response.  Component
schemas inherit the direction of everything that references them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from oaslint.document.index import SpecIndex
from oaslint.document.nodes import (
    canonical_path,
    get_scalar,
    get_str,
    get_value,
    mapping_get,
    mapping_items,
    scalar_value,
    sequence_items,
)
from oaslint.document.resolver import ref_of
from oaslint.document.spec_info import SpecInfo

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

REQUEST = "request"
RESPONSE = "response"

# keyword -> how its value holds sub-schemas
_SCHEMA_MAPS = ("properties", "patternProperties", "dependentSchemas", "$defs", "definitions")
_SCHEMA_LISTS = ("allOf", "anyOf", "oneOf", "prefixItems")
_SCHEMA_SINGLE = (
    "items",
    "additionalItems",
    "additionalProperties",
    "not",
    "contains",
    "if",
    "then",
    "else",
    "propertyNames",
    "unevaluatedItems",
    "unevaluatedProperties",
    "contentSchema",
)


# ---------------------------------------------------------------------------
# Typed entries
# ---------------------------------------------------------------------------


@dataclass
class DSchema:
    """A schema object found in the document."""

    node: MappingNode
    path: str
    name: str = ""
    key_node: Node | None = None
    paths: list[str] = field(default_factory=list)
    direction: set[str] = field(default_factory=set)
    root_path: str = ""

    def get(self, key: str) -> Node | None:
        return get_value(self.node, key)

    def has(self, key: str) -> bool:
        return mapping_get(self.node, key)[0] is not None

    def scalar(self, key: str, default: Any = None) -> Any:
        return get_scalar(self.node, key, default)

    @property
    def types(self) -> list[str]:
        """``type`` as a list; OpenAPI 3.1 allows an array of types."""
        node = self.get("type")
        if isinstance(node, ScalarNode):
            return [str(node.value)]
        return [str(scalar_value(n)) for n in sequence_items(node)]

    def is_type(self, name: str) -> bool:
        return name in self.types

    @property
    def is_request(self) -> bool:
        return REQUEST in self.direction

    @property
    def is_response(self) -> bool:
        return RESPONSE in self.direction


@dataclass
class DParameter:
    node: MappingNode
    path: str
    name: str
    location: str  # the ``in`` value
    schema: Node | None = None


@dataclass
class DHeader:
    node: MappingNode
    path: str
    name: str
    schema: Node | None = None


@dataclass
class DMediaType:
    """One entry of a ``content`` map."""

    node: MappingNode
    path: str
    name: str  # the media type, e.g. ``application/json``
    schema: Node | None = None


@dataclass
class DSecurityScheme:
    name: str
    node: MappingNode
    path: str
    key_node: Node | None = None

    @property
    def type(self) -> str:
        return get_str(self.node, "type")

    @property
    def scheme(self) -> str:
        return get_str(self.node, "scheme").lower()


@dataclass
class DServer:
    node: MappingNode
    path: str
    url: str


@dataclass
class DPathItem:
    key: str
    key_node: Node
    node: Node
    path: str


@dataclass
class DOperation:
    path_key: str
    method: str
    node: MappingNode
    path_item: DPathItem
    path: str
    key_node: Node | None = None
    parameters: list[tuple[Node, str]] = field(default_factory=list)

    def get(self, key: str) -> Node | None:
        return get_value(self.node, key)

    @property
    def operation_id(self) -> str:
        return get_str(self.node, "operationId")

    def response_codes(self) -> list[str]:
        return [k.value for k, _ in mapping_items(self.get("responses")) if isinstance(k, ScalarNode)]


@dataclass
class DTag:
    name: str
    node: MappingNode
    path: str


# ---------------------------------------------------------------------------
# DoctorDocument
# ---------------------------------------------------------------------------


class DoctorDocument:
    """Walks a specification once and exposes its typed parts."""

    def __init__(self, root: Node, index: SpecIndex, spec_info: SpecInfo) -> None:
        self.root = root
        self.index = index
        self.spec_info = spec_info
        self.schemas: list[DSchema] = []
        self.parameters: list[DParameter] = []
        self.headers: list[DHeader] = []
        self.media_types: list[DMediaType] = []
        self.security_schemes: list[DSecurityScheme] = []
        self.servers: list[DServer] = []
        self.path_items: list[DPathItem] = []
        self.operations: list[DOperation] = []
        self.tags: list[DTag] = []

        self._schemas_by_node: dict[int, DSchema] = {}
        self._pending_paths: dict[int, list[str]] = {}
        self._root_direction: dict[str, set[str]] = {}
        self._ref_edges: list[tuple[str, int]] = []

        if isinstance(root, MappingNode):
            self._walk_paths()
            self._walk_components()
            self._walk_security_schemes()
            self._walk_servers()
            self._walk_tags()
            self._finish_schemas()

    def deref(self, node: Node | None) -> Node | None:
        return self.index.deref(node)

    def schema_for(self, node: Node) -> DSchema | None:
        return self._schemas_by_node.get(id(node))

    def operations_for(self, path_key: str) -> list[DOperation]:
        return [op for op in self.operations if op.path_key == path_key]

    # ------------------------------------------------------------ schemas

    def _add_schema(
        self,
        node: Node | None,
        segments: list[str | int],
        root_path: str,
        name: str = "",
        key_node: Node | None = None,
    ) -> None:
        """Register *node* (and everything below it) as schemas under *root_path*."""
        if not isinstance(node, MappingNode):
            return
        path = canonical_path(segments)
        ref = ref_of(node)
        if ref is not None:
            if ref.startswith("#"):
                target = self.index.find(ref)
                if target is not None:
                    self._pending_paths.setdefault(id(target), []).append(path)
                    self._ref_edges.append((root_path, id(target)))
            return

        existing = self._schemas_by_node.get(id(node))
        if existing is not None:
            if path != existing.path and path not in existing.paths:
                existing.paths.append(path)
            return

        schema = DSchema(node, path, name=name, key_node=key_node, root_path=root_path)
        self._schemas_by_node[id(node)] = schema
        self.schemas.append(schema)

        for keyword in _SCHEMA_MAPS:
            for k, v in mapping_items(get_value(node, keyword)):
                if isinstance(k, ScalarNode):
                    self._add_schema(v, segments + [keyword, k.value], root_path, k.value, k)
        for keyword in _SCHEMA_LISTS:
            for i, item in enumerate(sequence_items(get_value(node, keyword))):
                self._add_schema(item, segments + [keyword, i], root_path)
        for keyword in _SCHEMA_SINGLE:
            child = get_value(node, keyword)
            if isinstance(child, SequenceNode):
                for i, item in enumerate(child.value):
                    self._add_schema(item, segments + [keyword, i], root_path)
            else:
                self._add_schema(child, segments + [keyword], root_path)

    def _start(
        self,
        node: Node | None,
        segments: list[str | int],
        direction: str | None,
        name: str = "",
        key_node: Node | None = None,
    ) -> None:
        root_path = canonical_path(segments)
        dirs = self._root_direction.setdefault(root_path, set())
        if direction:
            dirs.add(direction)
        self._add_schema(node, segments, root_path, name, key_node)

    def _media_schemas(self, content: Node | None, segments: list[str | int], direction: str) -> None:
        for k, v in mapping_items(content):
            if not isinstance(k, ScalarNode):
                continue
            if isinstance(v, MappingNode):
                self.media_types.append(
                    DMediaType(v, canonical_path(segments + [k.value]), k.value, get_value(v, "schema"))
                )
            self._start(get_value(v, "schema"), segments + [k.value, "schema"], direction)

    def _collect_header(self, header: Node | None, segments: list[str | int]) -> None:
        if not isinstance(header, MappingNode) or ref_of(header) is not None:
            return
        self.headers.append(
            DHeader(header, canonical_path(segments), str(segments[-1]), get_value(header, "schema"))
        )
        self._start(get_value(header, "schema"), segments + ["schema"], RESPONSE)
        self._media_schemas(get_value(header, "content"), segments + ["content"], RESPONSE)

    def _parameter_schemas(self, param: Node | None, segments: list[str | int]) -> None:
        if not isinstance(param, MappingNode) or ref_of(param) is not None:
            return
        self._start(get_value(param, "schema"), segments + ["schema"], REQUEST)
        self._media_schemas(get_value(param, "content"), segments + ["content"], REQUEST)

    def _response_schemas(self, response: Node | None, segments: list[str | int]) -> None:
        if not isinstance(response, MappingNode) or ref_of(response) is not None:
            return
        if self.spec_info.is_oas2:
            self._start(get_value(response, "schema"), segments + ["schema"], RESPONSE)
        else:
            self._media_schemas(get_value(response, "content"), segments + ["content"], RESPONSE)
        for hk, hv in mapping_items(get_value(response, "headers")):
            if isinstance(hk, ScalarNode):
                self._collect_header(hv, segments + ["headers", hk.value])

    def _request_body_schemas(self, body: Node | None, segments: list[str | int]) -> None:
        if not isinstance(body, MappingNode) or ref_of(body) is not None:
            return
        self._media_schemas(get_value(body, "content"), segments + ["content"], REQUEST)

    def _finish_schemas(self) -> None:
        for target_id, paths in self._pending_paths.items():
            schema = self._schemas_by_node.get(target_id)
            if schema is None:
                continue
            for p in paths:
                if p != schema.path and p not in schema.paths:
                    schema.paths.append(p)

        # Component roots inherit the directions of the roots that reference them.
        changed = True
        while changed:
            changed = False
            for source_root, target_id in self._ref_edges:
                target_schema = self._schemas_by_node.get(target_id)
                if target_schema is None:
                    continue
                source_dirs = self._root_direction.get(source_root, set())
                target_dirs = self._root_direction.setdefault(target_schema.root_path, set())
                if not source_dirs <= target_dirs:
                    target_dirs |= source_dirs
                    changed = True

        for schema in self.schemas:
            schema.direction = set(self._root_direction.get(schema.root_path, set()))

    # ------------------------------------------------------------- paths

    def _walk_paths(self) -> None:
        paths_node = get_value(self.root, "paths")
        for pk, pv in mapping_items(paths_node):
            if not isinstance(pk, ScalarNode):
                continue
            item_segments: list[str | int] = ["paths", pk.value]
            item = DPathItem(pk.value, pk, pv, canonical_path(item_segments))
            self.path_items.append(item)
            resolved_item = self.deref(pv)
            if not isinstance(resolved_item, MappingNode):
                continue

            shared: list[tuple[Node, str]] = []
            for i, p in enumerate(sequence_items(get_value(resolved_item, "parameters"))):
                seg = item_segments + ["parameters", i]
                self._collect_parameter(p, seg)
                shared.append((p, canonical_path(seg)))

            for mk, mv in mapping_items(resolved_item):
                if not isinstance(mk, ScalarNode) or mk.value.lower() not in HTTP_METHODS:
                    continue
                if not isinstance(mv, MappingNode):
                    continue
                op_segments = item_segments + [mk.value]
                op = DOperation(
                    path_key=pk.value,
                    method=mk.value.lower(),
                    node=mv,
                    path_item=item,
                    path=canonical_path(op_segments),
                    key_node=mk,
                )
                own: list[tuple[Node, str]] = []
                for i, p in enumerate(sequence_items(get_value(mv, "parameters"))):
                    seg = op_segments + ["parameters", i]
                    self._collect_parameter(p, seg)
                    own.append((p, canonical_path(seg)))
                op.parameters = _merge_parameters(shared, own, self.deref)
                self.operations.append(op)

                self._request_body_schemas(get_value(mv, "requestBody"), op_segments + ["requestBody"])
                for rk, rv in mapping_items(get_value(mv, "responses")):
                    if isinstance(rk, ScalarNode):
                        self._response_schemas(rv, op_segments + ["responses", rk.value])
                for server_i, server in enumerate(sequence_items(get_value(mv, "servers"))):
                    self._collect_server(server, op_segments + ["servers", server_i])

            for server_i, server in enumerate(sequence_items(get_value(resolved_item, "servers"))):
                self._collect_server(server, item_segments + ["servers", server_i])

    def _collect_parameter(self, param: Node, segments: list[str | int]) -> None:
        if not isinstance(param, MappingNode) or ref_of(param) is not None:
            return
        self.parameters.append(
            DParameter(
                node=param,
                path=canonical_path(segments),
                name=get_str(param, "name"),
                location=get_str(param, "in"),
                schema=get_value(param, "schema"),
            )
        )
        self._parameter_schemas(param, segments)

    # -------------------------------------------------------- components

    def _walk_components(self) -> None:
        if self.spec_info.is_oas2:
            prefix: list[str | int] = []
            schemas = get_value(self.root, "definitions")
            schema_segments = ["definitions"]
            parameters = get_value(self.root, "parameters")
            responses = get_value(self.root, "responses")
            bodies = headers = None
        else:
            prefix = ["components"]
            components = get_value(self.root, "components")
            schemas = get_value(components, "schemas")
            schema_segments = ["components", "schemas"]
            parameters = get_value(components, "parameters")
            responses = get_value(components, "responses")
            bodies = get_value(components, "requestBodies")
            headers = get_value(components, "headers")

        for k, v in mapping_items(schemas):
            if isinstance(k, ScalarNode):
                self._start(v, schema_segments + [k.value], None, k.value, k)
        for k, v in mapping_items(parameters):
            if isinstance(k, ScalarNode):
                self._collect_parameter(v, prefix + ["parameters", k.value])
        for k, v in mapping_items(responses):
            if isinstance(k, ScalarNode):
                self._response_schemas(v, prefix + ["responses", k.value])
        for k, v in mapping_items(bodies):
            if isinstance(k, ScalarNode):
                self._request_body_schemas(v, prefix + ["requestBodies", k.value])
        for k, v in mapping_items(headers):
            if isinstance(k, ScalarNode):
                self._collect_header(v, prefix + ["headers", k.value])

    def _walk_security_schemes(self) -> None:
        if self.spec_info.is_oas2:
            section = get_value(self.root, "securityDefinitions")
            segments: list[str | int] = ["securityDefinitions"]
        else:
            section = get_value(get_value(self.root, "components"), "securitySchemes")
            segments = ["components", "securitySchemes"]
        for k, v in mapping_items(section):
            node = self.deref(v)
            if isinstance(k, ScalarNode) and isinstance(node, MappingNode):
                self.security_schemes.append(
                    DSecurityScheme(k.value, node, canonical_path(segments + [k.value]), k)
                )

    def _walk_servers(self) -> None:
        for i, server in enumerate(sequence_items(get_value(self.root, "servers"))):
            self._collect_server(server, ["servers", i])

    def _collect_server(self, server: Node, segments: list[str | int]) -> None:
        if isinstance(server, MappingNode):
            self.servers.append(
                DServer(server, canonical_path(segments), get_str(server, "url"))
            )

    def _walk_tags(self) -> None:
        for i, tag in enumerate(sequence_items(get_value(self.root, "tags"))):
            if isinstance(tag, MappingNode):
                self.tags.append(DTag(get_str(tag, "name"), tag, canonical_path(["tags", i])))


def _merge_parameters(
    shared: list[tuple[Node, str]],
    own: list[tuple[Node, str]],
    deref,
) -> list[tuple[Node, str]]:
    """Operation parameters override path-item ones with the same name and location."""

    def key(entry: tuple[Node, str]) -> tuple[str, str]:
        node = deref(entry[0])
        return get_str(node, "name"), get_str(node, "in")

    own_keys = {key(e) for e in own}
    return [e for e in shared if key(e) not in own_keys] + own
