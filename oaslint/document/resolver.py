"""Builds the resolved (``$ref``-inlined) view of a specification.

The raw node tree is never modified.  Mappings and sequences that contain a
resolved reference somewhere below them are rebuilt as new nodes carrying the
source marks, everything else is shared with the raw tree.  References that
would loop are left in place as ``$ref`` mappings and reported.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote, urljoin

import httpx
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from oaslint.document.nodes import canonical_path, get_value, parse_ast, walk
from oaslint.errors import DocumentParseError

logger = logging.getLogger(__name__)

_POLYMORPHIC = {"allOf", "anyOf", "oneOf"}


@dataclass
class HttpClientConfig:
    """Settings for the client used to fetch remote ``$ref`` targets."""

    timeout: float = 10.0
    headers: dict[str, str] = field(default_factory=dict)
    verify: bool = True


@dataclass
class ReferenceProblem:
    ref: str
    node: Node
    path: str
    message: str


@dataclass
class CircularReference:
    ref: str
    node: Node
    path: str
    journey: list[str]
    through_array: bool = False
    through_polymorphic: bool = False


@dataclass
class ResolvedView:
    root: Node
    circular: list[CircularReference] = field(default_factory=list)
    problems: list[ReferenceProblem] = field(default_factory=list)
    origins: dict[int, str] = field(default_factory=dict)


def ref_of(node: Node) -> str | None:
    """The ``$ref`` string of a reference mapping, else ``None``."""
    if not isinstance(node, MappingNode):
        return None
    ref = get_value(node, "$ref")
    if isinstance(ref, ScalarNode) and isinstance(ref.value, str):
        return ref.value
    return None


def split_ref(ref: str) -> tuple[str, str]:
    """``'file.yaml#/a/b'`` -> ``('file.yaml', '/a/b')``."""
    location, _, fragment = ref.partition("#")
    return location, fragment


def pointer_segments(fragment: str) -> list[str]:
    if not fragment or fragment == "/":
        return []
    parts = fragment.lstrip("/").split("/")
    return [unquote(p).replace("~1", "/").replace("~0", "~") for p in parts]


def follow_pointer(root: Node, fragment: str) -> Node | None:
    node: Node | None = root
    for seg in pointer_segments(fragment):
        if isinstance(node, MappingNode):
            node = get_value(node, seg)
        elif isinstance(node, SequenceNode) and seg.isdigit() and int(seg) < len(node.value):
            node = node.value[int(seg)]
        else:
            return None
        if node is None:
            return None
    return node


class Resolver:
    """Resolve references reachable from *root*."""

    def __init__(
        self,
        root: Node,
        filename: str = "",
        base: str = "",
        allow_lookup: bool = False,
        http_config: HttpClientConfig | None = None,
        extract_references_from_extensions: bool = False,
        ignore_circular_array_ref: bool = False,
        ignore_circular_polymorphic_ref: bool = False,
        client: httpx.Client | None = None,
    ) -> None:
        self.root = root
        self.filename = filename
        self.base = base or (str(Path(filename).resolve().parent) if filename else "")
        self.allow_lookup = allow_lookup
        self.http_config = http_config or HttpClientConfig()
        self.extract_references_from_extensions = extract_references_from_extensions
        self.ignore_circular_array_ref = ignore_circular_array_ref
        self.ignore_circular_polymorphic_ref = ignore_circular_polymorphic_ref
        self._client = client
        self._documents: dict[str, Node] = {"": root}
        self._memo: dict[tuple[str, int], Node] = {}
        self._active: dict[tuple[str, int], int] = {}
        self._reported: set[int] = set()
        self._view = ResolvedView(root=root)

    # ------------------------------------------------------------------ api

    def resolve(self) -> ResolvedView:
        self._view.root = self._resolve(self.root, "", [], [])
        if self._client is not None and self._owns_client:
            self._client.close()
        return self._view

    # ------------------------------------------------------------ internals

    _owns_client = False

    def _http(self) -> httpx.Client:
        if self._client is None:
            cfg = self.http_config
            self._client = httpx.Client(
                timeout=cfg.timeout,
                headers=cfg.headers,
                verify=cfg.verify,
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    def _location_key(self, location: str, current: str) -> str:
        """Absolute key for *location* relative to the document *current*."""
        if not location:
            return current
        if location.startswith(("http://", "https://")):
            return location
        if current.startswith(("http://", "https://")):
            return urljoin(current, location)
        if current:
            return posixpath.normpath(str(Path(current).parent / location))
        if self.base.startswith(("http://", "https://")):
            return urljoin(self.base.rstrip("/") + "/", location)
        base = Path(self.base) if self.base else Path.cwd()
        return posixpath.normpath(str(base / location))

    def _document(self, key: str) -> Node:
        if key in self._documents:
            return self._documents[key]
        if key.startswith(("http://", "https://")):
            if not self.allow_lookup:
                raise LookupError(f"remote lookups are disabled, cannot fetch '{key}'")
            try:
                response = self._http().get(key)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise LookupError(f"unable to fetch '{key}': {exc}") from exc
            text = response.text
        else:
            try:
                text = Path(key).read_text(encoding="utf-8")
            except OSError as exc:
                raise LookupError(f"unable to read '{key}': {exc}") from exc
        try:
            doc = parse_ast(text)
        except DocumentParseError as exc:
            raise LookupError(str(exc)) from exc
        for n in walk(doc):
            self._view.origins[id(n)] = key
        self._documents[key] = doc
        logger.debug("loaded referenced document %s", key)
        return doc

    def _resolve(
        self,
        node: Node,
        doc_key: str,
        segments: list[str | int],
        journey: list[str],
    ) -> Node:
        ref = ref_of(node)
        if ref is not None:
            return self._follow(node, ref, doc_key, segments, journey)

        memo_key = (doc_key, id(node))
        if memo_key in self._memo:
            return self._memo[memo_key]
        if not isinstance(node, (MappingNode, SequenceNode)):
            return node

        self._active[memo_key] = len(segments)
        try:
            if isinstance(node, MappingNode):
                changed = False
                pairs = []
                for k, v in node.value:
                    key = k.value if isinstance(k, ScalarNode) else ""
                    if key.startswith("x-") and not self.extract_references_from_extensions:
                        pairs.append((k, v))
                        continue
                    nv = self._resolve(v, doc_key, segments + [key], journey)
                    changed = changed or nv is not v
                    pairs.append((k, nv))
                result: Node = node
                if changed:
                    result = MappingNode(
                        node.tag, pairs, node.start_mark, node.end_mark, node.flow_style
                    )
            else:
                items = [
                    self._resolve(item, doc_key, segments + [i], journey)
                    for i, item in enumerate(node.value)
                ]
                result = node
                if any(a is not b for a, b in zip(items, node.value)):
                    result = SequenceNode(
                        node.tag, items, node.start_mark, node.end_mark, node.flow_style
                    )
        finally:
            self._active.pop(memo_key, None)

        self._memo[memo_key] = result
        return result

    def _follow(
        self,
        node: Node,
        ref: str,
        doc_key: str,
        segments: list[str | int],
        journey: list[str],
    ) -> Node:
        location, fragment = split_ref(ref)
        target_key = self._location_key(location, doc_key)
        site_path = canonical_path(segments)
        try:
            target_doc = self._document(target_key)
        except LookupError as exc:
            self._problem(ref, node, site_path, str(exc))
            return node
        target = follow_pointer(target_doc, fragment)
        if target is None:
            self._problem(ref, node, site_path, f"cannot resolve reference '{ref}', it's missing")
            return node

        depth = self._active.get((target_key, id(target)))
        if depth is not None:
            loop = [s for s in segments[depth:] if isinstance(s, str)]
            self._circular(ref, node, site_path, journey + [ref], loop)
            return node
        site_key = (doc_key, id(node))
        self._active[site_key] = len(segments)
        try:
            return self._resolve(target, target_key, segments, journey + [ref])
        finally:
            self._active.pop(site_key, None)

    def _problem(self, ref: str, node: Node, path: str, message: str) -> None:
        if id(node) in self._reported:
            return
        self._reported.add(id(node))
        self._view.problems.append(ReferenceProblem(ref, node, path, message))

    def _circular(
        self,
        ref: str,
        node: Node,
        path: str,
        journey: list[str],
        loop: list[str],
    ) -> None:
        if id(node) in self._reported:
            return
        self._reported.add(id(node))
        through_array = "items" in loop
        through_poly = any(s in _POLYMORPHIC for s in loop)
        if through_array and self.ignore_circular_array_ref:
            return
        if through_poly and self.ignore_circular_polymorphic_ref:
            return
        logger.debug("circular reference %s", " -> ".join(journey))
        self._view.circular.append(
            CircularReference(ref, node, path, journey, through_array, through_poly)
        )
