"""Cross-reference index over a parsed specification."""

from __future__ import annotations

from dataclasses import dataclass, field

from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from oaslint.document.nodes import (
    bracket,
    canonical_path,
    get_value,
    mapping_items,
    path_segment,
)
from oaslint.document.resolver import (
    CircularReference,
    ReferenceProblem,
    ResolvedView,
    follow_pointer,
    ref_of,
    split_ref,
)
from oaslint.document.spec_info import SpecInfo

# Component sections per format: pointer prefix -> canonical path prefix.
_OAS3_COMPONENTS = (
    "schemas",
    "responses",
    "parameters",
    "examples",
    "requestBodies",
    "headers",
    "securitySchemes",
    "links",
    "callbacks",
    "pathItems",
)
_OAS2_COMPONENTS = ("definitions", "parameters", "responses", "securityDefinitions")


@dataclass
class ReferenceSite:
    """A ``$ref`` found in the raw document."""

    ref: str
    node: Node
    path: str
    target: Node | None = None

    @property
    def is_local(self) -> bool:
        return self.ref.startswith("#")


@dataclass
class ComponentDefinition:
    section: str
    name: str
    pointer: str
    path: str
    key_node: Node
    node: Node


@dataclass
class SpecIndex:
    """Lookup tables built once per run and shared by every rule."""

    root: Node
    spec_info: SpecInfo
    view: ResolvedView | None = None
    filename: str = ""
    extract_references_from_extensions: bool = False
    references: list[ReferenceSite] = field(default_factory=list)
    components: list[ComponentDefinition] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._collect_references()
        self._collect_components()

    # ----------------------------------------------------------- properties

    @property
    def resolved_root(self) -> Node:
        return self.view.root if self.view is not None else self.root

    @property
    def circular_references(self) -> list[CircularReference]:
        return self.view.circular if self.view is not None else []

    @property
    def reference_problems(self) -> list[ReferenceProblem]:
        return self.view.problems if self.view is not None else []

    def origin_of(self, node: Node) -> str:
        """Filename a node was loaded from; empty for the root document."""
        if self.view is None:
            return ""
        return self.view.origins.get(id(node), "")

    # -------------------------------------------------------------- lookups

    def find(self, pointer: str) -> Node | None:
        """Look up a local JSON pointer (``#/components/schemas/A``)."""
        _, fragment = split_ref(pointer) if "#" in pointer else ("", pointer)
        return follow_pointer(self.root, fragment)

    def deref(self, node: Node | None, limit: int = 32) -> Node | None:
        """Follow local ``$ref`` chains from *node* until a non-reference."""
        seen = 0
        while node is not None and seen < limit:
            ref = ref_of(node)
            if ref is None or not ref.startswith("#"):
                return node
            node = self.find(ref)
            seen += 1
        return node

    def references_to(self, pointer: str) -> list[ReferenceSite]:
        return [r for r in self.references if r.ref == pointer]

    def referenced_pointers(self) -> set[str]:
        return {r.ref for r in self.references if r.is_local}

    # ------------------------------------------------------------ internals

    def _collect_references(self) -> None:
        stack: list[tuple[Node, list[str | int]]] = [(self.root, [])]
        seen: set[int] = set()
        while stack:
            node, segments = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            if isinstance(node, MappingNode):
                ref = ref_of(node)
                if ref is not None:
                    site = ReferenceSite(ref, node, canonical_path(segments))
                    if site.is_local:
                        site.target = self.find(ref)
                    self.references.append(site)
                for k, v in reversed(node.value):
                    key = k.value if isinstance(k, ScalarNode) else ""
                    if key.startswith("x-") and not self.extract_references_from_extensions:
                        continue
                    stack.append((v, segments + [key]))
            elif isinstance(node, SequenceNode):
                for i in range(len(node.value) - 1, -1, -1):
                    stack.append((node.value[i], segments + [i]))

    def _collect_components(self) -> None:
        if self.spec_info.is_oas2:
            for section in _OAS2_COMPONENTS:
                self._add_section(get_value(self.root, section), section, [section])
            return
        components = get_value(self.root, "components")
        for section in _OAS3_COMPONENTS:
            self._add_section(
                get_value(components, section), section, ["components", section]
            )

    def _add_section(self, section_node: Node | None, section: str, prefix: list[str]) -> None:
        pointer_prefix = "#/" + "/".join(prefix)
        path_prefix = "$" + "".join(path_segment(p) for p in prefix)
        for k, v in mapping_items(section_node):
            if not isinstance(k, ScalarNode):
                continue
            name = k.value
            escaped = name.replace("~", "~0").replace("/", "~1")
            self.components.append(
                ComponentDefinition(
                    section=section,
                    name=name,
                    pointer=f"{pointer_prefix}/{escaped}",
                    path=path_prefix + bracket(name),
                    key_node=k,
                    node=v,
                )
            )

