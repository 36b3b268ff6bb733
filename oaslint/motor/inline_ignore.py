"""``x-lint-ignore`` directives embedded in the document.

Any mapping may carry ``x-lint-ignore: rule-id`` or a list of ids.  The
listed rules are silenced for that mapping and everything below it.
"""

from __future__ import annotations

from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from oaslint.models import RuleFunctionResult

IGNORE_KEY = "x-lint-ignore"
IGNORED_MESSAGE = "Rule ignored due to inline ignore directive"


def directive_rules(value: Node | None) -> frozenset[str]:
    """Rule ids named by an ``x-lint-ignore`` value node."""
    if isinstance(value, ScalarNode):
        return frozenset([value.value]) if value.value else frozenset()
    if isinstance(value, SequenceNode):
        return frozenset(
            item.value for item in value.value if isinstance(item, ScalarNode) and item.value
        )
    return frozenset()


def _own_directive(node: Node) -> tuple[Node | None, Node | None]:
    if not isinstance(node, MappingNode):
        return None, None
    for k, v in node.value:
        if isinstance(k, ScalarNode) and k.value == IGNORE_KEY:
            return k, v
    return None, None


class InlineIgnores:
    """Which rules are silenced at which node, for one or more node trees.

    Every node is mapped to the rule ids silenced at it, its own directive
    merged with its ancestors'.  A key node shares the set of the value it
    names, so a result reported on ``info:`` counts as being on ``info``.
    The directive key and value nodes themselves are tracked separately so
    they can be dropped from located nodes.
    """

    def __init__(self, *roots: Node) -> None:
        self._silenced: dict[int, frozenset[str]] = {}
        self._directive_nodes: set[int] = set()
        self.found = False
        for root in roots:
            self._scan(root)

    def _scan(self, root: Node) -> None:
        empty: frozenset[str] = frozenset()
        stack: list[tuple[Node, frozenset[str], bool]] = [(root, empty, False)]
        while stack:
            node, inherited, in_directive = stack.pop()
            if id(node) in self._silenced:
                continue
            key, value = _own_directive(node)
            silenced = inherited
            if key is not None:
                self.found = True
                silenced = inherited | directive_rules(value)
            self._silenced[id(node)] = silenced
            if in_directive:
                self._directive_nodes.add(id(node))

            if isinstance(node, MappingNode):
                for k, v in node.value:
                    is_directive = in_directive or k is key
                    child_key, child_value = _own_directive(v)
                    key_set = silenced
                    if child_key is not None:
                        key_set = silenced | directive_rules(child_value)
                    self._silenced.setdefault(id(k), key_set)
                    if is_directive:
                        self._directive_nodes.add(id(k))
                    stack.append((v, silenced, is_directive))
            elif isinstance(node, SequenceNode):
                for item in node.value:
                    stack.append((item, silenced, in_directive))

    # ------------------------------------------------------------------ api

    def is_directive(self, node: Node) -> bool:
        return id(node) in self._directive_nodes

    def silenced(self, node: Node | None, rule_id: str) -> bool:
        if node is None:
            return False
        return rule_id in self._silenced.get(id(node), frozenset())

    def strip_directives(self, nodes: list[Node]) -> list[Node]:
        """Drop the directive key/value nodes from a located-nodes list."""
        if not self.found:
            return nodes
        return [n for n in nodes if not self.is_directive(n)]

    def partition(
        self, rule_id: str, nodes: list[Node]
    ) -> tuple[list[Node], list[Node]]:
        """Split located nodes into ``(kept, silenced)`` for *rule_id*."""
        if not self.found:
            return nodes, []
        kept, dropped = [], []
        for node in nodes:
            (dropped if self.silenced(node, rule_id) else kept).append(node)
        return kept, dropped


def ignored_result(source: RuleFunctionResult) -> RuleFunctionResult:
    """Copy of *source* re-labelled as suppressed by a directive."""
    return RuleFunctionResult(
        message=IGNORED_MESSAGE,
        start_node=source.start_node,
        end_node=source.end_node,
        path=source.path,
        paths=list(source.paths),
        rule=source.rule,
        rule_id=source.rule_id,
        severity=source.severity,
        category=source.category,
        origin=source.origin,
    )
