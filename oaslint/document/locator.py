"""Evaluate ``given`` expressions against the document views.

Expressions are JSONPath, evaluated with ``jsonpath_ng.ext`` over the plain
data form of a view.  Matches are mapped back onto the YAML nodes that
produced them so results keep their line and column.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any

from jsonpath_ng import Fields, Index
from jsonpath_ng.ext import parse as parse_jsonpath
from yaml.nodes import Node

from oaslint.document.nodes import mapping_get, sequence_items, to_data
from oaslint.errors import LocatorEvaluationError


RAW = "raw"
RESOLVED = "resolved"


class _View:
    """Plain data for one node tree plus the container-to-node registry."""

    def __init__(self, root: Node) -> None:
        self.root = root
        self.registry: dict[int, Node] = {}
        self.data = to_data(root, self.registry)

    def node_for(self, match: Any) -> Node | None:
        value = match.value
        if isinstance(value, (dict, list)):
            return self.registry.get(id(value))
        context = match.context
        if context is None:
            return None
        parent = self.registry.get(id(context.value))
        if parent is None:
            return None
        path = match.path
        if isinstance(path, Fields) and path.fields:
            return mapping_get(parent, str(path.fields[0]))[1]
        if isinstance(path, Index):
            items = sequence_items(parent)
            idx = path.index
            if -len(items) <= idx < len(items):
                return items[idx]
        return None


class Locator:
    """Cached JSONPath lookups over the raw and resolved node trees.

    Parameters
    ----------
    raw_root:
        Root of the document as written.
    resolved_root:
        Root of the ``$ref``-inlined view; defaults to *raw_root*.
    lookup_timeout:
        Seconds a single expression may take before it yields nothing.
    """

    def __init__(
        self,
        raw_root: Node,
        resolved_root: Node | None = None,
        lookup_timeout: float = 0.5,
        logger: logging.Logger | None = None,
        max_workers: int = 4,
    ) -> None:
        self._roots = {RAW: raw_root, RESOLVED: resolved_root or raw_root}
        self._views: dict[str, _View] = {}
        self.lookup_timeout = lookup_timeout
        self.log = logger if logger is not None else logging.getLogger(__name__)
        self._cache: dict[tuple[str, str], Future] = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="oaslint-lookup"
        )

    def root(self, resolved: bool) -> Node:
        return self._roots[RESOLVED if resolved else RAW]

    def find(self, expression: str, resolved: bool = True) -> list[Node]:
        """Nodes matched by *expression*; empty on error or timeout."""
        expression = expression.strip()
        view_name = RESOLVED if resolved else RAW
        if expression == "$":
            return [self._roots[view_name]]

        key = (view_name, expression)
        with self._lock:
            future = self._cache.get(key)
            if future is None:
                future = self._executor.submit(self._evaluate, view_name, expression)
                self._cache[key] = future

        try:
            return list(future.result(timeout=self.lookup_timeout))
        except FutureTimeout:
            self.log.warning(
                "lookup of '%s' exceeded %.0f ms, skipping", expression, self.lookup_timeout * 1000
            )
            return []
        except LocatorEvaluationError as exc:
            self.log.error("%s", exc)
            return []

    def prepare(self) -> None:
        """Build both data views up front so lookups only pay for evaluation."""
        for name in (RAW, RESOLVED):
            self._view(name)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _view(self, name: str) -> _View:
        with self._lock:
            view = self._views.get(name)
            if view is None:
                view = _View(self._roots[name])
                self._views[name] = view
            return view

    def _evaluate(self, view_name: str, expression: str) -> list[Node]:
        view = self._view(view_name)
        try:
            compiled = parse_jsonpath(expression)
            matches = compiled.find(view.data)
        except Exception as exc:
            raise LocatorEvaluationError(expression, exc) from exc
        nodes: list[Node] = []
        seen: set[int] = set()
        for match in matches:
            node = view.node_for(match)
            if node is not None and id(node) not in seen:
                seen.add(id(node))
                nodes.append(node)
        return nodes
