"""Dependency graph over a working set of content items.

Each content item may link to other content items.  Export needs to
know which links point outside the selected set; import needs to write
items in an order where every link target already exists on the
destination hub.

Construction
------------
``ContentDependencyTree(items, mapping)`` scans every body with a
``ReferenceExtractor`` and records one ``ContentDependency`` per
distinct target id:

* ``missing``  -- the target is not part of the working set.
* ``resolved`` -- the target is in the working set, or the mapping
  already knows its destination copy.

Traversal
---------
``traverse_dependency_order()`` returns ``DependencyBatch`` objects.
Strongly connected components are found with Tarjan's algorithm
(iterative, so deep link chains cannot hit the recursion limit) over
in-set edges only; missing targets never delay a node.  The
condensation is then layered:

1. every acyclic node whose dependencies have all been emitted goes
   into one batch, in input order;
2. every ready cyclic component follows as its own batch, members in
   input order.

A batch marked ``circular`` must be written in two passes by the
caller: create every member without its in-group links, then patch
the links in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from ..models import ContentItem, ContentRepository
from .mapping import ContentMapping
from .references import (
    ContentLinkExtractor,
    Reference,
    ReferenceExtractor,
    ReferenceKind,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepositoryContentItem:
    """A content item together with where it came from.

    Attributes:
        content: The content item.
        repository: Repository the item belongs to, if known.
        path: Directory (relative to an export root) the item lives in.
    """

    content: ContentItem
    repository: ContentRepository | None = None
    path: str = ""


@dataclass
class ContentDependency:
    """One outgoing link of a node."""

    dependency: Reference
    resolved: bool
    missing: bool


@dataclass
class ContentItemNode:
    """Graph node wrapping one content item.

    Attributes:
        owner: The wrapped item with its repository and path.
        order: Position in the tree's input order.
        dependencies: Distinct content links, in document order.
        assets: Asset links found in the body (no graph edges).
    """

    owner: RepositoryContentItem
    order: int
    dependencies: list[ContentDependency] = field(default_factory=list)
    assets: list[Reference] = field(default_factory=list)

    @property
    def item(self) -> ContentItem:
        return self.owner.content

    @property
    def id(self) -> str | None:
        return self.owner.content.id

    @property
    def repository(self) -> ContentRepository | None:
        return self.owner.repository

    @property
    def path(self) -> str:
        return self.owner.path

    def dependency_ids(self) -> list[str]:
        return [dep.dependency.id for dep in self.dependencies]

    def __repr__(self) -> str:
        return f"ContentItemNode(id={self.id!r}, order={self.order})"


@dataclass(frozen=True)
class DependencyBatch:
    """Nodes that can be written together.

    Attributes:
        nodes: Members in input order.
        circular: True when the members form a dependency cycle.
    """

    nodes: tuple[ContentItemNode, ...]
    circular: bool = False

    @property
    def ids(self) -> list[str | None]:
        return [node.id for node in self.nodes]

    def __len__(self) -> int:
        return len(self.nodes)


class ContentDependencyTree:
    """Build and query the dependency graph of a set of content items.

    Args:
        items: Working set.  Input order is preserved; later entries
            whose id repeats an earlier one are ignored.
        mapping: Mapping consulted when computing ``resolved``.
        extractor: Reference finder, ``ContentLinkExtractor`` by default.
    """

    def __init__(
        self,
        items: Iterable[RepositoryContentItem],
        mapping: ContentMapping | None = None,
        extractor: ReferenceExtractor | None = None,
    ) -> None:
        self.mapping = mapping if mapping is not None else ContentMapping()
        self.extractor = extractor or ContentLinkExtractor()
        self.nodes: list[ContentItemNode] = []
        self.by_id: dict[str, ContentItemNode] = {}

        for owner in items:
            item_id = owner.content.id
            if item_id is not None and item_id in self.by_id:
                logger.warning(
                    "Duplicate content item %s in working set, keeping the first",
                    item_id,
                )
                continue
            node = ContentItemNode(owner=owner, order=len(self.nodes))
            self.nodes.append(node)
            if item_id is not None:
                self.by_id[item_id] = node

        for node in self.nodes:
            self._scan(node)

        self._batches: list[DependencyBatch] | None = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _scan(self, node: ContentItemNode) -> None:
        seen: set[str] = set()
        for ref in self.extractor.extract_references(node.item.body):
            if ref.kind == ReferenceKind.ASSET:
                node.assets.append(ref)
                continue
            if ref.id in seen:
                continue
            seen.add(ref.id)
            missing = ref.id not in self.by_id
            node.dependencies.append(
                ContentDependency(
                    dependency=ref,
                    resolved=not missing
                    or self.mapping.get_content_item(ref.id) is not None,
                    missing=missing,
                )
            )

    def refresh_resolution(self) -> None:
        """Recompute ``resolved`` flags after the mapping has grown."""
        for node in self.nodes:
            for dep in node.dependencies:
                dep.resolved = (
                    not dep.missing
                    or self.mapping.get_content_item(dep.dependency.id)
                    is not None
                )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def filter_any(
        self, predicate: Callable[[ContentItemNode], bool]
    ) -> list[ContentItemNode]:
        """Return the nodes for which *predicate* holds, in input order."""
        return [node for node in self.nodes if predicate(node)]

    def missing_ids(self) -> list[str]:
        """Distinct ids referenced from the set but not part of it."""
        result: dict[str, None] = {}
        for node in self.nodes:
            for dep in node.dependencies:
                if dep.missing:
                    result.setdefault(dep.dependency.id, None)
        return list(result)

    def unresolved(self) -> list[ContentItemNode]:
        """Nodes with at least one dependency that cannot be resolved."""
        return self.filter_any(
            lambda node: any(not dep.resolved for dep in node.dependencies)
        )

    def dependents_of(self, item_id: str) -> list[ContentItemNode]:
        """Nodes that link to *item_id*."""
        return self.filter_any(lambda node: item_id in node.dependency_ids())

    def roots(self) -> list[ContentItemNode]:
        """Nodes no other node in the set links to."""
        referenced: set[str] = set()
        for node in self.nodes:
            for dep in node.dependencies:
                if not dep.missing and dep.dependency.id != node.id:
                    referenced.add(dep.dependency.id)
        return [
            node
            for node in self.nodes
            if node.id is None or node.id not in referenced
        ]

    def circular_groups(self) -> list[DependencyBatch]:
        return [
            batch
            for batch in self.traverse_dependency_order()
            if batch.circular
        ]

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _edges(self) -> list[list[int]]:
        edges: list[list[int]] = []
        for node in self.nodes:
            edges.append(
                [
                    self.by_id[dep.dependency.id].order
                    for dep in node.dependencies
                    if not dep.missing
                ]
            )
        return edges

    def strongly_connected_components(self) -> list[list[int]]:
        """Tarjan's algorithm, iterative.  Components hold node orders."""
        edges = self._edges()
        count = len(self.nodes)
        indices = [-1] * count
        low = [0] * count
        on_stack = [False] * count
        stack: list[int] = []
        components: list[list[int]] = []
        counter = 0

        for start in range(count):
            if indices[start] != -1:
                continue
            work: list[tuple[int, int]] = [(start, 0)]
            while work:
                v, pos = work[-1]
                if pos == 0:
                    indices[v] = low[v] = counter
                    counter += 1
                    stack.append(v)
                    on_stack[v] = True

                descended = False
                targets = edges[v]
                while pos < len(targets):
                    w = targets[pos]
                    pos += 1
                    if indices[w] == -1:
                        work[-1] = (v, pos)
                        work.append((w, 0))
                        descended = True
                        break
                    if on_stack[w]:
                        low[v] = min(low[v], indices[w])
                if descended:
                    continue

                work.pop()
                if low[v] == indices[v]:
                    component: list[int] = []
                    while True:
                        w = stack.pop()
                        on_stack[w] = False
                        component.append(w)
                        if w == v:
                            break
                    components.append(sorted(component))
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[v])

        return components

    def traverse_dependency_order(self) -> list[DependencyBatch]:
        """Return write batches in dependency order.

        All in-set dependencies of a node in an acyclic batch are in
        earlier batches.  Members of a circular batch depend on each
        other and on earlier batches only.
        """
        if self._batches is not None:
            return self._batches

        edges = self._edges()
        components = self.strongly_connected_components()
        component_of = [0] * len(self.nodes)
        for index, component in enumerate(components):
            for v in component:
                component_of[v] = index

        cyclic = [
            len(component) > 1 or component[0] in edges[component[0]]
            for component in components
        ]
        requires: list[set[int]] = [set() for _ in components]
        for v, targets in enumerate(edges):
            for w in targets:
                if component_of[w] != component_of[v]:
                    requires[component_of[v]].add(component_of[w])

        batches: list[DependencyBatch] = []
        emitted: set[int] = set()
        remaining = set(range(len(components)))
        while remaining:
            ready = {c for c in remaining if requires[c] <= emitted}
            acyclic = sorted(
                v for c in ready if not cyclic[c] for v in components[c]
            )
            if acyclic:
                batches.append(
                    DependencyBatch(
                        nodes=tuple(self.nodes[v] for v in acyclic),
                        circular=False,
                    )
                )
            for c in sorted(
                (c for c in ready if cyclic[c]),
                key=lambda c: components[c][0],
            ):
                batches.append(
                    DependencyBatch(
                        nodes=tuple(self.nodes[v] for v in components[c]),
                        circular=True,
                    )
                )
            emitted |= ready
            remaining -= ready

        self._batches = batches
        return batches
