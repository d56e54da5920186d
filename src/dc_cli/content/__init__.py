"""Content item graph: reference discovery, dependency tree and id mapping."""

from .mapping import ContentMapping
from .references import (
    ContentLinkExtractor,
    Reference,
    ReferenceExtractor,
    ReferenceKind,
    rewrite_references,
)
from .tree import (
    ContentDependency,
    ContentDependencyTree,
    ContentItemNode,
    DependencyBatch,
    RepositoryContentItem,
)

__all__ = [
    "ContentDependency",
    "ContentDependencyTree",
    "ContentItemNode",
    "ContentLinkExtractor",
    "ContentMapping",
    "DependencyBatch",
    "Reference",
    "ReferenceExtractor",
    "ReferenceKind",
    "RepositoryContentItem",
    "rewrite_references",
]
