"""Reference discovery and rewriting over content item bodies.

A content item body is a parsed JSON document.  Links to other content
are embedded objects of the shape::

    {
        "_meta": {"schema": "http://bigcontent.io/cms/schema/v1/core#/definitions/content-link"},
        "contentType": "https://example.com/banner.json",
        "id": "5be1d5134cf2b53d7e3f6b5b"
    }

``content-reference`` objects have the same shape.  Image and video
links point at assets instead of content items; they are reported but
never become graph edges.

The root object is the item itself and is never treated as a reference.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Protocol

CORE_SCHEMA = "http://bigcontent.io/cms/schema/v1/core#/definitions/"

CONTENT_LINK_SCHEMA = CORE_SCHEMA + "content-link"
CONTENT_REFERENCE_SCHEMA = CORE_SCHEMA + "content-reference"
IMAGE_LINK_SCHEMA = CORE_SCHEMA + "image-link"
VIDEO_LINK_SCHEMA = CORE_SCHEMA + "video-link"

DEFAULT_CONTENT_SCHEMAS = frozenset(
    {CONTENT_LINK_SCHEMA, CONTENT_REFERENCE_SCHEMA}
)
DEFAULT_ASSET_SCHEMAS = frozenset({IMAGE_LINK_SCHEMA, VIDEO_LINK_SCHEMA})


class ReferenceKind(str, Enum):
    CONTENT = "content"
    ASSET = "asset"


@dataclass(frozen=True)
class Reference:
    """A pointer from one document to another entity by id."""

    id: str
    schema: str | None = None
    kind: ReferenceKind = ReferenceKind.CONTENT


class ReferenceExtractor(Protocol):
    """Capability that finds references inside a body."""

    def extract_references(self, body: Any) -> list[Reference]:
        ...  # pragma: no cover

    def is_content_reference(self, node: Any) -> bool:
        ...  # pragma: no cover


def _meta_schema(node: dict) -> str | None:
    meta = node.get("_meta")
    if isinstance(meta, dict):
        schema = meta.get("schema")
        if isinstance(schema, str):
            return schema
    return None


class ContentLinkExtractor:
    """Recognise link objects by their ``_meta.schema`` URI.

    Args:
        content_schemas: Schema URIs that denote content references.
        asset_schemas: Schema URIs that denote asset references.
    """

    def __init__(
        self,
        content_schemas: frozenset[str] = DEFAULT_CONTENT_SCHEMAS,
        asset_schemas: frozenset[str] = DEFAULT_ASSET_SCHEMAS,
    ) -> None:
        self.content_schemas = content_schemas
        self.asset_schemas = asset_schemas

    def _classify(self, node: Any) -> ReferenceKind | None:
        if not isinstance(node, dict) or not isinstance(node.get("id"), str):
            return None
        schema = _meta_schema(node)
        if schema in self.content_schemas:
            return ReferenceKind.CONTENT
        if schema in self.asset_schemas:
            return ReferenceKind.ASSET
        return None

    def is_content_reference(self, node: Any) -> bool:
        return self._classify(node) == ReferenceKind.CONTENT

    def extract_references(self, body: Any) -> list[Reference]:
        """Return every reference in *body* in document order."""
        return list(self._walk(body, root=True))

    def _walk(self, node: Any, root: bool = False) -> Iterator[Reference]:
        if isinstance(node, dict):
            kind = None if root else self._classify(node)
            if kind is not None:
                yield Reference(id=node["id"], schema=_meta_schema(node), kind=kind)
                return
            for value in node.values():
                yield from self._walk(value)
        elif isinstance(node, list):
            for value in node:
                yield from self._walk(value)


_DROP = object()


def rewrite_references(
    body: dict[str, Any],
    resolve: Callable[[str], str | None],
    extractor: ReferenceExtractor | None = None,
) -> dict[str, Any]:
    """Return a copy of *body* with every content reference id translated.

    ``resolve(old_id)`` returns the replacement id, or ``None`` to drop
    the reference: it is removed from its list, or its property is
    deleted.  Asset links and all other values are copied unchanged.
    """
    extractor = extractor or ContentLinkExtractor()

    def _rewrite(node: Any, root: bool = False) -> Any:
        if isinstance(node, dict):
            if not root and extractor.is_content_reference(node):
                new_id = resolve(node["id"])
                if new_id is None:
                    return _DROP
                rewritten = copy.deepcopy(node)
                rewritten["id"] = new_id
                return rewritten
            result = {}
            for key, value in node.items():
                new_value = _rewrite(value)
                if new_value is not _DROP:
                    result[key] = new_value
            return result
        if isinstance(node, list):
            return [
                new_value
                for new_value in (_rewrite(value) for value in node)
                if new_value is not _DROP
            ]
        return copy.deepcopy(node)

    return _rewrite(body, root=True)
