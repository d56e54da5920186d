"""Per-resource commands.

Each module exposes coroutine functions ``archive``, ``unarchive``,
``export`` and ``import_`` that take a ``HubClient`` and return a report
model from ``dc_cli.sync.models``.  Events only support ``archive``.
"""

from . import content_item, content_type, content_type_schema, event

__all__ = ["content_item", "content_type", "content_type_schema", "event"]
