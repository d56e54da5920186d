"""Lightweight content validation against the hub's registered schemas.

Export warns about content items that will probably not import cleanly.
Full JSON-schema validation is out of scope; ``HubSchemaValidator``
checks what most often breaks an import: the item's schema is not
registered on the hub, or a required top-level property is missing.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Protocol

from .models import ContentTypeSchema

logger = logging.getLogger(__name__)


class SchemaValidator(Protocol):
    def validate(self, body: dict[str, Any]) -> list[str]:
        """Return human-readable validation errors (empty when valid)."""
        ...  # pragma: no cover


def _required_properties(schema: dict[str, Any]) -> list[str]:
    required: list[str] = list(schema.get("required") or [])
    for part in schema.get("allOf") or []:
        if isinstance(part, dict):
            required.extend(part.get("required") or [])
    return list(dict.fromkeys(required))


class HubSchemaValidator:
    """Validate bodies against a set of content type schemas.

    Args:
        schemas: Schemas fetched from the hub.  Each schema body is
            parsed lazily on first use.
    """

    def __init__(self, schemas: Iterable[ContentTypeSchema]) -> None:
        self._sources = {s.schema_id: s for s in schemas if s.schema_id}
        self._parsed: dict[str, dict[str, Any]] = {}

    def _schema(self, schema_id: str) -> dict[str, Any] | None:
        if schema_id in self._parsed:
            return self._parsed[schema_id]
        source = self._sources.get(schema_id)
        if source is None:
            return None
        try:
            parsed = json.loads(source.body) if source.body else {}
        except json.JSONDecodeError as e:
            raise ValueError(f"Schema {schema_id} has an invalid body: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError(f"Schema {schema_id} body is not a JSON object")
        self._parsed[schema_id] = parsed
        return parsed

    def validate(self, body: dict[str, Any]) -> list[str]:
        """Validate one content item body.

        Raises:
            ValueError: If the matching schema itself cannot be parsed.
        """
        meta = body.get("_meta") if isinstance(body, dict) else None
        schema_id = meta.get("schema") if isinstance(meta, dict) else None
        if not schema_id:
            return ["Content has no _meta.schema"]

        schema = self._schema(schema_id)
        if schema is None:
            return [f"Schema {schema_id} is not registered on the hub"]

        return [
            f"Missing required property '{name}'"
            for name in _required_properties(schema)
            if name not in body
        ]
