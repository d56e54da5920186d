"""Persisted source-id to destination-id table used by imports.

When content is imported into a different hub (or re-imported into the
same one) every created entity is registered here so that

* later dependency batches can translate references to the new ids, and
* a later run recognises what it already created and updates instead
  of duplicating.

File format::

    {
      "contentItems": [["source-id", "dest-id"], ...],
      "contentTypes": [...],
      "contentTypeSchemas": [...],
      "repositories": [...],
      "folders": [...]
    }

Each kind is a 1:1 relation.  Registering an existing pair again is a
no-op; any registration that would break the 1:1 property raises
``ConsistencyError``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from ..errors import ConsistencyError, NotFoundError
from ..models import EntityKind

logger = logging.getLogger(__name__)


class ContentMapping:
    """Bidirectional id mapping per ``EntityKind``."""

    def __init__(self) -> None:
        self._forward: dict[EntityKind, dict[str, str]] = {
            kind: {} for kind in EntityKind
        }
        self._reverse: dict[EntityKind, dict[str, str]] = {
            kind: {} for kind in EntityKind
        }

    # ------------------------------------------------------------------
    # Generic accessors
    # ------------------------------------------------------------------

    def get(self, kind: EntityKind, source_id: str) -> str | None:
        """Return the destination id registered for *source_id*."""
        return self._forward[kind].get(source_id)

    def get_source(self, kind: EntityKind, dest_id: str) -> str | None:
        """Return the source id that maps onto *dest_id*."""
        return self._reverse[kind].get(dest_id)

    def register(self, kind: EntityKind, source_id: str, dest_id: str) -> None:
        """Record that *source_id* was written to the destination as *dest_id*.

        Raises:
            ConsistencyError: If either id is already paired differently.
        """
        existing_dest = self._forward[kind].get(source_id)
        if existing_dest == dest_id:
            return
        if existing_dest is not None:
            raise ConsistencyError(
                f"{kind.value}: source {source_id} is already mapped to "
                f"{existing_dest}, refusing to remap it to {dest_id}",
                context={
                    "kind": kind.value,
                    "source": source_id,
                    "existing": existing_dest,
                    "new": dest_id,
                },
            )
        existing_source = self._reverse[kind].get(dest_id)
        if existing_source is not None:
            raise ConsistencyError(
                f"{kind.value}: destination {dest_id} is already the target "
                f"of {existing_source}, refusing to map {source_id} onto it",
                context={
                    "kind": kind.value,
                    "source": source_id,
                    "existing": existing_source,
                    "destination": dest_id,
                },
            )
        self._forward[kind][source_id] = dest_id
        self._reverse[kind][dest_id] = source_id

    def remove(self, kind: EntityKind, source_id: str) -> str | None:
        """Forget the pair registered for *source_id*.

        Returns:
            The destination id that was paired with it, if any.
        """
        dest_id = self._forward[kind].pop(source_id, None)
        if dest_id is not None:
            self._reverse[kind].pop(dest_id, None)
        return dest_id

    def pairs(self, kind: EntityKind) -> list[tuple[str, str]]:
        """All ``(source, dest)`` pairs of *kind* in registration order."""
        return list(self._forward[kind].items())

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._forward.values())

    # ------------------------------------------------------------------
    # Per-kind accessors
    # ------------------------------------------------------------------

    def get_content_item(self, source_id: str) -> str | None:
        return self.get(EntityKind.CONTENT_ITEM, source_id)

    def register_content_item(self, source_id: str, dest_id: str) -> None:
        self.register(EntityKind.CONTENT_ITEM, source_id, dest_id)

    def get_content_type(self, source_id: str) -> str | None:
        return self.get(EntityKind.CONTENT_TYPE, source_id)

    def register_content_type(self, source_id: str, dest_id: str) -> None:
        self.register(EntityKind.CONTENT_TYPE, source_id, dest_id)

    def get_schema(self, source_id: str) -> str | None:
        return self.get(EntityKind.CONTENT_TYPE_SCHEMA, source_id)

    def register_schema(self, source_id: str, dest_id: str) -> None:
        self.register(EntityKind.CONTENT_TYPE_SCHEMA, source_id, dest_id)

    def get_repository(self, source_id: str) -> str | None:
        return self.get(EntityKind.REPOSITORY, source_id)

    def register_repository(self, source_id: str, dest_id: str) -> None:
        self.register(EntityKind.REPOSITORY, source_id, dest_id)

    def get_folder(self, source_id: str) -> str | None:
        return self.get(EntityKind.FOLDER, source_id)

    def register_folder(self, source_id: str, dest_id: str) -> None:
        self.register(EntityKind.FOLDER, source_id, dest_id)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_json(self) -> dict[str, list[list[str]]]:
        return {
            kind.value: [[source, dest] for source, dest in self.pairs(kind)]
            for kind in EntityKind
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ContentMapping:
        """Build a mapping from ``to_json()`` output.

        Each kind may also be given as an object ``{source: dest}``.
        Unknown kinds are ignored with a warning.

        Raises:
            ConsistencyError: If the data itself violates the 1:1 rule.
        """
        mapping = cls()
        for key, entries in (data or {}).items():
            try:
                kind = EntityKind(key)
            except ValueError:
                logger.warning("Ignoring unknown mapping kind '%s'", key)
                continue

            if isinstance(entries, dict):
                pairs = list(entries.items())
            else:
                pairs = [tuple(entry) for entry in entries or []]

            for pair in pairs:
                if len(pair) != 2:
                    raise ConsistencyError(
                        f"{key}: malformed mapping entry {list(pair)!r}"
                    )
                mapping.register(kind, str(pair[0]), str(pair[1]))
        return mapping

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path) -> ContentMapping:
        """Load a mapping file.

        Raises:
            NotFoundError: If *path* does not exist.
        """
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(
                f"Mapping file not found: {path}", context={"path": str(path)}
            )
        with open(path, encoding="utf-8") as fh:
            return cls.from_json(json.load(fh))

    @classmethod
    def open(cls, path: str | Path, required: bool = False) -> ContentMapping:
        """Load *path* if it exists, otherwise start an empty mapping.

        Raises:
            NotFoundError: If *required* and *path* does not exist.
        """
        if required or Path(path).is_file():
            return cls.load(path)
        logger.info("No mapping file at %s, starting a new one", path)
        return cls()

    def save(self, path: str | Path) -> None:
        """Persist the mapping atomically, creating parent directories."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self.to_json(), fh, indent=2)
            os.replace(tmp_path, target)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
