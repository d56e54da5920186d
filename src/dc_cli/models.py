"""Pydantic models for hub entities.

Field names are snake_case in Python and serialize to the hub's
camelCase names through aliases.  Unknown fields returned by the hub
(``createdDate``, ``_links`` ...) are kept as extras so an exported file
round-trips everything the hub sent.

- ``EntityStatus``: ACTIVE / ARCHIVED lifecycle state.
- ``EntityKind``: entity families tracked by the content mapping.
- ``ContentRepository``, ``Folder``, ``ContentItem``, ``ContentType``,
  ``ContentTypeSchema``: the entities the commands operate on.
- ``Event``, ``Edition``: scheduling entities, only ever archived or
  deleted.  They take no part in the content mapping.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field


class EntityStatus(str, Enum):
    """Lifecycle state of an archivable entity."""

    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class EntityKind(str, Enum):
    """Entity families, valued by their key in the mapping file."""

    CONTENT_ITEM = "contentItems"
    CONTENT_TYPE = "contentTypes"
    CONTENT_TYPE_SCHEMA = "contentTypeSchemas"
    REPOSITORY = "repositories"
    FOLDER = "folders"


class HubEntity(BaseModel):
    """Common behaviour for all hub entities."""

    kind: ClassVar[EntityKind]

    id: str | None = None

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "allow",
    }

    @property
    def display_name(self) -> str:
        return self.id or ""

    def business_key(self) -> str:
        """Stable key used to recognise the entity across exports."""
        return self.id or ""

    def to_json(self) -> dict[str, Any]:
        """Serialize using the hub's field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def canonical_json(self) -> str:
        """Key-sorted serialization used for change detection."""
        return json.dumps(
            self.to_json(), sort_keys=True, separators=(",", ":")
        )


class ContentRepository(HubEntity):
    kind: ClassVar[EntityKind] = EntityKind.REPOSITORY

    id: str | None = None
    name: str = ""
    label: str = ""

    @property
    def display_name(self) -> str:
        return self.label or self.name or self.id or ""


class Folder(HubEntity):
    kind: ClassVar[EntityKind] = EntityKind.FOLDER

    name: str = ""
    repository_id: str | None = Field(default=None, alias="repositoryId")
    parent_id: str | None = Field(default=None, alias="parentId")

    @property
    def display_name(self) -> str:
        return self.name or self.id or ""


class ContentItem(HubEntity):
    """A content item.

    ``body`` is the parsed JSON document.  ``body["_meta"]["schema"]``
    identifies the content type the item is an instance of.
    """

    kind: ClassVar[EntityKind] = EntityKind.CONTENT_ITEM

    label: str = ""
    repository_id: str | None = Field(
        default=None, alias="contentRepositoryId"
    )
    folder_id: str | None = Field(default=None, alias="folderId")
    status: EntityStatus = EntityStatus.ACTIVE
    version: int | None = None
    locale: str | None = None
    body: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.label or self.id or ""

    @property
    def schema_id(self) -> str:
        meta = self.body.get("_meta")
        if isinstance(meta, dict):
            return str(meta.get("schema") or "")
        return ""


class ContentType(HubEntity):
    kind: ClassVar[EntityKind] = EntityKind.CONTENT_TYPE

    content_type_uri: str = Field(default="", alias="contentTypeUri")
    settings: dict[str, Any] = Field(default_factory=dict)
    status: EntityStatus = EntityStatus.ACTIVE

    @property
    def display_name(self) -> str:
        label = self.settings.get("label")
        return str(label) if label else self.content_type_uri

    def business_key(self) -> str:
        return self.content_type_uri


class ContentTypeSchema(HubEntity):
    kind: ClassVar[EntityKind] = EntityKind.CONTENT_TYPE_SCHEMA

    schema_id: str = Field(default="", alias="schemaId")
    body: str = ""
    validation_level: str = Field(
        default="CONTENT_TYPE", alias="validationLevel"
    )
    status: EntityStatus = EntityStatus.ACTIVE
    version: int | None = None

    @property
    def display_name(self) -> str:
        return self.schema_id

    def business_key(self) -> str:
        return self.schema_id


class Event(HubEntity):
    """A scheduled event grouping editions."""

    name: str = ""
    start: str | None = None
    end: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.id or ""


class Edition(HubEntity):
    """An edition of an event.

    ``publishing_status`` is one of DRAFT, SCHEDULING, SCHEDULED,
    UNSCHEDULING, PUBLISHING or PUBLISHED.
    """

    name: str = ""
    event_id: str | None = Field(default=None, alias="eventId")
    publishing_status: str = Field(default="DRAFT", alias="publishingStatus")

    @property
    def display_name(self) -> str:
        return self.name or self.id or ""
