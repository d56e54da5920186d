"""Hub client contract and the REST implementation used by the CLI.

Commands only ever talk to a ``HubClient``.  Every method is
synchronous and blocking; command coroutines call them through
``run_sync_limited``.  List methods return complete lists (pagination
is internal).  Failures surface as ``NotFoundError`` (the entity does
not exist) or ``RemoteOperationError`` (anything else the hub rejects).
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol, TypeVar

import requests

from ..config import Config
from ..errors import NotFoundError, RemoteOperationError
from ..models import (
    ContentItem,
    ContentRepository,
    ContentType,
    ContentTypeSchema,
    Edition,
    EntityKind,
    EntityStatus,
    Event,
    Folder,
    HubEntity,
)

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=HubEntity)

PAGE_SIZE = 100


class HubClient(Protocol):
    """Operations the commands need from a content hub."""

    # Repositories and folders
    def list_content_repositories(self) -> list[ContentRepository]: ...

    def get_content_repository(self, repository_id: str) -> ContentRepository: ...

    def list_folders(self, repository_id: str) -> list[Folder]: ...

    def list_subfolders(self, folder_id: str) -> list[Folder]: ...

    def get_folder(self, folder_id: str) -> Folder: ...

    def create_folder(
        self, repository_id: str, name: str, parent_id: str | None = None
    ) -> Folder: ...

    # Content items
    def list_content_items(
        self, repository_id: str, status: EntityStatus | None = None
    ) -> list[ContentItem]: ...

    def list_folder_content_items(
        self, folder: Folder, status: EntityStatus | None = None
    ) -> list[ContentItem]: ...

    def get_content_item(self, item_id: str) -> ContentItem: ...

    def create_content_item(
        self, repository_id: str, item: ContentItem
    ) -> ContentItem: ...

    def update_content_item(self, item: ContentItem) -> ContentItem: ...

    # Content types
    def list_content_types(
        self, status: EntityStatus | None = None
    ) -> list[ContentType]: ...

    def get_content_type(self, type_id: str) -> ContentType: ...

    def create_content_type(self, content_type: ContentType) -> ContentType: ...

    def update_content_type(self, content_type: ContentType) -> ContentType: ...

    # Content type schemas
    def list_content_type_schemas(
        self, status: EntityStatus | None = None
    ) -> list[ContentTypeSchema]: ...

    def get_content_type_schema(self, schema_id: str) -> ContentTypeSchema: ...

    def create_schema(self, schema: ContentTypeSchema) -> ContentTypeSchema: ...

    def update_schema(self, schema: ContentTypeSchema) -> ContentTypeSchema: ...

    # Events and editions
    def list_events(self) -> list[Event]: ...

    def get_event(self, event_id: str) -> Event: ...

    def list_editions(self, event_id: str) -> list[Edition]: ...

    def archive_event(self, event: Event) -> None: ...

    def delete_event(self, event: Event) -> None: ...

    def archive_edition(self, edition: Edition) -> None: ...

    def delete_edition(self, edition: Edition) -> None: ...

    def unschedule_edition(self, edition: Edition) -> None: ...

    # Lifecycle
    def archive(self, entity: EntityT) -> EntityT: ...

    def unarchive(self, entity: EntityT) -> EntityT: ...


# Path segment and HAL ``_embedded`` key per entity kind
_RESOURCE = {
    EntityKind.CONTENT_ITEM: "content-items",
    EntityKind.CONTENT_TYPE: "content-types",
    EntityKind.CONTENT_TYPE_SCHEMA: "content-type-schemas",
    EntityKind.REPOSITORY: "content-repositories",
    EntityKind.FOLDER: "folders",
}


class RestHubClient:
    """``HubClient`` over the Dynamic Content REST API.

    One ``requests.Session`` per thread, bearer token auth, HAL
    pagination.
    """

    def __init__(self, config: Config):
        self.config = config
        self.base_url = config.api_url.rstrip("/")
        self._thread_local = threading.local()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Authorization"] = f"Bearer {self.config.access_token}"
        session.headers["Content-Type"] = "application/json"
        session.verify = not self.config.insecure
        return session

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s params=%s", method, url, params)
        try:
            response = self._get_session().request(
                method, url, params=params, json=json, timeout=(10, 60)
            )
        except requests.RequestException as e:
            raise RemoteOperationError(
                f"{method} {path} failed: {e}", context={"path": path}
            ) from e

        if response.status_code == 404:
            raise NotFoundError(
                f"Not found: {path}", context={"path": path}
            )
        if response.status_code >= 400:
            raise RemoteOperationError(
                f"{method} {path} failed: {response.status_code} {response.reason}: "
                f"{response.text[:500]}",
                status_code=response.status_code,
                context={"path": path},
            )
        if not response.content:
            return {}
        return response.json()

    def _list(
        self,
        path: str,
        embedded_key: str,
        model: type[EntityT],
        params: dict[str, Any] | None = None,
    ) -> list[EntityT]:
        """Fetch every page of a HAL collection."""
        results: list[EntityT] = []
        page = 0
        while True:
            query = dict(params or {})
            query.update({"page": page, "size": PAGE_SIZE})
            payload = self._request("GET", path, params=query)
            for entry in payload.get("_embedded", {}).get(embedded_key, []):
                results.append(self._parse(model, entry))
            total_pages = payload.get("page", {}).get("totalPages", 1)
            page += 1
            if page >= total_pages:
                return results

    @staticmethod
    def _parse(model: type[EntityT], payload: dict[str, Any]) -> EntityT:
        data = {k: v for k, v in payload.items() if k != "_links"}
        return model.model_validate(data)

    @staticmethod
    def _status_params(status: EntityStatus | None) -> dict[str, Any]:
        return {"status": status.value} if status else {}

    # ------------------------------------------------------------------
    # Repositories and folders
    # ------------------------------------------------------------------

    def list_content_repositories(self) -> list[ContentRepository]:
        return self._list(
            f"/hubs/{self.config.hub_id}/content-repositories",
            "content-repositories",
            ContentRepository,
        )

    def get_content_repository(self, repository_id: str) -> ContentRepository:
        return self._parse(
            ContentRepository,
            self._request("GET", f"/content-repositories/{repository_id}"),
        )

    def list_folders(self, repository_id: str) -> list[Folder]:
        folders = self._list(
            f"/content-repositories/{repository_id}/folders", "folders", Folder
        )
        return [
            f if f.repository_id else f.model_copy(update={"repository_id": repository_id})
            for f in folders
        ]

    def list_subfolders(self, folder_id: str) -> list[Folder]:
        return self._list(f"/folders/{folder_id}/folders", "folders", Folder)

    def get_folder(self, folder_id: str) -> Folder:
        return self._parse(Folder, self._request("GET", f"/folders/{folder_id}"))

    def create_folder(
        self, repository_id: str, name: str, parent_id: str | None = None
    ) -> Folder:
        if parent_id:
            path = f"/folders/{parent_id}/folders"
        else:
            path = f"/content-repositories/{repository_id}/folders"
        return self._parse(Folder, self._request("POST", path, json={"name": name}))

    # ------------------------------------------------------------------
    # Content items
    # ------------------------------------------------------------------

    def list_content_items(
        self, repository_id: str, status: EntityStatus | None = None
    ) -> list[ContentItem]:
        return self._list(
            f"/content-repositories/{repository_id}/content-items",
            "content-items",
            ContentItem,
            params=self._status_params(status),
        )

    def list_folder_content_items(
        self, folder: Folder, status: EntityStatus | None = None
    ) -> list[ContentItem]:
        params = self._status_params(status)
        params["folderId"] = folder.id
        return self._list(
            f"/content-repositories/{folder.repository_id}/content-items",
            "content-items",
            ContentItem,
            params=params,
        )

    def get_content_item(self, item_id: str) -> ContentItem:
        return self._parse(
            ContentItem, self._request("GET", f"/content-items/{item_id}")
        )

    def create_content_item(
        self, repository_id: str, item: ContentItem
    ) -> ContentItem:
        payload = {"label": item.label, "body": item.body}
        if item.folder_id:
            payload["folderId"] = item.folder_id
        if item.locale:
            payload["locale"] = item.locale
        return self._parse(
            ContentItem,
            self._request(
                "POST",
                f"/content-repositories/{repository_id}/content-items",
                json=payload,
            ),
        )

    def update_content_item(self, item: ContentItem) -> ContentItem:
        payload = {"label": item.label, "body": item.body, "version": item.version}
        if item.folder_id:
            payload["folderId"] = item.folder_id
        return self._parse(
            ContentItem,
            self._request("PATCH", f"/content-items/{item.id}", json=payload),
        )

    # ------------------------------------------------------------------
    # Content types
    # ------------------------------------------------------------------

    def list_content_types(
        self, status: EntityStatus | None = None
    ) -> list[ContentType]:
        return self._list(
            f"/hubs/{self.config.hub_id}/content-types",
            "content-types",
            ContentType,
            params=self._status_params(status),
        )

    def get_content_type(self, type_id: str) -> ContentType:
        return self._parse(
            ContentType, self._request("GET", f"/content-types/{type_id}")
        )

    def create_content_type(self, content_type: ContentType) -> ContentType:
        return self._parse(
            ContentType,
            self._request(
                "POST",
                f"/hubs/{self.config.hub_id}/content-types",
                json={
                    "contentTypeUri": content_type.content_type_uri,
                    "settings": content_type.settings,
                },
            ),
        )

    def update_content_type(self, content_type: ContentType) -> ContentType:
        return self._parse(
            ContentType,
            self._request(
                "PATCH",
                f"/content-types/{content_type.id}",
                json={"settings": content_type.settings},
            ),
        )

    # ------------------------------------------------------------------
    # Content type schemas
    # ------------------------------------------------------------------

    def list_content_type_schemas(
        self, status: EntityStatus | None = None
    ) -> list[ContentTypeSchema]:
        return self._list(
            f"/hubs/{self.config.hub_id}/content-type-schemas",
            "content-type-schemas",
            ContentTypeSchema,
            params=self._status_params(status),
        )

    def get_content_type_schema(self, schema_id: str) -> ContentTypeSchema:
        return self._parse(
            ContentTypeSchema,
            self._request("GET", f"/content-type-schemas/{schema_id}"),
        )

    def create_schema(self, schema: ContentTypeSchema) -> ContentTypeSchema:
        return self._parse(
            ContentTypeSchema,
            self._request(
                "POST",
                f"/hubs/{self.config.hub_id}/content-type-schemas",
                json={
                    "schemaId": schema.schema_id,
                    "body": schema.body,
                    "validationLevel": schema.validation_level,
                },
            ),
        )

    def update_schema(self, schema: ContentTypeSchema) -> ContentTypeSchema:
        return self._parse(
            ContentTypeSchema,
            self._request(
                "PATCH",
                f"/content-type-schemas/{schema.id}",
                json={
                    "body": schema.body,
                    "validationLevel": schema.validation_level,
                    "version": schema.version,
                },
            ),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _lifecycle(self, entity: EntityT, action: str) -> EntityT:
        resource = _RESOURCE[entity.kind]
        payload = {}
        version = getattr(entity, "version", None)
        if version is not None:
            payload["version"] = version
        return self._parse(
            type(entity),
            self._request(
                "POST", f"/{resource}/{entity.id}/{action}", json=payload
            ),
        )

    def archive(self, entity: EntityT) -> EntityT:
        return self._lifecycle(entity, "archive")

    def unarchive(self, entity: EntityT) -> EntityT:
        return self._lifecycle(entity, "unarchive")

    # ------------------------------------------------------------------
    # Events and editions
    # ------------------------------------------------------------------

    def list_events(self) -> list[Event]:
        return self._list(f"/hubs/{self.config.hub_id}/events", "events", Event)

    def get_event(self, event_id: str) -> Event:
        return self._parse(Event, self._request("GET", f"/events/{event_id}"))

    def list_editions(self, event_id: str) -> list[Edition]:
        editions = self._list(f"/events/{event_id}/editions", "editions", Edition)
        return [
            e if e.event_id else e.model_copy(update={"event_id": event_id})
            for e in editions
        ]

    def archive_event(self, event: Event) -> None:
        self._request("POST", f"/events/{event.id}/archive", json={})

    def delete_event(self, event: Event) -> None:
        self._request("DELETE", f"/events/{event.id}")

    def archive_edition(self, edition: Edition) -> None:
        self._request("POST", f"/editions/{edition.id}/archive", json={})

    def delete_edition(self, edition: Edition) -> None:
        self._request("DELETE", f"/editions/{edition.id}")

    def unschedule_edition(self, edition: Edition) -> None:
        self._request("DELETE", f"/editions/{edition.id}/schedule")
