"""Shared pytest fixtures for dc-cli tests."""

import copy
import itertools

import pytest

import dc_cli.core.async_utils as async_utils
from dc_cli.config import Config
from dc_cli.content.references import CONTENT_LINK_SCHEMA, IMAGE_LINK_SCHEMA
from dc_cli.errors import NotFoundError
from dc_cli.models import (
    ContentItem,
    ContentRepository,
    ContentType,
    ContentTypeSchema,
    Edition,
    EntityKind,
    EntityStatus,
    Event,
    Folder,
)

PAGE_SCHEMA = "https://example.com/page.json"


class FakeHubClient:
    """In-memory ``HubClient``.

    Every call is appended to ``calls`` as ``(method, key)``.  Register
    an exception in ``fail_on[(method, key)]`` (``key`` may be ``"*"``)
    to make that call raise.
    """

    def __init__(self, prefix: str = "dest"):
        self.prefix = prefix
        self.repositories: dict[str, ContentRepository] = {}
        self.folders: dict[str, Folder] = {}
        self.items: dict[str, ContentItem] = {}
        self.content_types: dict[str, ContentType] = {}
        self.schemas: dict[str, ContentTypeSchema] = {}
        self.events: dict[str, Event] = {}
        self.editions: dict[str, Edition] = {}
        self.archived_events: set[str] = set()
        self.archived_editions: set[str] = set()
        self.calls: list[tuple[str, str | None]] = []
        self.fail_on: dict[tuple[str, str], Exception] = {}
        self._ids = itertools.count(1)
        self._stores = {
            EntityKind.CONTENT_ITEM: self.items,
            EntityKind.CONTENT_TYPE: self.content_types,
            EntityKind.CONTENT_TYPE_SCHEMA: self.schemas,
        }

    # -- setup helpers ------------------------------------------------------

    def add_repository(self, repo_id, label="Repo"):
        repo = ContentRepository(id=repo_id, name=label.lower(), label=label)
        self.repositories[repo_id] = repo
        return repo

    def add_folder(self, folder_id, repository_id, name, parent_id=None):
        folder = Folder(
            id=folder_id, name=name, repository_id=repository_id, parent_id=parent_id
        )
        self.folders[folder_id] = folder
        return folder

    def add_item(self, item):
        self.items[item.id] = item
        return item

    def add_content_type(self, content_type):
        self.content_types[content_type.id] = content_type
        return content_type

    def add_schema(self, schema):
        self.schemas[schema.id] = schema
        return schema

    def add_event(self, event_id, name, editions=()):
        """Add an event with editions given as ``(id, publishing_status)``."""
        event = Event(id=event_id, name=name)
        self.events[event_id] = event
        for edition_id, status in editions:
            self.editions[edition_id] = Edition(
                id=edition_id, name=edition_id, event_id=event_id, publishing_status=status
            )
        return event

    def count(self, method):
        return sum(1 for name, _ in self.calls if name == method)

    # -- internals ----------------------------------------------------------

    def _record(self, method, key=None):
        self.calls.append((method, key))
        error = self.fail_on.get((method, key)) or self.fail_on.get((method, "*"))
        if error is not None:
            raise error

    def _new_id(self):
        return f"{self.prefix}-{next(self._ids)}"

    @staticmethod
    def _get(store, key, what):
        try:
            return store[key]
        except KeyError:
            raise NotFoundError(f"{what} {key} not found") from None

    @staticmethod
    def _by_status(entities, status):
        return [e for e in entities if status is None or e.status == status]

    # -- repositories and folders -------------------------------------------

    def list_content_repositories(self):
        self._record("list_content_repositories")
        return list(self.repositories.values())

    def get_content_repository(self, repository_id):
        self._record("get_content_repository", repository_id)
        return self._get(self.repositories, repository_id, "Repository")

    def list_folders(self, repository_id):
        self._record("list_folders", repository_id)
        return [
            f
            for f in self.folders.values()
            if f.repository_id == repository_id and f.parent_id is None
        ]

    def list_subfolders(self, folder_id):
        self._record("list_subfolders", folder_id)
        return [f for f in self.folders.values() if f.parent_id == folder_id]

    def get_folder(self, folder_id):
        self._record("get_folder", folder_id)
        return self._get(self.folders, folder_id, "Folder")

    def create_folder(self, repository_id, name, parent_id=None):
        self._record("create_folder", name)
        return self.add_folder(self._new_id(), repository_id, name, parent_id)

    # -- content items ------------------------------------------------------

    def list_content_items(self, repository_id, status=None):
        self._record("list_content_items", repository_id)
        return self._by_status(
            [i for i in self.items.values() if i.repository_id == repository_id], status
        )

    def list_folder_content_items(self, folder, status=None):
        self._record("list_folder_content_items", folder.id)
        return self._by_status(
            [i for i in self.items.values() if i.folder_id == folder.id], status
        )

    def get_content_item(self, item_id):
        self._record("get_content_item", item_id)
        return self._get(self.items, item_id, "Content item")

    def create_content_item(self, repository_id, item):
        self._record("create_content_item", item.label)
        created = item.model_copy(
            update={
                "id": self._new_id(),
                "repository_id": repository_id,
                "status": EntityStatus.ACTIVE,
                "version": 1,
                "body": copy.deepcopy(item.body),
            }
        )
        return self.add_item(created)

    def update_content_item(self, item):
        self._record("update_content_item", item.id)
        current = self._get(self.items, item.id, "Content item")
        updated = item.model_copy(
            update={"version": (current.version or 0) + 1, "body": copy.deepcopy(item.body)}
        )
        return self.add_item(updated)

    # -- content types ------------------------------------------------------

    def list_content_types(self, status=None):
        self._record("list_content_types")
        return self._by_status(list(self.content_types.values()), status)

    def get_content_type(self, type_id):
        self._record("get_content_type", type_id)
        return self._get(self.content_types, type_id, "Content type")

    def create_content_type(self, content_type):
        self._record("create_content_type", content_type.content_type_uri)
        return self.add_content_type(
            content_type.model_copy(update={"id": self._new_id(), "status": EntityStatus.ACTIVE})
        )

    def update_content_type(self, content_type):
        self._record("update_content_type", content_type.id)
        return self.add_content_type(content_type)

    # -- schemas ------------------------------------------------------------

    def list_content_type_schemas(self, status=None):
        self._record("list_content_type_schemas")
        return self._by_status(list(self.schemas.values()), status)

    def get_content_type_schema(self, schema_id):
        self._record("get_content_type_schema", schema_id)
        return self._get(self.schemas, schema_id, "Schema")

    def create_schema(self, schema):
        self._record("create_schema", schema.schema_id)
        return self.add_schema(
            schema.model_copy(update={"id": self._new_id(), "status": EntityStatus.ACTIVE})
        )

    def update_schema(self, schema):
        self._record("update_schema", schema.id)
        return self.add_schema(schema)

    # -- lifecycle ----------------------------------------------------------

    def _set_status(self, method, entity, status):
        self._record(method, entity.id)
        store = self._stores[entity.kind]
        current = self._get(store, entity.id, entity.kind.value)
        changed = current.model_copy(update={"status": status})
        store[entity.id] = changed
        return changed

    def archive(self, entity):
        return self._set_status("archive", entity, EntityStatus.ARCHIVED)

    def unarchive(self, entity):
        return self._set_status("unarchive", entity, EntityStatus.ACTIVE)

    # -- events -------------------------------------------------------------

    def list_events(self):
        self._record("list_events")
        return list(self.events.values())

    def get_event(self, event_id):
        self._record("get_event", event_id)
        return self._get(self.events, event_id, "Event")

    def list_editions(self, event_id):
        self._record("list_editions", event_id)
        return [e for e in self.editions.values() if e.event_id == event_id]

    def archive_event(self, event):
        self._record("archive_event", event.id)
        self.archived_events.add(event.id)

    def delete_event(self, event):
        self._record("delete_event", event.id)
        self._get(self.events, event.id, "Event")
        del self.events[event.id]

    def archive_edition(self, edition):
        self._record("archive_edition", edition.id)
        self.archived_editions.add(edition.id)

    def delete_edition(self, edition):
        self._record("delete_edition", edition.id)
        del self.editions[edition.id]

    def unschedule_edition(self, edition):
        self._record("unschedule_edition", edition.id)
        self.editions[edition.id] = edition.model_copy(update={"publishing_status": "DRAFT"})


def link(item_id, schema=CONTENT_LINK_SCHEMA):
    return {
        "_meta": {"schema": schema},
        "contentType": PAGE_SCHEMA,
        "id": item_id,
    }


@pytest.fixture
def make_item():
    """Factory for content items whose body links to *links*."""

    def _make(
        item_id,
        label=None,
        links=(),
        repository_id="repo-1",
        folder_id=None,
        status=EntityStatus.ACTIVE,
        schema=PAGE_SCHEMA,
        images=(),
        **extra,
    ):
        body = {"_meta": {"schema": schema}, "title": label or item_id}
        if links:
            body["links"] = [link(target) for target in links]
        if images:
            body["images"] = [link(target, IMAGE_LINK_SCHEMA) for target in images]
        body.update(extra)
        return ContentItem(
            id=item_id,
            label=label or item_id,
            repository_id=repository_id,
            folder_id=folder_id,
            status=status,
            version=1,
            body=body,
        )

    return _make


@pytest.fixture
def fake_hub():
    return FakeHubClient()


@pytest.fixture
def source_hub():
    return FakeHubClient(prefix="src")


@pytest.fixture
def mock_config(tmp_path):
    """Config pointing logs and mappings into the test's tmp_path."""
    return Config(
        hub_id="hub-1",
        access_token="token",
        api_url="https://api.example.com/v2/content",
        log_dir=str(tmp_path / "logs"),
        mapping_dir=str(tmp_path / "mapping"),
    )


@pytest.fixture(autouse=True)
def reset_semaphore():
    """Each test starts without a request semaphore."""
    original = async_utils._semaphore
    async_utils._semaphore = None
    yield
    async_utils._semaphore = original


@pytest.fixture(autouse=True)
def isolated_config_env(monkeypatch):
    """Keep developer machine settings out of config loading."""
    for key in (
        "DC_API_URL",
        "DC_HUB_ID",
        "DC_ACCESS_TOKEN",
        "DC_INSECURE",
        "DC_MAX_PARALLEL_REQUESTS",
        "DC_FOLDER_PARALLELISM",
        "DC_CLI_CONFIG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
