from unittest.mock import Mock, patch

import pytest
import requests

from dc_cli.config import Config
from dc_cli.core.client import PAGE_SIZE, RestHubClient
from dc_cli.errors import NotFoundError, RemoteOperationError
from dc_cli.models import (
    ContentItem,
    ContentType,
    ContentTypeSchema,
    Edition,
    EntityStatus,
    Event,
    Folder,
)

BASE = "https://api.example.com/v2/content"


def _response(status_code=200, payload=None, reason="OK", text=""):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.text = text
    response.content = b"" if payload is None else b"{...}"
    response.json.return_value = payload
    return response


def _page(key, entries, total_pages=1):
    return {"_embedded": {key: entries}, "page": {"totalPages": total_pages}}


def _call(mock_request, index=0):
    """(method, url, kwargs) of the index-th transport call."""
    args, kwargs = mock_request.call_args_list[index]
    return args[0], args[1], kwargs


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def test_session_has_bearer_token(mock_config):
    """Session is created with the bearer header and SSL verification."""
    session = RestHubClient(mock_config)._get_session()
    assert session.headers["Authorization"] == "Bearer token"
    assert session.verify


def test_session_insecure():
    config = Config(hub_id="h", access_token="t", insecure=True)
    assert not RestHubClient(config)._get_session().verify


def test_session_reused_within_thread(mock_config):
    client = RestHubClient(mock_config)
    assert client._get_session() is client._get_session()


def test_base_url_trailing_slash_stripped():
    config = Config(hub_id="h", access_token="t", api_url=BASE + "/")
    assert RestHubClient(config).base_url == BASE


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@patch("dc_cli.core.client.requests.Session.request")
def test_list_follows_all_pages(mock_request, mock_config):
    """Every page of a HAL collection is fetched."""
    mock_request.side_effect = [
        _response(payload=_page("content-types", [{"id": "1"}], total_pages=2)),
        _response(payload=_page("content-types", [{"id": "2"}], total_pages=2)),
    ]

    types = RestHubClient(mock_config).list_content_types()

    assert [t.id for t in types] == ["1", "2"]
    assert mock_request.call_count == 2
    _, url, kwargs = _call(mock_request, 1)
    assert url == f"{BASE}/hubs/hub-1/content-types"
    assert kwargs["params"] == {"page": 1, "size": PAGE_SIZE}
    assert kwargs["timeout"] == (10, 60)


@patch("dc_cli.core.client.requests.Session.request")
def test_list_status_filter(mock_request, mock_config):
    mock_request.return_value = _response(payload=_page("content-items", []))

    RestHubClient(mock_config).list_content_items("repo-1", EntityStatus.ARCHIVED)

    method, url, kwargs = _call(mock_request)
    assert method == "GET"
    assert url == f"{BASE}/content-repositories/repo-1/content-items"
    assert kwargs["params"]["status"] == "ARCHIVED"


@patch("dc_cli.core.client.requests.Session.request")
def test_empty_collection(mock_request, mock_config):
    """A page without _embedded yields no entities."""
    mock_request.return_value = _response(payload={"page": {"totalPages": 0}})
    assert RestHubClient(mock_config).list_content_type_schemas() == []
    assert mock_request.call_count == 1


@patch("dc_cli.core.client.requests.Session.request")
def test_links_stripped_and_extras_kept(mock_request, mock_config):
    mock_request.return_value = _response(
        payload={
            "id": "item-1",
            "label": "Home",
            "body": {"_meta": {"schema": "s"}},
            "createdDate": "2020-01-01",
            "_links": {"self": {"href": "x"}},
        }
    )

    item = RestHubClient(mock_config).get_content_item("item-1")

    assert item.label == "Home"
    assert item.schema_id == "s"
    assert "_links" not in item.to_json()
    assert item.to_json()["createdDate"] == "2020-01-01"


@patch("dc_cli.core.client.requests.Session.request")
def test_folders_get_repository_id(mock_request, mock_config):
    """Folders listed under a repository carry its id."""
    mock_request.return_value = _response(
        payload=_page("folders", [{"id": "f1", "name": "Pages"}])
    )
    folders = RestHubClient(mock_config).list_folders("repo-1")
    assert folders[0].repository_id == "repo-1"


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


@patch("dc_cli.core.client.requests.Session.request")
def test_404_raises_not_found(mock_request, mock_config):
    mock_request.return_value = _response(status_code=404, reason="Not Found")
    with pytest.raises(NotFoundError, match="/content-types/missing"):
        RestHubClient(mock_config).get_content_type("missing")


@patch("dc_cli.core.client.requests.Session.request")
def test_http_error_raises_remote_error(mock_request, mock_config):
    mock_request.return_value = _response(
        status_code=403, reason="Forbidden", text="no permission"
    )
    with pytest.raises(RemoteOperationError) as exc_info:
        RestHubClient(mock_config).archive(ContentItem(id="a", version=1))
    assert exc_info.value.status_code == 403
    assert "403 Forbidden: no permission" in str(exc_info.value)


@patch("dc_cli.core.client.requests.Session.request")
def test_transport_error_raises_remote_error(mock_request, mock_config):
    mock_request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(RemoteOperationError, match="refused") as exc_info:
        RestHubClient(mock_config).list_content_repositories()
    assert exc_info.value.status_code is None


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@patch("dc_cli.core.client.requests.Session.request")
def test_archive_sends_version(mock_request, mock_config):
    mock_request.return_value = _response(
        payload={"id": "a", "status": "ARCHIVED", "version": 3}
    )

    archived = RestHubClient(mock_config).archive(ContentItem(id="a", version=2))

    method, url, kwargs = _call(mock_request)
    assert (method, url) == ("POST", f"{BASE}/content-items/a/archive")
    assert kwargs["json"] == {"version": 2}
    assert archived.status == EntityStatus.ARCHIVED
    assert isinstance(archived, ContentItem)


@patch("dc_cli.core.client.requests.Session.request")
def test_unarchive_content_type(mock_request, mock_config):
    mock_request.return_value = _response(payload={"id": "t", "status": "ACTIVE"})

    RestHubClient(mock_config).unarchive(ContentType(id="t"))

    method, url, kwargs = _call(mock_request)
    assert url == f"{BASE}/content-types/t/unarchive"
    assert kwargs["json"] == {}


@patch("dc_cli.core.client.requests.Session.request")
def test_create_content_item_in_folder(mock_request, mock_config):
    mock_request.return_value = _response(payload={"id": "new", "label": "Home"})

    RestHubClient(mock_config).create_content_item(
        "repo-1", ContentItem(label="Home", folder_id="f1", body={"a": 1})
    )

    method, url, kwargs = _call(mock_request)
    assert (method, url) == ("POST", f"{BASE}/content-repositories/repo-1/content-items")
    assert kwargs["json"] == {"label": "Home", "body": {"a": 1}, "folderId": "f1"}


@patch("dc_cli.core.client.requests.Session.request")
def test_update_content_item_sends_version(mock_request, mock_config):
    mock_request.return_value = _response(payload={"id": "x", "version": 5})

    RestHubClient(mock_config).update_content_item(
        ContentItem(id="x", label="L", version=4, body={})
    )

    method, url, kwargs = _call(mock_request)
    assert (method, url) == ("PATCH", f"{BASE}/content-items/x")
    assert kwargs["json"]["version"] == 4


@patch("dc_cli.core.client.requests.Session.request")
def test_create_subfolder(mock_request, mock_config):
    mock_request.return_value = _response(payload={"id": "f2", "name": "Sub"})

    folder = RestHubClient(mock_config).create_folder("repo-1", "Sub", parent_id="f1")

    _, url, kwargs = _call(mock_request)
    assert url == f"{BASE}/folders/f1/folders"
    assert kwargs["json"] == {"name": "Sub"}
    assert isinstance(folder, Folder)


@patch("dc_cli.core.client.requests.Session.request")
def test_create_schema_payload(mock_request, mock_config):
    mock_request.return_value = _response(payload={"id": "s1", "schemaId": "u"})

    RestHubClient(mock_config).create_schema(
        ContentTypeSchema(schema_id="u", body="{}", validation_level="SLOT")
    )

    _, url, kwargs = _call(mock_request)
    assert url == f"{BASE}/hubs/hub-1/content-type-schemas"
    assert kwargs["json"] == {"schemaId": "u", "body": "{}", "validationLevel": "SLOT"}


@patch("dc_cli.core.client.requests.Session.request")
def test_empty_response_body(mock_request, mock_config):
    """A 204 with no body parses as an empty entity."""
    mock_request.return_value = _response(status_code=204)
    result = RestHubClient(mock_config).update_content_type(ContentType(id="t"))
    assert result.id is None


# ---------------------------------------------------------------------------
# Events and editions
# ---------------------------------------------------------------------------


@patch("dc_cli.core.client.requests.Session.request")
def test_list_editions_sets_event_id(mock_request, mock_config):
    mock_request.return_value = _response(
        payload=_page("editions", [{"id": "ed1", "name": "Launch", "publishingStatus": "SCHEDULED"}])
    )

    [edition] = RestHubClient(mock_config).list_editions("ev1")

    _, url, _ = _call(mock_request)
    assert url == f"{BASE}/events/ev1/editions"
    assert edition.event_id == "ev1"
    assert edition.publishing_status == "SCHEDULED"


@patch("dc_cli.core.client.requests.Session.request")
def test_list_events(mock_request, mock_config):
    mock_request.return_value = _response(
        payload=_page("events", [{"id": "ev1", "name": "Summer sale"}])
    )
    [event] = RestHubClient(mock_config).list_events()
    assert _call(mock_request)[1] == f"{BASE}/hubs/hub-1/events"
    assert event.display_name == "Summer sale"


@patch("dc_cli.core.client.requests.Session.request")
def test_event_lifecycle_endpoints(mock_request, mock_config):
    mock_request.return_value = _response(status_code=204)
    client = RestHubClient(mock_config)
    edition = Edition(id="ed1", event_id="ev1")

    client.unschedule_edition(edition)
    client.delete_edition(edition)
    client.archive_edition(edition)
    client.archive_event(Event(id="ev1"))
    client.delete_event(Event(id="ev2"))

    calls = [_call(mock_request, i)[:2] for i in range(5)]
    assert calls == [
        ("DELETE", f"{BASE}/editions/ed1/schedule"),
        ("DELETE", f"{BASE}/editions/ed1"),
        ("POST", f"{BASE}/editions/ed1/archive"),
        ("POST", f"{BASE}/events/ev1/archive"),
        ("DELETE", f"{BASE}/events/ev2"),
    ]
