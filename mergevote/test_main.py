from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pydantic
import pytest
from pytest_mock import MockFixture
from starlette import status
from starlette.testclient import TestClient

from mergevote.config import Settings
from mergevote.entrypoints.ingest import app
from mergevote.errors import HostingApiError
from mergevote.test_events import MAPPING


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def load_event(event_name: str) -> Dict[str, Any]:
    fixture_path = next(
        (Path(__file__).parent / "test" / "fixtures" / "events" / event_name).rglob(
            "*.json"
        )
    )
    return json.loads(fixture_path.read_text())  # type: ignore [no-any-return]


def test_root(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.content == b"OK"


@pytest.mark.parametrize("event_name", (event_name for event_name, _schema in MAPPING))
def test_webhook_event(
    client: TestClient, event_name: str, mocker: MockFixture
) -> None:
    handle_webhook_event = mocker.patch(
        "mergevote.entrypoints.ingest.handle_webhook_event",
        return_value=(200, "merging 42 acme/api"),
    )
    data = load_event(event_name)
    res = client.post(
        "/api/github/hook", json=data, headers={"X-Github-Event": event_name}
    )
    assert res.status_code == status.HTTP_200_OK
    assert res.text == "merging 42 acme/api"
    assert handle_webhook_event.call_count == 1
    api, called_event_name, payload, settings = handle_webhook_event.call_args.args
    assert api.project == "acme/api"
    assert called_event_name == event_name
    assert payload == data
    assert settings == Settings()


def test_webhook_event_status_code(client: TestClient, mocker: MockFixture) -> None:
    mocker.patch(
        "mergevote.entrypoints.ingest.handle_webhook_event",
        return_value=(
            401,
            "Authorization to acme/api failed, please verify your access token",
        ),
    )
    res = client.post(
        "/api/github/hook",
        json=load_event("issue_comment"),
        headers={"X-Github-Event": "issue_comment"},
    )
    assert res.status_code == 401
    assert res.text == (
        "Authorization to acme/api failed, please verify your access token"
    )


def test_webhook_event_missing_github_event(
    client: TestClient, mocker: MockFixture
) -> None:
    handle_webhook_event = mocker.patch(
        "mergevote.entrypoints.ingest.handle_webhook_event"
    )
    res = client.post("/api/github/hook", json=load_event("status"))
    assert res.status_code == status.HTTP_400_BAD_REQUEST
    assert not handle_webhook_event.called


def test_webhook_event_without_repository(
    client: TestClient, mocker: MockFixture
) -> None:
    handle_webhook_event = mocker.patch(
        "mergevote.entrypoints.ingest.handle_webhook_event"
    )
    res = client.post(
        "/api/github/hook",
        json=dict(action="created", installation=dict(id=1)),
        headers={"X-Github-Event": "installation"},
    )
    assert res.status_code == status.HTTP_200_OK
    assert res.text == "Unhandled event type installation"
    assert not handle_webhook_event.called


def test_webhook_event_invalid_payload(client: TestClient) -> None:
    data = load_event("issue_comment")
    del data["comment"]
    res = client.post(
        "/api/github/hook", json=data, headers={"X-Github-Event": "issue_comment"}
    )
    assert res.status_code == status.HTTP_400_BAD_REQUEST


def test_webhook_event_api_error(client: TestClient, mocker: MockFixture) -> None:
    """
    Failing to read the pull request is reported as a bad gateway.
    """
    mocker.patch(
        "mergevote.entrypoints.ingest.handle_webhook_event",
        side_effect=HostingApiError("acme/api", 500, "Server Error"),
    )
    res = client.post(
        "/api/github/hook",
        json=load_event("issue_comment"),
        headers={"X-Github-Event": "issue_comment"},
    )
    assert res.status_code == status.HTTP_502_BAD_GATEWAY
    assert "Server Error" in res.text


def test_webhook_event_validation_error_from_handler(
    client: TestClient, mocker: MockFixture
) -> None:
    mocker.patch(
        "mergevote.entrypoints.ingest.handle_webhook_event",
        side_effect=pydantic.ValidationError.from_exception_data("StatusEvent", []),
    )
    res = client.post(
        "/api/github/hook",
        json=load_event("status"),
        headers={"X-Github-Event": "status"},
    )
    assert res.status_code == status.HTTP_400_BAD_REQUEST


def test_webhook_event_malformed_body(
    client: TestClient, mocker: MockFixture
) -> None:
    handle_webhook_event = mocker.patch(
        "mergevote.entrypoints.ingest.handle_webhook_event"
    )
    res = client.post(
        "/api/github/hook",
        content=b"not json",
        headers={"X-Github-Event": "issue_comment"},
    )
    assert res.status_code == status.HTTP_400_BAD_REQUEST
    assert not handle_webhook_event.called


def test_webhook_event_body_not_an_object(
    client: TestClient, mocker: MockFixture
) -> None:
    handle_webhook_event = mocker.patch(
        "mergevote.entrypoints.ingest.handle_webhook_event"
    )
    res = client.post(
        "/api/github/hook", json=[1, 2], headers={"X-Github-Event": "status"}
    )
    assert res.status_code == status.HTTP_400_BAD_REQUEST
    assert not handle_webhook_event.called
