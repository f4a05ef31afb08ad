"""Tests for the pipeline API client request shapes and outcome classification."""

import json
from datetime import datetime, timezone

import pytest

from conftest import BASE_URL
from docgrounding_client.api import (
    PIPELINE_PATH,
    CreateStatus,
    DeleteStatus,
    PipelineAPIClient,
    TriggerStatus,
    extract_pipeline_id,
)
from docgrounding_client.auth import AccessToken
from docgrounding_client.errors import NotFoundError, ParseError, RateLimitedError, ServerError, ValidationError
from docgrounding_client.transport import HttpResponse

PIPELINES_URL = f"{BASE_URL}{PIPELINE_PATH}"


@pytest.fixture
def client(fake_transport):
    token = AccessToken("tok-123", datetime.now(timezone.utc))
    return PipelineAPIClient(BASE_URL + "/", token, fake_transport)


@pytest.mark.parametrize(
    "data,expected",
    [
        ({"id": "a", "pipelineId": "b"}, "a"),
        ({"pipelineId": "p-123"}, "p-123"),
        ({"id": "", "pipelineId": "b"}, "b"),
        ({"id": 42}, "42"),
        ({"name": "x"}, None),
        (["p-1"], None),
        (None, None),
    ],
)
def test_extract_pipeline_id(data, expected):
    assert extract_pipeline_id(data) == expected


def test_create_pipeline_sends_workzone_payload(client, fake_transport):
    fake_transport.add("POST", PIPELINES_URL, HttpResponse(201, '{"pipelineId": "p-123"}'))

    response = client.create_pipeline("Dest1")

    assert response.status == CreateStatus.CREATED
    assert response.pipeline_id == "p-123"
    assert response.status_code == 201

    call = fake_transport.calls[0]
    assert json.loads(call["data"]) == {"type": "WorkZone", "metadata": {"destination": "Dest1"}}
    assert call["headers"]["Authorization"] == "Bearer tok-123"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["headers"]["Accept"] == "application/json"


@pytest.mark.parametrize("body", ['{"name": "no id here"}', "created", ""])
def test_create_pipeline_without_id_reports_id_missing(client, fake_transport, body):
    fake_transport.add("POST", PIPELINES_URL, HttpResponse(200, body))

    response = client.create_pipeline("Dest1")

    assert response.status == CreateStatus.ID_MISSING
    assert response.pipeline_id is None
    assert response.body == body


def test_create_pipeline_error_status_raises(client, fake_transport):
    fake_transport.add("POST", PIPELINES_URL, HttpResponse(500, "boom"))

    with pytest.raises(ServerError) as exc_info:
        client.create_pipeline("Dest1")

    assert exc_info.value.status_code == 500
    assert "boom" in str(exc_info.value)


def test_create_pipeline_requires_destination(client, fake_transport):
    with pytest.raises(ValidationError):
        client.create_pipeline("")
    assert fake_transport.calls == []


@pytest.mark.parametrize(
    "body,expected",
    [
        ("[]", []),
        ("", []),
        ('[{"id": "p-1"}]', [{"id": "p-1"}]),
        ('{"resources": [{"id": "p-2"}]}', [{"id": "p-2"}]),
    ],
)
def test_list_pipelines(client, fake_transport, body, expected):
    fake_transport.add("GET", PIPELINES_URL, HttpResponse(200, body))

    assert client.list_pipelines() == expected
    assert fake_transport.calls[0]["data"] is None


@pytest.mark.parametrize("body", ['{"unexpected": true}', "<html>"])
def test_list_pipelines_rejects_unexpected_body(client, fake_transport, body):
    fake_transport.add("GET", PIPELINES_URL, HttpResponse(200, body))

    with pytest.raises(ParseError):
        client.list_pipelines()


@pytest.mark.parametrize(
    "status,expected",
    [
        (200, TriggerStatus.ACCEPTED),
        (202, TriggerStatus.ACCEPTED),
        (429, TriggerStatus.RATE_LIMITED),
        (404, TriggerStatus.NOT_FOUND),
        (500, TriggerStatus.SERVER_ERROR),
        (400, TriggerStatus.SERVER_ERROR),
    ],
)
def test_trigger_outcomes(client, fake_transport, status, expected):
    fake_transport.add("POST", f"{PIPELINES_URL}/trigger", HttpResponse(status, "body"))

    response = client.trigger_pipeline("p-1")

    assert response.status == expected
    assert response.status_code == status
    assert json.loads(fake_transport.calls[0]["data"]) == {"pipelineId": "p-1"}


@pytest.mark.parametrize(
    "status,expected,succeeded",
    [
        (200, DeleteStatus.DELETED, True),
        (204, DeleteStatus.DELETED, True),
        (404, DeleteStatus.ALREADY_GONE, True),
        (500, DeleteStatus.FAILED, False),
        (403, DeleteStatus.FAILED, False),
    ],
)
def test_delete_outcomes(client, fake_transport, status, expected, succeeded):
    fake_transport.add("DELETE", f"{PIPELINES_URL}/p-1", HttpResponse(status))

    response = client.delete_pipeline("p-1")

    assert response.status == expected
    assert response.succeeded is succeeded


def test_read_calls_build_paths_and_pagination(client, fake_transport):
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/status", HttpResponse(200, '{"status": "FINISHED"}'))
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/executions", HttpResponse(200, '{"resources": []}'))
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/executions?top=10&skip=20", HttpResponse(200, '{"resources": []}'))
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/executions/e-1", HttpResponse(200, '{"id": "e-1"}'))
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/documents?top=5&skip=0", HttpResponse(200, "[]"))
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/executions/e-1/documents", HttpResponse(200, "[]"))
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/documents/d-1", HttpResponse(200, '{"id": "d-1"}'))
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/executions/e-1/documents/d-1", HttpResponse(200, '{"id": "d-1"}'))

    assert client.get_pipeline_status("p-1") == {"status": "FINISHED"}
    assert client.list_executions("p-1") == {"resources": []}
    assert client.list_executions("p-1", top=10, skip=20) == {"resources": []}
    assert client.get_execution("p-1", "e-1") == {"id": "e-1"}
    assert client.list_documents("p-1", top=5) == []
    assert client.list_execution_documents("p-1", "e-1") == []
    assert client.get_document("p-1", "d-1") == {"id": "d-1"}
    assert client.get_document("p-1", "d-1", execution_id="e-1") == {"id": "d-1"}


def test_path_segments_are_quoted(client, fake_transport):
    fake_transport.add("GET", f"{PIPELINES_URL}/a%2Fb%20c/status", HttpResponse(200, "{}"))

    assert client.get_pipeline_status("a/b c") == {}

    with pytest.raises(ValidationError):
        client.get_pipeline_status("")


@pytest.mark.parametrize("status,error", [(404, NotFoundError), (429, RateLimitedError), (503, ServerError)])
def test_read_error_classification(client, fake_transport, status, error):
    fake_transport.add("GET", f"{PIPELINES_URL}/p-1/status", HttpResponse(status, "details"))

    with pytest.raises(error) as exc_info:
        client.get_pipeline_status("p-1")

    assert exc_info.value.status_code == status
    assert exc_info.value.body == "details"


def test_client_requires_base_url(fake_transport):
    with pytest.raises(ValidationError):
        PipelineAPIClient("", AccessToken("tok", datetime.now(timezone.utc)), fake_transport)
