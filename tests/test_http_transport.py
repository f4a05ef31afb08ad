"""Tests for the mTLS transport: status passthrough and network retries."""

import io
from email.message import Message
from pathlib import Path
from urllib.error import HTTPError, URLError

import pytest

from docgrounding_client.credential import Credential
from docgrounding_client.errors import NetworkError, ParseError, ValidationError
from docgrounding_client.transport import HttpResponse, HttpTransport, TransportConfig, build_mtls_context
from docgrounding_client.transport import http_transport

URL = "https://grounding.example.com/pipeline/api/v1/pipeline"
CREDENTIAL = Credential(cert_path=Path("client.crt"), key_path=Path("client.key"))


class FakeUrlResponse:
    def __init__(self, status, body=b"", headers=None):
        self.status = status
        self._body = body
        self.headers = Message()
        for key, value in (headers or {}).items():
            self.headers[key] = value

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class ScriptedUrlopen:
    """Stands in for urlopen, replaying results and recording requests."""

    def __init__(self, *results):
        self.results = list(results)
        self.requests = []

    def __call__(self, req, timeout=None, context=None):
        self.requests.append({"request": req, "timeout": timeout, "context": context})
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr(http_transport.time, "sleep", recorded.append)
    return recorded


def make_transport(max_retries=3):
    marker = object()
    transport = HttpTransport(CREDENTIAL, TransportConfig(timeout_seconds=7, max_retries=max_retries), context_factory=lambda credential: marker)
    return transport, marker


def http_error(code, body=b""):
    return HTTPError(URL, code, "error", Message(), io.BytesIO(body))


def test_success_passes_context_timeout_and_headers(monkeypatch, sleeps):
    fake = ScriptedUrlopen(FakeUrlResponse(200, b'{"ok": true}', {"Content-Type": "application/json"}))
    monkeypatch.setattr(http_transport, "urlopen", fake)
    transport, marker = make_transport()

    response = transport.request("POST", URL, headers={"Accept": "application/json"}, data=b"{}")

    assert response.status == 200
    assert response.ok
    assert response.json() == {"ok": True}
    assert response.headers["Content-Type"] == "application/json"

    sent = fake.requests[0]
    assert sent["context"] is marker
    assert sent["timeout"] == 7
    assert sent["request"].get_method() == "POST"
    assert sent["request"].data == b"{}"
    assert sent["request"].get_header("Accept") == "application/json"
    assert sleeps == []


@pytest.mark.parametrize("code", [404, 429, 500])
def test_http_error_status_is_returned_without_retry(monkeypatch, sleeps, code):
    fake = ScriptedUrlopen(http_error(code, b"details"))
    monkeypatch.setattr(http_transport, "urlopen", fake)
    transport, _ = make_transport()

    response = transport.request("GET", URL)

    assert response.status == code
    assert response.body == "details"
    assert not response.ok
    assert len(fake.requests) == 1
    assert sleeps == []


def test_network_failures_are_retried_with_backoff(monkeypatch, sleeps):
    fake = ScriptedUrlopen(URLError("connection refused"))
    monkeypatch.setattr(http_transport, "urlopen", fake)
    transport, _ = make_transport(max_retries=2)

    with pytest.raises(NetworkError, match="Failed after 3 attempts"):
        transport.request("GET", URL)

    assert len(fake.requests) == 3
    assert sleeps == [1.0, 2.0]


def test_recovers_after_transient_failure(monkeypatch, sleeps):
    fake = ScriptedUrlopen(TimeoutError("timed out"), FakeUrlResponse(204))
    monkeypatch.setattr(http_transport, "urlopen", fake)
    transport, _ = make_transport()

    response = transport.request("DELETE", URL)

    assert response.status == 204
    assert len(fake.requests) == 2
    assert sleeps == [1.0]


def test_ssl_context_is_built_once(monkeypatch, sleeps):
    built = []
    monkeypatch.setattr(http_transport, "urlopen", ScriptedUrlopen(FakeUrlResponse(200)))
    transport = HttpTransport(CREDENTIAL, context_factory=lambda credential: built.append(credential) or object())

    transport.request("GET", URL)
    transport.request("GET", URL)

    assert built == [CREDENTIAL]


def test_build_mtls_context_rejects_missing_files(tmp_path):
    credential = Credential(cert_path=tmp_path / "missing.crt", key_path=tmp_path / "missing.key")

    with pytest.raises(ValidationError):
        build_mtls_context(credential)


def test_response_json_raises_parse_error():
    with pytest.raises(ParseError):
        HttpResponse(200, "<html>").json()
