from types import SimpleNamespace

import pytest
import requests
from google.genai import errors as genai_errors

from ai_providers.base import FileHandle, FileState
from ai_providers.errors import (
    InvalidProviderRequestError, ProviderFileNotFoundError, ProviderHTTPError, ProviderResponseFormatError,
    ProviderTransportError, ProviderUnavailableError,
)
from ai_providers.gemini_provider import GeminiProvider, _state_of, _to_handle
from ai_providers.local_stub import LocalStub, read_text
from ai_providers.openrouter_provider import OpenRouterProvider


class FakeResponse:
    def __init__(self, status, payload=None, text=""):
        self.status_code = status
        self.ok = 200 <= status < 300
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


# ------------------------------------------------------------------ #
#  OpenRouter                                                        #
# ------------------------------------------------------------------ #

def test_openrouter_returns_message_content():
    session = FakeSession(FakeResponse(200, {"choices": [{"message": {"content": "{\"summary\": \"x\"}"}}]}))
    provider = OpenRouterProvider("sk-test", model="anthropic/claude-sonnet-4.5", session=session)

    assert provider.chat_complete("analyze", {"temperature": 0.2}) == '{"summary": "x"}'
    sent = session.posts[0]
    assert sent["headers"]["Authorization"] == "Bearer sk-test"
    assert sent["json"]["model"] == "anthropic/claude-sonnet-4.5"
    assert sent["json"]["temperature"] == 0.2
    assert sent["json"]["max_tokens"] == 2000
    assert sent["json"]["messages"] == [{"role": "user", "content": "analyze"}]


def test_openrouter_non_2xx():
    provider = OpenRouterProvider("sk", session=FakeSession(FakeResponse(500, text="boom")))
    with pytest.raises(ProviderHTTPError) as info:
        provider.chat_complete("p", {})
    assert info.value.status == 500


def test_openrouter_network_error():
    provider = OpenRouterProvider("sk", session=FakeSession(error=requests.ConnectionError("down")))
    with pytest.raises(ProviderTransportError):
        provider.chat_complete("p", {})


@pytest.mark.parametrize("payload", [None, {"choices": []}, {"choices": [{"message": {"content": ""}}]}])
def test_openrouter_malformed_body(payload):
    provider = OpenRouterProvider("sk", session=FakeSession(FakeResponse(200, payload)))
    with pytest.raises(ProviderResponseFormatError):
        provider.chat_complete("p", {})


def test_openrouter_requires_key():
    with pytest.raises(ProviderUnavailableError):
        OpenRouterProvider("")


# ------------------------------------------------------------------ #
#  Gemini state mapping                                              #
# ------------------------------------------------------------------ #

@pytest.mark.parametrize("raw,expected", [
    ("ACTIVE", FileState.READY),
    ("PROCESSING", FileState.PROCESSING),
    ("FAILED", FileState.FAILED),
    ("STATE_UNSPECIFIED", FileState.PENDING),
    (None, FileState.PENDING),
    (SimpleNamespace(value="ACTIVE"), FileState.READY),
])
def test_gemini_state_mapping(raw, expected):
    assert _state_of(SimpleNamespace(state=raw)) == expected


def test_gemini_handle_conversion():
    remote = SimpleNamespace(name="files/x1", uri="https://g/x1", mime_type=None,
                             state="PROCESSING", display_name=None)
    handle = _to_handle(remote, "application/pdf", "notes.pdf")
    assert handle == FileHandle(id="files/x1", uri="https://g/x1", mime_type="application/pdf",
                                state=FileState.PROCESSING, display_name="notes.pdf")


def _gemini(name="gemini-1"):
    # skip genai.Client construction, only the error mapping is exercised
    provider = GeminiProvider.__new__(GeminiProvider)
    provider.name = name
    return provider


def _raise(error):
    def call(**kwargs):
        raise error
    return call


def _api_body(code, status):
    return {"error": {"code": code, "message": status.lower(), "status": status}}


@pytest.mark.parametrize("error,expected,retryable", [
    (genai_errors.ClientError(404, _api_body(404, "NOT_FOUND")), ProviderFileNotFoundError, False),
    (genai_errors.ClientError(400, _api_body(400, "INVALID_ARGUMENT")), InvalidProviderRequestError, False),
    (genai_errors.ClientError(403, _api_body(403, "PERMISSION_DENIED")), ProviderUnavailableError, True),
    (genai_errors.ClientError(429, _api_body(429, "RESOURCE_EXHAUSTED")), ProviderTransportError, True),
    (genai_errors.ServerError(503, _api_body(503, "UNAVAILABLE")), ProviderTransportError, True),
    (genai_errors.APIError(302, _api_body(302, "FOUND")), ProviderTransportError, True),
])
def test_gemini_error_mapping(error, expected, retryable):
    with pytest.raises(expected) as info:
        _gemini()._call("file lookup", _raise(error), name="files/x")
    assert info.value.retryable is retryable
    assert info.value.__cause__ is error


# ------------------------------------------------------------------ #
#  Local stub                                                        #
# ------------------------------------------------------------------ #

def test_stub_reports_processing_then_ready():
    stub = LocalStub(processing_polls=2)
    handle = stub.upload(b"Cells are units of life. DNA stores information.", "text/plain", "bio.txt")
    assert handle.state == FileState.PROCESSING
    assert [stub.get_status(handle) for _ in range(3)] == [
        FileState.PROCESSING, FileState.PROCESSING, FileState.READY]
    assert stub.get_file(handle.id).state == FileState.READY


def test_stub_unknown_file():
    stub = LocalStub()
    with pytest.raises(ProviderFileNotFoundError):
        stub.get_file("files/missing")


def test_stub_reads_plain_text_and_bad_pdf_bytes():
    assert read_text(b"Cells divide.", "text/plain") == "Cells divide."
    assert read_text(b"not really a pdf", "application/pdf") == "not really a pdf"
