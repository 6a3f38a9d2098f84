import json
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ai_providers.base import ChatProvider, FileHandle, FileState, ProviderClient


class FakeClock:
    """Monotonic clock whose sleep() just moves time forward."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedProvider(ProviderClient):
    """
    Provider whose status sequence and generation responses are scripted.
    Exceptions placed in either script are raised instead of returned.
    """

    def __init__(self, name="fake", states=(), responses=(), upload_error=None):
        self.name = name
        self.states = list(states)
        self.responses = list(responses)
        self.upload_error = upload_error
        self.status_calls = 0
        self.generate_calls = []
        self.deleted = []
        self.uploads = []

    def upload(self, data, mime_type, display_name):
        if self.upload_error:
            raise self.upload_error
        self.uploads.append((data, mime_type, display_name))
        return FileHandle(id="files/abc", uri="https://files/abc", mime_type=mime_type,
                          state=FileState.PROCESSING, display_name=display_name)

    def get_status(self, handle):
        self.status_calls += 1
        item = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        if isinstance(item, Exception):
            raise item
        return item

    def get_file(self, handle_id):
        return FileHandle(id=handle_id, uri=f"https://{handle_id}", mime_type="application/pdf",
                          state=FileState.READY)

    def delete_file(self, handle):
        self.deleted.append(handle.id)

    def generate_structured(self, prompt, handle, response_schema, model_params):
        self.generate_calls.append({"prompt": prompt, "handle": handle,
                                    "schema": response_schema, "params": model_params})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, (dict, list)):
            return {"text": json.dumps(item)}
        return {"text": item}


class FakeChat(ChatProvider):
    def __init__(self, result=None, error=None):
        self.name = "fake-chat"
        self.result = result
        self.error = error
        self.calls = []

    def chat_complete(self, prompt, model_params):
        self.calls.append(prompt)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ready_handle():
    return FileHandle(id="files/ready", uri="https://files/ready", mime_type="application/pdf",
                      state=FileState.READY)
