# ai_providers/gemini_provider.py
import io
import logging
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .base import FileHandle, FileState, ProviderClient
from .errors import (
    InvalidProviderRequestError, ProviderFileNotFoundError, ProviderTransportError, ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

# File API states -> our lifecycle
_STATES = {
    "STATE_UNSPECIFIED": FileState.PENDING,
    "PROCESSING": FileState.PROCESSING,
    "ACTIVE": FileState.READY,
    "FAILED": FileState.FAILED,
}


def _state_of(remote_file) -> FileState:
    raw = getattr(remote_file.state, "value", remote_file.state) or "STATE_UNSPECIFIED"
    return _STATES.get(str(raw).upper(), FileState.PENDING)


def _to_handle(remote_file, fallback_mime: str = "", display_name: str = "") -> FileHandle:
    return FileHandle(
        id=remote_file.name,
        uri=remote_file.uri or "",
        mime_type=remote_file.mime_type or fallback_mime,
        state=_state_of(remote_file),
        display_name=remote_file.display_name or display_name,
    )


class GeminiProvider(ProviderClient):
    """One Gemini Developer API key: File API upload/poll + JSON-mode generation."""

    def __init__(self, api_key: str, name: str = "gemini", model: str = DEFAULT_MODEL,
                 http_timeout: float = 120.0):
        if not api_key:
            raise ProviderUnavailableError(f"{name}: API key is empty")
        self.name = name
        self.model = model
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(http_timeout * 1000)),
        )

    def _call(self, what: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except genai_errors.ServerError as e:
            raise ProviderTransportError(f"{self.name}: {what} failed ({e.code})",
                                         {"provider": self.name, "status": e.code}) from e
        except genai_errors.ClientError as e:
            if e.code == 429:
                raise ProviderTransportError(f"{self.name}: rate limited during {what}",
                                             {"provider": self.name, "status": 429}) from e
            context = {"provider": self.name, "status": e.code}
            if e.code in (401, 403):
                raise ProviderUnavailableError(f"{self.name}: {what} not authorized ({e.code}): {e.message}",
                                               context) from e
            if e.code == 404:
                raise ProviderFileNotFoundError(f"{self.name}: {what} found nothing: {e.message}",
                                                context) from e
            raise InvalidProviderRequestError(f"{self.name}: {what} rejected ({e.code}): {e.message}",
                                              context) from e
        except genai_errors.APIError as e:
            raise ProviderTransportError(f"{self.name}: {what} failed ({e.code}): {e.message}",
                                         {"provider": self.name, "status": e.code}) from e
        except httpx.HTTPError as e:
            raise ProviderTransportError(f"{self.name}: {what} transport error: {e}",
                                         {"provider": self.name}) from e

    def upload(self, data: bytes, mime_type: str, display_name: str) -> FileHandle:
        mime_type = mime_type or "application/pdf"
        logger.info("%s: uploading %s (%d bytes, %s)", self.name, display_name, len(data), mime_type)
        remote = self._call(
            "upload",
            self.client.files.upload,
            file=io.BytesIO(data),
            config=types.UploadFileConfig(mime_type=mime_type, display_name=display_name),
        )
        return _to_handle(remote, mime_type, display_name)

    def get_status(self, handle: FileHandle) -> FileState:
        remote = self._call("status check", self.client.files.get, name=handle.id)
        return _state_of(remote)

    def get_file(self, handle_id: str) -> FileHandle:
        logger.info("%s: fetching file %s", self.name, handle_id)
        return _to_handle(self._call("file lookup", self.client.files.get, name=handle_id))

    def delete_file(self, handle: FileHandle) -> None:
        self._call("delete", self.client.files.delete, name=handle.id)

    def generate_structured(self, prompt: str, handle: Optional[FileHandle],
                            response_schema: dict, model_params: dict) -> Any:
        params = dict(model_params or {})
        model = params.pop("model", None) or self.model

        contents = [prompt]
        if handle is not None:
            contents.append(types.Part.from_uri(file_uri=handle.uri, mime_type=handle.mime_type))

        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=response_schema,
            **params,
        )
        return self._call(
            f"generate_content({model})",
            self.client.models.generate_content,
            model=model,
            contents=contents,
            config=config,
        )
