from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from .response_text import extract_text


class FileState(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (FileState.READY, FileState.FAILED)


@dataclass(frozen=True)
class FileHandle:
    id: str
    uri: str
    mime_type: str
    state: FileState = FileState.PENDING
    display_name: str = ""

    def with_state(self, state: FileState) -> "FileHandle":
        return replace(self, state=state)


class ProviderClient(ABC):
    """One connection (one credential) to a file-aware generation backend."""

    name: str = "provider"

    @abstractmethod
    def upload(self, data: bytes, mime_type: str, display_name: str) -> FileHandle:
        """Send the document; return a handle in whatever state the backend reports."""

    @abstractmethod
    def get_status(self, handle: FileHandle) -> FileState:
        """
        Return the current processing state of an uploaded file.
        Network-level failures must surface as ProviderTransportError.
        """

    @abstractmethod
    def get_file(self, handle_id: str) -> FileHandle:
        """Resolve a previously returned handle id."""

    @abstractmethod
    def generate_structured(self, prompt: str, handle: Optional[FileHandle],
                            response_schema: dict, model_params: dict) -> Any:
        """Return the raw provider response for a JSON-constrained request."""

    def delete_file(self, handle: FileHandle) -> None:
        """Best-effort removal of an uploaded file. Default: nothing to clean."""

    def extract_text(self, raw: Any) -> str:
        return extract_text(raw)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"


class ChatProvider(ABC):
    """Text-only chat completion backend (used for weak-area analysis)."""

    name: str = "chat"

    @abstractmethod
    def chat_complete(self, prompt: str, model_params: dict) -> str:
        """Return the assistant message content."""
