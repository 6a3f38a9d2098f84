import io
import json
import logging
import re
import threading
import uuid
from collections import Counter
from dataclasses import dataclass

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .base import FileHandle, FileState, ProviderClient
from .errors import ProviderFileNotFoundError

logger = logging.getLogger(__name__)


def read_text(data: bytes, mime_type: str) -> str:
    if mime_type == "application/pdf" or data[:5] == b"%PDF-":
        try:
            reader = PdfReader(io.BytesIO(data))
            return "\n".join((page.extract_text() or "") for page in reader.pages)
        except PdfReadError as e:
            logger.warning("Stub could not read PDF, treating it as text: %s", e)
    return data.decode("utf-8", errors="ignore")


@dataclass
class StubResponse:
    text: str


class LocalStub(ProviderClient):
    """
    Offline provider for local runs without API keys (USE_LOCAL_STUB=1).
    Files are kept in memory and read with pypdf (or as UTF-8 text); answers are canned
    but follow the same JSON shapes as the real backend.
    """

    def __init__(self, name: str = "stub", processing_polls: int = 0):
        self.name = name
        self.processing_polls = processing_polls
        self._files = {}
        self._polls = Counter()
        self._lock = threading.Lock()

    def _sentences(self, text):
        parts = re.split(r'[\.!\?\n]\s*', text or '')
        return [p.strip() for p in parts if p and len(p.strip()) > 3]

    def upload(self, data: bytes, mime_type: str, display_name: str) -> FileHandle:
        handle = FileHandle(
            id=f"files/{uuid.uuid4().hex[:12]}",
            uri=f"stub://{display_name}",
            mime_type=mime_type or "application/pdf",
            state=FileState.PROCESSING if self.processing_polls else FileState.READY,
            display_name=display_name,
        )
        with self._lock:
            self._files[handle.id] = (handle, read_text(data, handle.mime_type))
        return handle

    def get_status(self, handle: FileHandle) -> FileState:
        with self._lock:
            if handle.id not in self._files:
                return FileState.FAILED
            self._polls[handle.id] += 1
            done = self._polls[handle.id] > self.processing_polls
        return FileState.READY if done else FileState.PROCESSING

    def get_file(self, handle_id: str) -> FileHandle:
        with self._lock:
            if handle_id not in self._files:
                raise ProviderFileNotFoundError(f"{self.name}: unknown file {handle_id}", {"file": handle_id})
            handle, _ = self._files[handle_id]
            done = self.processing_polls == 0 or self._polls[handle_id] > self.processing_polls
        return handle.with_state(FileState.READY if done else FileState.PROCESSING)

    def delete_file(self, handle: FileHandle) -> None:
        with self._lock:
            self._files.pop(handle.id, None)

    def generate_structured(self, prompt, handle, response_schema, model_params):
        keys = set(response_schema.get("properties", {}))
        text = ""
        if handle is not None:
            with self._lock:
                text = self._files.get(handle.id, (None, ""))[1]

        if "topics" in keys:
            payload = {"topics": self._topics(text)}
        elif "questions" in keys:
            m = re.search(r'Create (\d+) .*?about "(.+?)"', prompt)
            count, topic = (int(m.group(1)), m.group(2)) if m else (5, "the document")
            payload = {"questions": self._questions(text, topic, count)}
        elif "weakTopics" in keys:
            payload = self._analysis(prompt)
        else:
            payload = {}
        return StubResponse(text=json.dumps(payload))

    def _topics(self, text):
        sents = self._sentences(text) or ["Content Summary"]
        return [{"title": s[:60], "description": s} for s in sents[:5]]

    def _questions(self, text, topic, count):
        sents = self._sentences(text) or [f"{topic} is covered in the document"]
        out = []
        for i in range(count):
            s = sents[i % len(sents)]
            out.append({
                "question": f"Which statement about {topic} appears in the document? ({i + 1})",
                "options": [s[:120], "None of the above", "It is not mentioned", "All of the above"],
                "correctAnswer": 0,
                "explanation": f"The document states: {s[:200]}",
            })
        return out

    def _analysis(self, prompt):
        topics = Counter(t for t in re.findall(r'"topic":\s*"([^"]*)"', prompt) if t)
        weak = [
            {"topic": t, "reason": "Repeated mistakes in this area (stub).",
             "mistakeCount": n, "difficultyLevel": "intermediate"}
            for t, n in topics.most_common(5)
        ]
        return {
            "summary": "Local stub analysis based on topic frequency only.",
            "weakTopics": weak,
            "recommendations": [f"Review the material on {w['topic']}." for w in weak],
            "learningStyleInsights": "Stub provider - configure a real API key for deeper insights.",
        }
