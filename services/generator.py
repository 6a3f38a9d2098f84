# services/generator.py
import json
import logging
import re
import uuid
from typing import Any, List

from ai_providers.base import FileHandle, FileState, ProviderClient
from ai_providers.errors import SchemaValidationError
from services.schemas import Question, QuizBatch, Topic

logger = logging.getLogger(__name__)

PROMPT_TOPICS = """You are an expert educational content analyzer. Analyze this document COMPREHENSIVELY and extract every distinct learning topic it covers.

CRITICAL INSTRUCTIONS:
- Extract all MAIN topics, subject-wise / chapter-wise.
- Cover main topics only.
- Do NOT list any sub-topic.

For each topic provide:
- A clear, specific title
- A brief 1-2 sentence description

Return JSON with a 'topics' array of objects {"title": string, "description": string}."""

PROMPT_QUIZ = """Create {count} challenging multiple choice questions about "{topic}" from this document.

Rules:
1. Strictly adhere to the document: every question, option and explanation must be based ONLY on information present in the document.
2. Handle visuals: for images, charts or diagrams, ask about the information they convey (e.g. "According to the chart on page 5, which product had the highest sales?"), never "What is in the image?". Do not include the image itself in the output.
3. Four options: every question must have exactly four string options.
4. Answer and explanation: give the correct answer as a numeric index (0-3) and a brief "explanation" justifying it from the document.
5. JSON output: a single JSON object with the root key "questions"; no other text or markdown.

Each item in 'questions':
- question: string
- options: array of 4 strings
- correctAnswer: number (0-3)
- explanation: string"""

TOPICS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "topics": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "description": {"type": "STRING"},
                },
                "required": ["title", "description"],
            },
        },
    },
    "required": ["topics"],
}

QUIZ_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "questions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "question": {"type": "STRING"},
                    "options": {"type": "ARRAY", "items": {"type": "STRING"}},
                    "correctAnswer": {"type": "NUMBER"},
                    "explanation": {"type": "STRING"},
                },
                "required": ["question", "options", "correctAnswer", "explanation"],
            },
        },
    },
    "required": ["questions"],
}

TOPIC_PARAMS = {"model": "gemini-2.5-flash", "temperature": 0.4, "top_k": 40, "top_p": 0.95}
QUIZ_PARAMS = {"model": "gemini-2.5-pro", "temperature": 0.7}

OPTION_COUNT = 4

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_fences(text: str) -> str:
    return _FENCE.sub("", text or "").strip()


def parse_json_payload(text: str) -> Any:
    """Strip markdown fences and parse; tolerate chatter around the JSON body."""
    cleaned = strip_fences(text)
    if not cleaned:
        raise SchemaValidationError("Provider returned an empty payload")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i != -1]
    end = max(cleaned.rfind("]"), cleaned.rfind("}"))
    if starts and end > min(starts):
        try:
            return json.loads(cleaned[min(starts):end + 1])
        except json.JSONDecodeError as e:
            raise SchemaValidationError(f"Response is not valid JSON: {e}",
                                        {"preview": cleaned[:200]}) from e
    raise SchemaValidationError("Response is not valid JSON", {"preview": cleaned[:200]})


def unwrap_items(payload: Any, key: str) -> list:
    """`{key: [...]}`, a bare `[...]`, or an object whose only list is the items."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if key in payload:
            items = payload[key]
            if isinstance(items, list):
                return items
            raise SchemaValidationError(f"'{key}' must be an array")
        lists = [v for v in payload.values() if isinstance(v, list)]
        if len(lists) == 1:
            return lists[0]
    raise SchemaValidationError(f"Expected an object with a '{key}' array or a bare array",
                                {"type": type(payload).__name__})


def topic_slug(topic: str) -> str:
    return re.sub(r"\s+", "-", topic.strip())


def _answer_index(value: Any, i: int) -> int:
    if isinstance(value, bool):
        raise SchemaValidationError(f"Question {i}: correctAnswer must be a number")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise SchemaValidationError(f"Question {i}: correctAnswer must be an integer index, got {value!r}")
    if not 0 <= value < OPTION_COUNT:
        raise SchemaValidationError(f"Question {i}: correctAnswer {value} out of range 0-{OPTION_COUNT - 1}")
    return value


def _to_topic(item: Any, i: int) -> Topic:
    if isinstance(item, str) and item.strip():
        return Topic(item.strip())
    if not isinstance(item, dict):
        raise SchemaValidationError(f"Topic {i} is not an object")
    title = item.get("title")
    if not isinstance(title, str) or not title.strip():
        raise SchemaValidationError(f"Topic {i} has no title")
    description = item.get("description") or ""
    return Topic(title.strip(), str(description).strip())


def _to_question(item: Any, i: int, qid: str) -> Question:
    if not isinstance(item, dict):
        raise SchemaValidationError(f"Question {i} is not an object")
    text = item.get("question") or item.get("questionText")
    if not isinstance(text, str) or not text.strip():
        raise SchemaValidationError(f"Question {i} has no text")

    options = item.get("options")
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        got = len(options) if isinstance(options, list) else type(options).__name__
        raise SchemaValidationError(f"Question {i} must have exactly {OPTION_COUNT} options, got {got}")
    if any(o is None or isinstance(o, (dict, list)) for o in options):
        raise SchemaValidationError(f"Question {i} has a non-text option")

    return Question(
        id=qid,
        question_text=text.strip(),
        options=tuple(str(o).strip() for o in options),
        correct_answer=_answer_index(item.get("correctAnswer"), i),
        explanation=str(item.get("explanation") or "").strip(),
    )


class StructuredGenerator:
    """JSON-constrained requests against a READY file, returned as validated value objects."""

    def __init__(self, topic_params: dict = None, quiz_params: dict = None):
        self.topic_params = dict(TOPIC_PARAMS, **(topic_params or {}))
        self.quiz_params = dict(QUIZ_PARAMS, **(quiz_params or {}))

    def _request(self, client: ProviderClient, prompt: str, handle: FileHandle,
                 schema: dict, params: dict) -> Any:
        if handle.state != FileState.READY:
            raise ValueError(f"File {handle.id} is {handle.state.value}, not READY")
        raw = client.generate_structured(prompt, handle, schema, params)
        return parse_json_payload(client.extract_text(raw))

    def extract_topics(self, handle: FileHandle, client: ProviderClient) -> List[Topic]:
        logger.info("Requesting topics for %s from %s", handle.id, client.name)
        payload = self._request(client, PROMPT_TOPICS, handle, TOPICS_SCHEMA, self.topic_params)
        topics = [_to_topic(item, i) for i, item in enumerate(unwrap_items(payload, "topics"))]
        logger.info("Extracted %d topic(s) from %s", len(topics), handle.id)
        return topics

    def generate_quiz(self, topic: str, count: int, handle: FileHandle,
                      client: ProviderClient) -> QuizBatch:
        if not isinstance(topic, str) or not topic.strip():
            raise ValueError("topic must be a non-empty string")
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValueError("count must be a positive integer")

        logger.info("Generating %d question(s) on %r with %s", count, topic, client.name)
        prompt = PROMPT_QUIZ.format(count=count, topic=topic)
        payload = self._request(client, prompt, handle, QUIZ_SCHEMA, self.quiz_params)
        items = unwrap_items(payload, "questions")

        if len(items) < count:
            raise SchemaValidationError(f"Asked for {count} questions, provider returned {len(items)}",
                                        {"requested": count, "returned": len(items)})
        if len(items) > count:
            logger.info("Provider returned %d questions, keeping %d", len(items), count)
            items = items[:count]

        prefix = f"{topic_slug(topic)}-{uuid.uuid4().hex[:8]}"
        questions = tuple(_to_question(item, i, f"{prefix}-{i}") for i, item in enumerate(items))
        return QuizBatch(topic=topic, questions=questions)
