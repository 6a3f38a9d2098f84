"""
Pulling the text payload out of a raw generation response.

SDK versions expose it differently, so extraction is an ordered list of
strategies. Each returns the text or None when it does not apply; the first
hit wins.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

from .errors import ProviderResponseFormatError

logger = logging.getLogger(__name__)

Strategy = Callable[[Any], Optional[str]]


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _as_text(value: Any) -> Optional[str]:
    if callable(value):
        value = value()
    if isinstance(value, str) and value.strip():
        return value
    return None


def text_accessor(raw: Any) -> Optional[str]:
    """`raw.text` as a method or a property."""
    return _as_text(_get(raw, "text"))


def candidate_parts(raw: Any) -> Optional[str]:
    """`raw.candidates[0].content.parts[*].text`"""
    candidates = _get(raw, "candidates")
    if not candidates:
        return None
    content = _get(candidates[0], "content")
    parts = _get(content, "parts") if content is not None else None
    if not parts:
        return None
    texts = [t for t in (_get(p, "text") for p in parts) if isinstance(t, str)]
    return _as_text("".join(texts))


def nested_response(raw: Any) -> Optional[str]:
    """`raw.response.text` (older SDK wrappers)."""
    inner = _get(raw, "response")
    if inner is None:
        return None
    return _as_text(_get(inner, "text"))


DEFAULT_STRATEGIES: List[Strategy] = [text_accessor, candidate_parts, nested_response]


def extract_text(raw: Any, strategies: Sequence[Strategy] = DEFAULT_STRATEGIES) -> str:
    if isinstance(raw, str) and raw.strip():
        return raw
    for strategy in strategies:
        try:
            text = strategy(raw)
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            logger.debug("Text strategy %s not applicable: %s", strategy.__name__, e)
            continue
        if text is not None:
            return text
    raise ProviderResponseFormatError(
        "Unable to extract text from provider response",
        {"response_type": type(raw).__name__},
    )
