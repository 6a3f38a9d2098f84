# ai_providers/openrouter_provider.py
import logging

import requests

from .base import ChatProvider
from .errors import ProviderHTTPError, ProviderResponseFormatError, ProviderTransportError, ProviderUnavailableError

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "anthropic/claude-sonnet-4.5"


class OpenRouterProvider(ChatProvider):
    """OpenAI-compatible chat completions through OpenRouter."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, url: str = OPENROUTER_URL,
                 timeout: float = 120.0, session: requests.Session = None):
        if not api_key:
            raise ProviderUnavailableError("OpenRouter API key is empty")
        self.name = "openrouter"
        self.model = model
        self.url = url
        self.timeout = timeout
        self._api_key = api_key
        self.session = session or requests.Session()

    def chat_complete(self, prompt: str, model_params: dict) -> str:
        params = dict(model_params or {})
        payload = {
            "model": params.pop("model", None) or self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": params.pop("temperature", 0.7),
            "max_tokens": params.pop("max_tokens", 2000),
        }
        payload.update(params)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            r = self.session.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderTransportError(f"OpenRouter request failed: {e}", {"provider": self.name}) from e

        if not r.ok:
            logger.error("OpenRouter API error %s: %s", r.status_code, r.text[:500])
            raise ProviderHTTPError(r.status_code, r.text, {"provider": self.name})

        try:
            data = r.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderResponseFormatError("OpenRouter response has no message content",
                                              {"provider": self.name}) from e
        if not isinstance(content, str) or not content.strip():
            raise ProviderResponseFormatError("OpenRouter returned empty content", {"provider": self.name})
        return content
