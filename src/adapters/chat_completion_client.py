"""Chat-completion classifier adapter.

Posts a system+user message pair to an OpenAI-compatible
``/v1/chat/completions`` endpoint and returns the assistant message content.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any

from core.config import AIProviderConfig
from core.errors import ClassifierFailure

LOGGER = logging.getLogger(__name__)

TEMPERATURE = 0.2
MAX_TOKENS = 4000


def _error_message(body: str) -> str:
    try:
        payload = json.loads(body)
    except ValueError:
        return body.strip() or "AI grouping request failed"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "AI grouping request failed"


class ChatCompletionClient:
    """ClassifierPort adapter built on a blocking HTTP call in a worker thread."""

    def __init__(self, user_agent: str = "tabgrouper") -> None:
        self._user_agent = user_agent

    @staticmethod
    def endpoint(provider: AIProviderConfig) -> str:
        return f"{provider.endpoint}/v1/chat/completions"

    @staticmethod
    def build_payload(provider: AIProviderConfig, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        return {
            "model": provider.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }

    async def complete(self, provider: AIProviderConfig, system_prompt: str, user_prompt: str) -> str:
        """Send the prompt pair and return the first choice's message content."""

        payload = self.build_payload(provider, system_prompt, user_prompt)
        body = await asyncio.to_thread(self._post, provider, payload)
        try:
            data = json.loads(body)
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ClassifierFailure(f"Unexpected AI response shape: {exc}") from exc
        if not content:
            raise ClassifierFailure("AI returned empty content")
        return content

    def _post(self, provider: AIProviderConfig, payload: dict[str, Any]) -> str:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self.endpoint(provider), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        request.add_header("Authorization", f"Bearer {provider.api_key}")
        request.add_header("User-Agent", self._user_agent)
        LOGGER.debug("POST %s (model=%s)", self.endpoint(provider), provider.model)
        try:
            with urllib.request.urlopen(request, timeout=provider.timeout_seconds) as response:
                return response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise ClassifierFailure(f"AI API error {e.code}: {_error_message(body)}") from e
        except (urllib.error.URLError, OSError) as e:
            raise ClassifierFailure(f"AI request failed: {e}") from e
