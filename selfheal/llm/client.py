from __future__ import annotations

import base64
import json
import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib import error, request

from selfheal.config.schema import HealingConfig
from selfheal.core.exceptions import SuggestionError
from selfheal.llm.parser import parse_locator_list
from selfheal.llm.prompts import (
    SYSTEM_PROMPT,
    VISION_SYSTEM_PROMPT,
    build_image_prompt,
    build_markup_prompt,
)

log = logging.getLogger(__name__)


class SuggestionProvider(ABC):
    """Provider-neutral interface for locator suggestions.

    Both entry points return an ordered candidate list and never raise:
    transport and parsing failures are logged and yield ``[]``.
    """

    provider_name = "unknown"
    default_model = ""

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        timeout: float = 30.0,
        max_markup_chars: int = 10000,
    ) -> None:
        self.api_key = api_key
        self.model = model or self.default_model
        self.timeout = timeout
        self.max_markup_chars = max_markup_chars

    def suggest_from_markup(self, page_source: str, failed_locator: str, error_message: str) -> list[str]:
        prompt = build_markup_prompt(page_source, failed_locator, error_message, self.max_markup_chars)
        return self._suggest(SYSTEM_PROMPT, prompt, None)

    def suggest_from_image(self, image_png: bytes, failed_locator: str, error_message: str) -> list[str]:
        if not image_png:
            log.warning("Empty screenshot supplied, skipping vision suggestions")
            return []
        return self._suggest(VISION_SYSTEM_PROMPT, build_image_prompt(failed_locator, error_message), image_png)

    def _suggest(self, system_prompt: str, user_prompt: str, image_png: bytes | None) -> list[str]:
        try:
            log.debug("Calling %s (%s)", self.provider_name, self.model)
            content = self.complete(system_prompt, user_prompt, image_png)
        except (SuggestionError, KeyError, IndexError, TypeError, ValueError, OSError) as exc:
            log.warning("%s suggestion request failed: %s", self.provider_name, exc)
            return []
        return parse_locator_list(content)

    @abstractmethod
    def complete(self, system_prompt: str, user_prompt: str, image_png: bytes | None = None) -> str:
        raise NotImplementedError


class OpenAISuggestionProvider(SuggestionProvider):
    provider_name = "openai"
    default_model = "gpt-4o"
    endpoint = "https://api.openai.com/v1/chat/completions"

    def complete(self, system_prompt: str, user_prompt: str, image_png: bytes | None = None) -> str:
        user_content: Any = user_prompt
        if image_png is not None:
            user_content = [
                {"type": "text", "text": user_prompt},
                {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{_b64(image_png)}"}},
            ]
        body = {
            "model": self.model,
            "temperature": 0.3,
            "max_tokens": 500,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        content = response["choices"][0]["message"]["content"]
        if not content:
            raise SuggestionError("OpenAI returned an empty response")
        return content


class AnthropicSuggestionProvider(SuggestionProvider):
    provider_name = "anthropic"
    default_model = "claude-3-5-sonnet-latest"
    endpoint = "https://api.anthropic.com/v1/messages"

    def complete(self, system_prompt: str, user_prompt: str, image_png: bytes | None = None) -> str:
        content: list[dict[str, Any]] = []
        if image_png is not None:
            content.append(
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": "image/png", "data": _b64(image_png)},
                }
            )
        content.append({"type": "text", "text": user_prompt})
        body = {
            "model": self.model,
            "max_tokens": 500,
            "temperature": 0.3,
            "system": system_prompt,
            "messages": [
                {"role": "user", "content": content},
            ],
        }
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        text_parts = [part.get("text", "") for part in response.get("content", []) if part.get("type") == "text"]
        return "".join(text_parts)


class GeminiSuggestionProvider(SuggestionProvider):
    provider_name = "gemini"
    default_model = "gemini-2.5-flash"
    endpoint_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def complete(self, system_prompt: str, user_prompt: str, image_png: bytes | None = None) -> str:
        parts: list[dict[str, Any]] = [{"text": user_prompt}]
        if image_png is not None:
            parts.append({"inline_data": {"mime_type": "image/png", "data": _b64(image_png)}})
        body = {
            "system_instruction": {
                "parts": [
                    {"text": system_prompt},
                ]
            },
            "contents": [
                {
                    "role": "user",
                    "parts": parts,
                }
            ],
            "generationConfig": {
                "temperature": 0.3,
            },
        }
        response = _post_json(
            self.endpoint_template.format(model=self.model),
            body,
            headers={
                "x-goog-api-key": self.api_key,
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        candidates = response.get("candidates", [])
        if not candidates:
            raise SuggestionError("Gemini returned no candidates")
        parts = candidates[0].get("content", {}).get("parts", [])
        text_parts = [part.get("text", "") for part in parts if isinstance(part, dict)]
        content = "".join(text_parts).strip()
        if not content:
            raise SuggestionError("Gemini returned an empty response")
        return content


PROVIDERS: dict[str, type[SuggestionProvider]] = {
    "openai": OpenAISuggestionProvider,
    "anthropic": AnthropicSuggestionProvider,
    "gemini": GeminiSuggestionProvider,
}


def create_suggestion_provider(config: HealingConfig) -> SuggestionProvider | None:
    """Builds the configured provider, or ``None`` when healing is disabled."""

    if not config.enabled:
        return None
    provider_class = PROVIDERS[config.provider]
    return provider_class(
        config.api_key,
        model=config.model,
        timeout=config.llm_timeout_seconds,
        max_markup_chars=config.max_markup_chars,
    )


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float = 30.0) -> dict[str, Any]:
    encoded = json.dumps(payload).encode("utf-8")
    req = request.Request(url, data=encoded, headers=headers, method="POST")
    try:
        with request.urlopen(req, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise SuggestionError(f"LLM request failed with status {exc.code}: {detail}") from exc
    except error.URLError as exc:
        raise SuggestionError(f"LLM request could not be completed: {exc.reason}") from exc
    except TimeoutError as exc:
        raise SuggestionError(f"LLM request timed out after {timeout}s") from exc
    return json.loads(raw)
