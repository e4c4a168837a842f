from __future__ import annotations

import logging

import httpx


logger = logging.getLogger(__name__)


class LlmCompletionError(RuntimeError):
    pass


LANGUAGE_NAMES = {"en": "English", "hi": "Hindi"}


class CompletionClient:
    """Text completion over an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def complete(self, prompt: str, language: str = "en", temperature: float = 0.1, max_tokens: int = 600) -> str:
        if not self.enabled:
            raise LlmCompletionError("LLM completion is not configured.")

        language_name = LANGUAGE_NAMES.get(language, "English")
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        "You analyze patient queries to recommend healthcare providers. "
                        f"The patient wrote in {language_name}. Respond with valid JSON only."
                    ),
                },
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            with httpx.Client(timeout=self.timeout, headers=headers, transport=self.transport) as client:
                response = client.post(f"{self.base_url}/chat/completions", json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as exc:
            raise LlmCompletionError(f"LLM request failed: {exc}") from exc
        except ValueError as exc:
            raise LlmCompletionError("LLM response was not JSON.") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LlmCompletionError("LLM response had no message content.") from exc

        if not isinstance(content, str) or not content.strip():
            raise LlmCompletionError("LLM response was empty.")

        logger.debug("LLM completion received (%d chars)", len(content))
        return content
