"""Shared OpenAI client utilities for SQL generation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Sequence


class OpenAIError(RuntimeError):
    """Raised when the OpenAI client cannot be initialised or invoked."""


def _import_openai() -> Any:
    try:
        from openai import OpenAI  # type: ignore
    except ModuleNotFoundError as exc:  # pragma: no cover - import guard
        raise OpenAIError(
            "openai package is required. Install openai>=1.0 to enable SQL generation."
        ) from exc
    return OpenAI


@dataclass(slots=True)
class OpenAIClientFactory:
    """Creates OpenAI client instances with shared configuration."""

    api_key_env: str = "OPENAI_API_KEY"
    timeout_s: float | None = None

    def create(self) -> Any:
        OpenAI = _import_openai()
        api_key = os.getenv(self.api_key_env)
        if not api_key:
            raise OpenAIError(
                f"Environment variable '{self.api_key_env}' must be set for SQL generation"
            )
        if self.timeout_s is not None:
            return OpenAI(api_key=api_key, timeout=self.timeout_s)
        return OpenAI(api_key=api_key)


@dataclass(slots=True)
class GPTResponseClient:
    """Thin wrapper around the OpenAI Responses API."""

    model: str
    client_factory: OpenAIClientFactory = field(default_factory=OpenAIClientFactory)
    _client: Any | None = None

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self.client_factory.create()
        return self._client

    def generate(
        self,
        *,
        messages: Sequence[dict[str, str]],
        max_output_tokens: int | None = None,
    ) -> Any:
        payload: dict[str, Any] = {
            "model": self.model,
            "input": [
                {
                    "role": message.get("role", "user"),
                    "content": message.get("content", ""),
                }
                for message in messages
            ],
        }
        if max_output_tokens is not None:
            payload["max_output_tokens"] = max_output_tokens
        return self.client.responses.create(**payload)

    def generate_text(
        self,
        *,
        messages: Sequence[dict[str, str]],
        max_output_tokens: int | None = None,
    ) -> str:
        response = self.generate(messages=messages, max_output_tokens=max_output_tokens)
        return extract_response_text(response)


def extract_response_text(response: Any) -> str:
    """Collect the text blocks of a Responses API result into one string."""

    direct = getattr(response, "output_text", None)
    if isinstance(direct, str) and direct.strip():
        return direct.strip()

    texts: list[str] = []
    for item in getattr(response, "output", None) or []:
        content = getattr(item, "content", None)
        if content is None and isinstance(item, dict):
            content = item.get("content")
        if isinstance(content, dict):
            content = [content]
        if not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict):
                text = block.get("text") or block.get("output_text")
            else:
                text = getattr(block, "text", None)
            if isinstance(text, str) and text.strip():
                texts.append(text.strip())
    return "\n".join(texts)
