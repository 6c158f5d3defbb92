"""Tests for the shared OpenAI client helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from src.integrations.openai_models import (
    GPTResponseClient,
    OpenAIClientFactory,
    OpenAIError,
    extract_response_text,
)


@dataclass
class _MessageBlock:
    text: str | None = None


@dataclass
class _Message:
    content: list[Any]


@dataclass
class _ResponseObject:
    output: list[Any] = field(default_factory=list)
    output_text: str | None = None


class _ResponsesWrapper:
    def __init__(self, outer: _OpenAIClientStub) -> None:
        self.outer = outer

    def create(self, **kwargs: Any) -> _ResponseObject:
        self.outer.calls.append(kwargs)
        return self.outer.response


class _OpenAIClientStub:
    def __init__(self, response: _ResponseObject) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []
        self.responses = _ResponsesWrapper(self)


class _FactoryStub(OpenAIClientFactory):
    def __init__(self, client: _OpenAIClientStub) -> None:
        self._stub = client

    def create(self) -> Any:  # type: ignore[override]
        return self._stub


def test_extract_response_text_prefers_output_text() -> None:
    response = _ResponseObject(output_text="  SELECT 1  ")

    assert extract_response_text(response) == "SELECT 1"


def test_extract_response_text_joins_content_blocks() -> None:
    response = _ResponseObject(
        output=[
            _Message(content=[_MessageBlock(text="SELECT *"), _MessageBlock(text=None)]),
            {"content": [{"text": "FROM survey_data"}]},
        ]
    )

    assert extract_response_text(response) == "SELECT *\nFROM survey_data"


def test_extract_response_text_empty_response() -> None:
    assert extract_response_text(_ResponseObject()) == ""


def test_factory_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    pytest.importorskip("openai")
    monkeypatch.delenv("SQL_TEST_OPENAI_KEY", raising=False)

    with pytest.raises(OpenAIError, match="SQL_TEST_OPENAI_KEY"):
        OpenAIClientFactory(api_key_env="SQL_TEST_OPENAI_KEY").create()


def test_generate_text_sends_messages_and_token_budget() -> None:
    stub = _OpenAIClientStub(_ResponseObject(output_text="SELECT * FROM t"))
    client = GPTResponseClient(model="gpt-test", client_factory=_FactoryStub(stub))

    text = client.generate_text(
        messages=[{"role": "user", "content": "show all"}],
        max_output_tokens=150,
    )

    assert text == "SELECT * FROM t"
    assert stub.calls == [
        {
            "model": "gpt-test",
            "input": [{"role": "user", "content": "show all"}],
            "max_output_tokens": 150,
        }
    ]
