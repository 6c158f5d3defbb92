"""Tests for the remote execute client and the executor fallback chain."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import httpx
import pytest

from src.core.table import ResultSet
from src.integrations.csv_sql_executor import CsvSQLExecutor
from src.integrations.remote_sql_executor import (
    FallbackSQLExecutor,
    HttpSQLExecutor,
    RemoteExecutionError,
)


def _executor(handler) -> HttpSQLExecutor:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpSQLExecutor(base_url="http://sql.example/", client=client)


def test_http_executor_posts_query_and_decodes_result() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"columns": ["id"], "rows": [["1"]], "rowCount": 1, "executionTime": 0.5},
        )

    result = _executor(handler).run("SELECT id FROM t")

    assert seen == {"url": "http://sql.example/api/sql/execute", "body": {"query": "SELECT id FROM t"}}
    assert result.columns == ["id"]
    assert result.rows == [["1"]]
    assert result.execution_time == 0.5


def test_http_executor_raises_on_error_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "boom"})

    with pytest.raises(RemoteExecutionError, match="boom"):
        _executor(handler).run("SELECT * FROM t")


def test_http_executor_raises_on_server_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="not json")

    with pytest.raises(RemoteExecutionError, match="500"):
        _executor(handler).run("SELECT * FROM t")


def test_http_executor_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RemoteExecutionError):
        _executor(handler).run("SELECT * FROM t")


@dataclass
class _StubExecutor:
    result: ResultSet | None = None
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    def run(self, statement: str) -> ResultSet:
        self.calls.append(statement)
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


def test_fallback_executor_prefers_primary() -> None:
    primary = _StubExecutor(result=ResultSet(columns=["a"], rows=[["1"]]))
    fallback = _StubExecutor(result=ResultSet(columns=["b"], rows=[]))

    result = FallbackSQLExecutor(primary=primary, fallback=fallback).run("SELECT a FROM t")

    assert result.columns == ["a"]
    assert fallback.calls == []


def test_fallback_executor_uses_fallback_once_on_remote_failure() -> None:
    primary = _StubExecutor(error=RemoteExecutionError("down"))
    fallback = _StubExecutor(result=ResultSet(columns=["b"], rows=[["2"]]))

    result = FallbackSQLExecutor(primary=primary, fallback=fallback).run("SELECT b FROM t")

    assert result.rows == [["2"]]
    assert primary.calls == ["SELECT b FROM t"]
    assert fallback.calls == ["SELECT b FROM t"]


@pytest.mark.parametrize(
    "body",
    [
        {"text": "<html>gateway</html>"},
        {"json": {"rows": [["1"]]}},
        {"json": [["1"]]},
    ],
)
def test_http_executor_rejects_unreadable_success_body(body: dict[str, object]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, **body)

    with pytest.raises(RemoteExecutionError, match="unreadable"):
        _executor(handler).run("SELECT * FROM t")


def test_fallback_executor_runs_local_engine_when_remote_returns_html() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    local = CsvSQLExecutor.from_text("a,b\n1,2\n")

    result = FallbackSQLExecutor(primary=_executor(handler), fallback=local).run("SELECT * FROM t")

    assert result.columns == ["a", "b"]
    assert result.rows == [["1", "2"]]
