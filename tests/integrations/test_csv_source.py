"""Tests for reading CSV text from files and URLs."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from src.integrations.csv_loader import DataSourceError
from src.integrations.csv_source import is_url, load_table, read_csv_text


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_is_url_detects_http_schemes() -> None:
    assert is_url("https://example.com/data.csv")
    assert is_url("HTTP://example.com/data.csv")
    assert not is_url("data/sample_data.csv")


def test_read_csv_text_strips_byte_order_mark(tmp_path: Path) -> None:
    csv_path = tmp_path / "bom.csv"
    csv_path.write_text("\ufeffid,name\n1,a\n", encoding="utf-8")

    assert read_csv_text(csv_path).startswith("id,name")


def test_read_csv_text_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_csv_text(tmp_path / "nope.csv")


def test_read_csv_text_downloads_urls() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, text="id,name\n1,a\n")

    text = read_csv_text("https://example.com/data.csv", client=_client(handler))

    assert text == "id,name\n1,a\n"
    assert requested == ["https://example.com/data.csv"]


def test_load_table_reads_primary(tmp_path: Path) -> None:
    csv_path = tmp_path / "data.csv"
    csv_path.write_text("id,name\n1,a\n", encoding="utf-8")

    table = load_table(csv_path)

    assert table.headers == ("id", "name")
    assert table.row_count == 1


def test_load_table_uses_fallback_when_primary_fails(tmp_path: Path) -> None:
    fallback = tmp_path / "full.csv"
    fallback.write_text("id\n1\n2\n", encoding="utf-8")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="missing")

    table = load_table("https://example.com/sample.csv", fallback, client=_client(handler))

    assert table.row_count == 2


def test_load_table_uses_fallback_for_empty_primary(tmp_path: Path) -> None:
    primary = tmp_path / "empty.csv"
    primary.write_text("", encoding="utf-8")
    fallback = tmp_path / "full.csv"
    fallback.write_text("id\n1\n", encoding="utf-8")

    assert load_table(primary, fallback).row_count == 1


def test_load_table_raises_when_both_sources_fail(tmp_path: Path) -> None:
    with pytest.raises(DataSourceError) as excinfo:
        load_table(tmp_path / "a.csv", tmp_path / "b.csv")

    assert "a.csv" in str(excinfo.value)
    assert "b.csv" in str(excinfo.value)


def test_load_table_without_fallback_names_primary(tmp_path: Path) -> None:
    with pytest.raises(DataSourceError) as excinfo:
        load_table(tmp_path / "only.csv")

    assert "only.csv" in str(excinfo.value)
