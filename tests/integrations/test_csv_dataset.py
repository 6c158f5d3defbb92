"""Tests for the CSV dataset inspector."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.integrations.csv_dataset import CsvDatasetInspector, describe_schema
from src.integrations.csv_loader import DataSourceError, parse_csv


def _create_sample_csv(tmp_path: Path) -> Path:
    content = """ID,NAME,CITY
1,Acme,New York
2,Bravo,Boston
3,Charlie,Chicago
"""
    csv_path = tmp_path / "dataset.csv"
    csv_path.write_text(content, encoding="utf-8")
    return csv_path


def test_inspector_describe(tmp_path: Path) -> None:
    csv_path = _create_sample_csv(tmp_path)
    inspector = CsvDatasetInspector(path=csv_path, max_preview_rows=2, table_name="records")

    summary = inspector.describe()

    expected_row_count = 3
    expected_column_count = 3
    expected_preview_rows = 2

    assert summary["table_name"] == "records"
    assert summary["row_count"] == expected_row_count
    assert summary["column_count"] == expected_column_count
    assert summary["columns"] == ["ID", "NAME", "CITY"]
    assert len(summary["preview_rows"]) == expected_preview_rows
    assert summary["preview_rows"][0]["NAME"] == "Acme"


def test_inspector_uses_fallback_path(tmp_path: Path) -> None:
    csv_path = _create_sample_csv(tmp_path)
    inspector = CsvDatasetInspector(path=tmp_path / "missing.csv", fallback_path=csv_path)

    assert inspector.row_count == 3


def test_inspector_raises_for_empty_file(tmp_path: Path) -> None:
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("", encoding="utf-8")
    inspector = CsvDatasetInspector(path=csv_path)

    with pytest.raises(DataSourceError):
        inspector.describe()


def test_describe_schema_lists_columns_and_samples() -> None:
    table = parse_csv("Year,Industry\n2024,Mining\n2024,Forestry\n2023,\n")

    text = describe_schema(table, table_name="survey_data", sample_size=2)

    assert text.startswith("CSV Data Schema:")
    assert '"survey_data"' in text
    assert "- Year: Column 1 (e.g., '2024', '2023')" in text
    assert "- Industry: Column 2 (e.g., 'Mining', 'Forestry')" in text
    assert "Available columns: Year, Industry" in text
    assert "SELECT * FROM survey_data WHERE Year LIKE '%value%'" in text


def test_schema_description_uses_table_name(tmp_path: Path) -> None:
    inspector = CsvDatasetInspector(path=_create_sample_csv(tmp_path), table_name="records")

    assert "SELECT * FROM records LIMIT 10" in inspector.schema_description()
