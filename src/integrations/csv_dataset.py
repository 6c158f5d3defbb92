"""Utilities for inspecting CSV datasets used as the query data source."""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.core.table import Table
from src.integrations.csv_source import load_table

DEFAULT_TABLE_NAME = "survey_data"


@dataclass(slots=True)
class CsvDatasetInspector:
    """Loads high-level metadata for the configured CSV export."""

    path: str | Path
    fallback_path: str | Path | None = None
    max_preview_rows: int = 5
    table_name: str = DEFAULT_TABLE_NAME
    _table: Table | None = field(init=False, default=None)

    def load(self) -> Table:
        """Read and parse the CSV once; later calls reuse the table."""

        if self._table is None:
            self._table = load_table(self.path, self.fallback_path)
        return self._table

    @property
    def columns(self) -> list[str]:
        return list(self.load().headers)

    @property
    def row_count(self) -> int:
        return self.load().row_count

    @property
    def preview_rows(self) -> list[dict[str, Any]]:
        return self.load().as_records(limit=self.max_preview_rows)

    def describe(self) -> dict[str, Any]:
        """Return a structured summary of the dataset."""

        return {
            "path": str(self.path),
            "table_name": self.table_name,
            "row_count": self.row_count,
            "column_count": len(self.columns),
            "columns": self.columns,
            "preview_rows": self.preview_rows,
        }

    def schema_description(self) -> str:
        return describe_schema(self.load(), table_name=self.table_name)


def describe_schema(table: Table, *, table_name: str = DEFAULT_TABLE_NAME, sample_size: int = 3) -> str:
    """Render a plain-text schema summary for prompts and the HTTP API.

    Each column lists a few distinct sample values so a language model can pick
    sensible literals for WHERE clauses.
    """

    lines = [
        "CSV Data Schema:",
        f'The table should be treated as "{table_name}" with the following columns:',
    ]
    for position, header in enumerate(table.headers):
        samples = _sample_values(table, position, sample_size)
        suffix = f" (e.g., {', '.join(repr(value) for value in samples)})" if samples else ""
        lines.append(f"- {header}: Column {position + 1}{suffix}")
    lines.append("")
    lines.append("Available columns: " + ", ".join(table.headers))
    lines.append("")
    lines.append("Examples:")
    lines.append(f'- "Show all data" -> SELECT * FROM {table_name} LIMIT 10')
    if table.headers:
        first = table.headers[0]
        lines.append(f"- \"Find a value\" -> SELECT * FROM {table_name} WHERE {first} LIKE '%value%'")
    return "\n".join(lines)


def _sample_values(table: Table, position: int, limit: int) -> list[str]:
    seen: list[str] = []
    for row in table.rows:
        value = row[position]
        if value and value not in seen:
            seen.append(value)
            if len(seen) >= limit:
                break
    return seen


def _build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect the configured CSV dataset")
    parser.add_argument("path", help="Path or URL of the CSV export")
    parser.add_argument("--fallback", default=None, help="Alternate path or URL tried when the first fails")
    parser.add_argument(
        "--max-preview-rows",
        type=int,
        default=5,
        help="Number of rows to include in the preview output",
    )
    parser.add_argument("--schema", action="store_true", help="Print the schema description instead")
    return parser


def main() -> None:
    parser = _build_cli()
    args = parser.parse_args()
    inspector = CsvDatasetInspector(
        path=args.path,
        fallback_path=args.fallback,
        max_preview_rows=args.max_preview_rows,
    )
    if args.schema:
        print(inspector.schema_description())
        return
    print(json.dumps(inspector.describe(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
