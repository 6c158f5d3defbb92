"""Tabular data model shared by the CSV loader and the query engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Table:
    """Headers and rows parsed from one CSV source.

    Every row holds exactly ``len(headers)`` cells. Instances are never mutated
    after the loader builds them, so they can be shared between concurrent
    queries without locking.
    """

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = ()

    @property
    def width(self) -> int:
        return len(self.headers)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def as_records(self, *, offset: int = 0, limit: int | None = None) -> list[dict[str, str]]:
        """Return a slice of rows as dictionaries keyed by header.

        Duplicate headers keep the value of their first occurrence.
        """

        end = None if limit is None else offset + limit
        records: list[dict[str, str]] = []
        for row in self.rows[offset:end]:
            record: dict[str, str] = {}
            for header, value in zip(self.headers, row):
                record.setdefault(header, value)
            records.append(record)
        return records


@dataclass(slots=True)
class ResultSet:
    """Output of a single query evaluation."""

    columns: list[str]
    rows: list[list[str]] = field(default_factory=list)
    execution_time: float = 0.0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation used by the HTTP API."""

        return {
            "columns": list(self.columns),
            "rows": [list(row) for row in self.rows],
            "rowCount": self.row_count,
            "executionTime": self.execution_time,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ResultSet:
        columns = [str(column) for column in payload.get("columns") or []]
        rows = [
            ["" if cell is None else str(cell) for cell in row]
            for row in payload.get("rows") or []
            if isinstance(row, (list, tuple))
        ]
        return cls(
            columns=columns,
            rows=rows,
            execution_time=float(payload.get("executionTime") or 0.0),
        )
