"""CSV-backed SQL executor for a forgiving subset of SELECT statements.

The engine evaluates text that loosely resembles::

    SELECT <columns|*> FROM <table>
        [WHERE <column> = '<value>' | WHERE <column> LIKE '<pattern>']
        [ORDER BY <column> [ASC|DESC]]
        [LIMIT <n>]

against an in-memory :class:`~src.core.table.Table`. Keywords are matched
case-insensitively and every comparison with cell values ignores case.

The semantics are intentionally looser than SQL:

- ``=`` is a *fuzzy equals*: a row matches when the cell contains the value as
  a substring, which deviates from standard SQL.
- ``LIKE`` drops every ``%`` and performs the same substring test.
- Only the first operator of a WHERE clause is interpreted; ``AND``/``OR`` text
  is absorbed into the column or value token.
- Unknown projection columns resolve to the first column and unknown filter or
  sort columns disable that step, unless ``strict`` is requested.
- Text without ``select`` yields a one-row ``message`` result instead of an
  error.

Evaluation is a pure function of the query text and the table. Nothing here
mutates the table, so a single table can serve concurrent queries.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from functools import cmp_to_key
from pathlib import Path
from typing import Literal, Sequence

from src.core.table import ResultSet, Table
from src.integrations.csv_loader import parse_csv

LOGGER = logging.getLogger(__name__)

UNSUPPORTED_QUERY_MESSAGE = "Query type not supported. Please use SELECT statements."

_SELECT_RE = re.compile(r"select\s+(?P<columns>.*?)\s+from", flags=re.DOTALL)
_WHERE_RE = re.compile(
    r"where\s+(?P<clause>.+?)(?:\s+order\s+by|\s+limit|\Z)",
    flags=re.DOTALL,
)
_LIKE_RE = re.compile(
    r"(?P<column>\w+)\s+like\s+['\"](?P<pattern>.+)['\"]",
    flags=re.DOTALL,
)
_ORDER_RE = re.compile(
    r"order\s+by\s+"
    r"(?:cast\s*\(\s*(?P<cast_column>\w+)\s+as\s+\w+(?:\s*\([^)]*\))?\s*\)|(?P<column>\w+))"
    r"(?:\s+(?P<direction>asc|desc))?"
)
_LIMIT_RE = re.compile(r"limit\s+(?P<limit>\d+)")
_QUOTES_RE = re.compile(r"['\"]")
_NUMBER_PREFIX_RE = re.compile(r"\s*([+-]?(?:infinity|(?:\d+\.?\d*|\.\d+)(?:e[+-]?\d+)?))", re.IGNORECASE)


class ColumnResolutionError(ValueError):
    """Raised in strict mode when a column token matches no header."""


@dataclass(frozen=True, slots=True)
class Predicate:
    """Single WHERE comparison. ``value`` is already cleaned and lower-cased."""

    column: str
    operator: Literal["=", "like"]
    value: str


@dataclass(frozen=True, slots=True)
class UninterpretablePredicate:
    """WHERE clause that holds neither ``=`` nor a usable ``LIKE``; every row passes."""

    clause: str


@dataclass(frozen=True, slots=True)
class SortKey:
    column: str
    descending: bool = False


@dataclass(frozen=True, slots=True)
class ParsedQuery:
    """Decomposition of query text into projection, filter, sort and limit."""

    supported: bool = True
    projection: tuple[str, ...] | None = None
    predicate: Predicate | UninterpretablePredicate | None = None
    sort: SortKey | None = None
    limit: int | None = None

    @property
    def is_wildcard(self) -> bool:
        return self.projection is None


@dataclass(frozen=True, slots=True)
class Resolved:
    token: str
    index: int


@dataclass(frozen=True, slots=True)
class Fallback:
    """Token that matched no header; projections use ``index`` (the first column)."""

    token: str
    index: int = 0


ColumnResolution = Resolved | Fallback


@dataclass(frozen=True, slots=True)
class QueryPlan:
    """Column indices and resolution decisions for one query against one table."""

    columns: tuple[str, ...]
    column_indices: tuple[int, ...]
    projection: tuple[ColumnResolution, ...] = ()
    predicate: ColumnResolution | None = None
    sort: ColumnResolution | None = None


def parse_query(query_text: str) -> ParsedQuery:
    """Split *query_text* into its clauses without looking at any table."""

    normalized = (query_text or "").lower().strip()
    if "select" not in normalized:
        return ParsedQuery(supported=False)

    projection: tuple[str, ...] | None = None
    select_match = _SELECT_RE.search(normalized)
    if select_match and select_match.group("columns").strip() != "*":
        projection = tuple(token.strip() for token in select_match.group("columns").split(","))

    predicate: Predicate | UninterpretablePredicate | None = None
    where_match = _WHERE_RE.search(normalized)
    if where_match:
        predicate = _parse_predicate(where_match.group("clause"))

    sort: SortKey | None = None
    order_match = _ORDER_RE.search(normalized)
    if order_match:
        column = order_match.group("cast_column") or order_match.group("column")
        sort = SortKey(column=column, descending=order_match.group("direction") == "desc")

    limit: int | None = None
    limit_match = _LIMIT_RE.search(normalized)
    if limit_match:
        limit = int(limit_match.group("limit"))

    return ParsedQuery(projection=projection, predicate=predicate, sort=sort, limit=limit)


def _parse_predicate(clause: str) -> Predicate | UninterpretablePredicate:
    # first operator wins: "=" is checked before "like"
    if "=" in clause:
        column, _, value = clause.partition("=")
        cleaned = _QUOTES_RE.sub("", value.strip())
        return Predicate(column=column.strip(), operator="=", value=cleaned.lower())

    if "like" in clause:
        like_match = _LIKE_RE.search(clause)
        if like_match:
            pattern = like_match.group("pattern").replace("%", "")
            return Predicate(column=like_match.group("column"), operator="like", value=pattern.lower())

    return UninterpretablePredicate(clause=clause)


def resolve_column(token: str, headers: Sequence[str]) -> ColumnResolution:
    """Match *token* against *headers* ignoring case; the first match wins."""

    needle = token.lower()
    for index, header in enumerate(headers):
        if header.lower() == needle:
            return Resolved(token=token, index=index)
    return Fallback(token=token)


def plan_query(parsed: ParsedQuery, headers: Sequence[str], *, strict: bool = False) -> QueryPlan:
    """Resolve every column referenced by *parsed* against *headers*."""

    if parsed.projection is None:
        projection: tuple[ColumnResolution, ...] = tuple(
            Resolved(token=header, index=index) for index, header in enumerate(headers)
        )
    else:
        projection = tuple(resolve_column(token, headers) for token in parsed.projection)

    predicate_resolution: ColumnResolution | None = None
    if isinstance(parsed.predicate, Predicate):
        predicate_resolution = resolve_column(parsed.predicate.column, headers)

    sort_resolution: ColumnResolution | None = None
    if parsed.sort is not None:
        sort_resolution = resolve_column(parsed.sort.column, headers)

    misses = [
        resolution.token
        for resolution in (*projection, predicate_resolution, sort_resolution)
        if isinstance(resolution, Fallback)
    ]
    if misses:
        if strict:
            raise ColumnResolutionError(
                "Unknown column(s): " + ", ".join(repr(token) for token in misses)
            )
        LOGGER.debug("Unresolved column tokens fell back to defaults: %s", misses)

    indices = tuple(resolution.index for resolution in projection)
    return QueryPlan(
        columns=tuple(headers[index] for index in indices),
        column_indices=indices,
        projection=projection,
        predicate=predicate_resolution,
        sort=sort_resolution,
    )


def execute_query(query_text: str, table: Table, *, strict: bool = False) -> ResultSet:
    """Evaluate *query_text* against *table* and return a fresh :class:`ResultSet`."""

    started = time.perf_counter()
    parsed = parse_query(query_text)
    if not parsed.supported:
        return ResultSet(
            columns=["message"],
            rows=[[UNSUPPORTED_QUERY_MESSAGE]],
            execution_time=_elapsed_ms(started),
        )

    plan = plan_query(parsed, table.headers, strict=strict)
    rows: list[tuple[str, ...]] = list(table.rows)

    if isinstance(parsed.predicate, Predicate) and isinstance(plan.predicate, Resolved):
        column_index = plan.predicate.index
        needle = parsed.predicate.value.lower()
        rows = [row for row in rows if needle in _cell(row, column_index).lower()]

    if parsed.sort is not None and isinstance(plan.sort, Resolved):
        rows = _sort_rows(rows, plan.sort.index, descending=parsed.sort.descending)

    if parsed.limit is not None:
        rows = rows[: parsed.limit]

    projected = [[_cell(row, index) for index in plan.column_indices] for row in rows]
    return ResultSet(
        columns=list(plan.columns),
        rows=projected,
        execution_time=_elapsed_ms(started),
    )


def parse_number(value: str) -> float | None:
    """Parse the leading numeric prefix of *value*, or return ``None``."""

    match = _NUMBER_PREFIX_RE.match(value)
    if not match:
        return None
    return float(match.group(1))


def _sort_rows(rows: list[tuple[str, ...]], column_index: int, *, descending: bool) -> list[tuple[str, ...]]:
    sign = -1 if descending else 1

    def compare(left: tuple[str, ...], right: tuple[str, ...]) -> int:
        left_value = _cell(left, column_index)
        right_value = _cell(right, column_index)
        left_number = parse_number(left_value)
        right_number = parse_number(right_value)
        if left_number is not None and right_number is not None:
            return sign * ((left_number > right_number) - (left_number < right_number))
        return sign * ((left_value > right_value) - (left_value < right_value))

    return sorted(rows, key=cmp_to_key(compare))


def _cell(row: Sequence[str], index: int) -> str:
    if 0 <= index < len(row):
        return row[index] or ""
    return ""


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


@dataclass(slots=True)
class CsvSQLExecutor:
    """Execute query text against one loaded CSV table."""

    table: Table
    table_name: str = "dataset"
    strict: bool = False

    @classmethod
    def from_text(cls, raw_text: str, **kwargs) -> CsvSQLExecutor:
        return cls(table=parse_csv(raw_text), **kwargs)

    @classmethod
    def from_path(cls, path: str | Path, **kwargs) -> CsvSQLExecutor:
        csv_path = Path(path).expanduser()
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {csv_path}")
        return cls.from_text(csv_path.read_text(encoding="utf-8-sig"), **kwargs)

    def run(self, statement: str) -> ResultSet:
        return execute_query(statement, self.table, strict=self.strict)

    @property
    def columns(self) -> list[str]:
        """Return the original CSV column names."""

        return list(self.table.headers)
