"""Quote-aware CSV parser that builds an in-memory :class:`Table`.

The parser works on raw text that has already been fetched. It understands
double-quoted fields, embedded commas, ``""`` escapes and quoted cells that span
several physical lines:

    Year,Industry,Value
    2024,"Agriculture, forestry and fishing",42
    2024,"Multi-line
    industry name",7

Every field is trimmed once it has been assembled, which also removes
whitespace that sat inside the quotes at the edges of the field. Rows are padded
with empty strings or truncated so they match the header width.
"""

from __future__ import annotations

from typing import Iterator

from src.core.table import Table


class DataSourceError(RuntimeError):
    """Raised when CSV data cannot be obtained or parsed."""


class MalformedInputError(DataSourceError, ValueError):
    """Raised when raw CSV text has no structure to parse."""


def parse_csv(raw_text: str) -> Table:
    """Parse *raw_text* into a :class:`Table`.

    The first physical line is the header row. Blank lines between records are
    skipped. Raises :class:`MalformedInputError` when the text is empty.
    """

    if raw_text is None or not raw_text.strip():
        raise MalformedInputError("No data found in CSV")

    lines = raw_text.split("\n")
    headers = tuple(split_fields(lines[0]))
    width = len(headers)

    rows = tuple(_normalize_row(fields, width) for fields in _iter_records(lines, start=1))
    return Table(headers=headers, rows=rows)


def split_fields(line: str) -> list[str]:
    """Split one logical CSV line into trimmed field values."""

    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    index = 0
    length = len(line)

    while index < length:
        char = line[index]
        if char == '"':
            if in_quotes and index + 1 < length and line[index + 1] == '"':
                current.append('"')
                index += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        index += 1

    fields.append("".join(current).strip())
    return fields


def _iter_records(lines: list[str], *, start: int) -> Iterator[list[str]]:
    index = start
    total = len(lines)
    while index < total:
        if not lines[index].strip():
            index += 1
            continue

        logical = lines[index]
        quote_count = logical.count('"')
        # an odd quote count means a quoted cell continues on the next line
        while quote_count % 2 != 0 and index + 1 < total:
            index += 1
            logical += "\n" + lines[index]
            quote_count += lines[index].count('"')

        yield split_fields(logical)
        index += 1


def _normalize_row(fields: list[str], width: int) -> tuple[str, ...]:
    if len(fields) < width:
        fields = fields + [""] * (width - len(fields))
    return tuple(fields[:width])
