"""Per-ticket JSONL event log for question-to-SQL runs.

Every ticket gets one file under the configured logs directory. Each line is a
:class:`QueryEvent` record such as::

    {"ticket_id": "api-1a2b3c4d", "event": "sql_executed",
     "timestamp": "2024-05-01T12:00:00.000Z", "statement": "SELECT ...", "row_count": 3}
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from src.core.logging_utils import resolve_log_path, utc_now_iso

QUERY_EVENTS = frozenset(
    {
        "question_received",
        "sql_generated",
        "generation_failed",
        "sql_executed",
        "question_resolved",
    }
)


class QueryObservationSink(Protocol):
    """Records lifecycle events emitted by the query agent."""

    def log_event(self, ticket_id: str, event: str, payload: dict[str, Any]) -> None:  # pragma: no cover - interface
        ...


@dataclass(frozen=True, slots=True)
class QueryEvent:
    ticket_id: str
    event: str
    payload: dict[str, Any]
    timestamp: str = field(default_factory=utc_now_iso)

    def as_record(self) -> dict[str, Any]:
        """Flatten into one JSON object; ``None`` payload values are dropped."""

        record: dict[str, Any] = {
            "ticket_id": self.ticket_id,
            "event": self.event,
            "timestamp": self.timestamp,
        }
        for key, value in self.payload.items():
            if value is not None and key not in record:
                record[key] = value
        return record


@dataclass(slots=True)
class JSONLQueryLogger(QueryObservationSink):
    """Appends query events to ``<base_dir>/<utc-slug>-<ticket>.jsonl``."""

    base_dir: Path
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock, repr=False)

    def log_event(self, ticket_id: str, event: str, payload: dict[str, Any]) -> None:  # type: ignore[override]
        record = QueryEvent(ticket_id=ticket_id, event=event, payload=payload)
        with self._lock:
            target = resolve_log_path(self.base_dir, ticket_id, timestamp=record.timestamp)
            with target.open("a", encoding="utf-8") as handle:
                json.dump(record.as_record(), handle, ensure_ascii=False, default=str)
                handle.write("\n")

    def events_for(self, ticket_id: str) -> list[dict[str, Any]]:
        """Read back every event logged for *ticket_id*, oldest first."""

        target = resolve_log_path(self.base_dir, ticket_id)
        if not target.exists():
            return []
        with target.open("r", encoding="utf-8") as handle:
            return [json.loads(line) for line in handle if line.strip()]
