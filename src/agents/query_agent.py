"""Entry point for answering English questions with SQL over a CSV table.

This module exposes the `QueryAgent`, responsible for:
- Turning the question into SQL through a generator (LLM or keyword rules).
- Running the statement through a SQL executor (local engine or remote service).
- Returning a structured payload with the SQL, its origin and the result set.

Each stage reports to an optional observation sink so the chat CLI and the JSONL
logs can narrate what happened.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from src.agents.sql_generator import SQLGenerationError, SQLGenerator
from src.core.observability import QueryObservationSink
from src.core.table import ResultSet
from src.integrations.csv_sql_executor import ColumnResolutionError, parse_query
from src.integrations.remote_sql_executor import RemoteExecutionError


class SQLExecutor(Protocol):
    """Abstracts a SQL execution engine (local CSV engine or remote service)."""

    def run(self, statement: str) -> ResultSet:  # pragma: no cover - interface
        """Execute a SQL statement and return a result set."""


@dataclass
class QueryAgent:
    """Coordinates SQL generation and execution for a single user question."""

    sql_generator: SQLGenerator
    sql_executor: SQLExecutor
    logger: QueryObservationSink | None = None

    def answer_question(self, *, ticket_id: str, question: str) -> dict[str, Any]:
        """Return a structured answer for the provided question."""

        self._log_event(ticket_id, "question_received", {"question": question})

        try:
            generated = self.sql_generator.generate(question)
        except SQLGenerationError as exc:
            self._log_event(ticket_id, "generation_failed", {"error": str(exc)})
            return self._resolve(
                ticket_id,
                {
                    "ticket_id": ticket_id,
                    "question": question,
                    "status": "generation_failed",
                    "error": str(exc),
                },
            )

        self._log_event(
            ticket_id,
            "sql_generated",
            {"statement": generated.statement, "source": generated.source},
        )

        result = {
            "ticket_id": ticket_id,
            "question": question,
            "sql": generated.statement,
            "source": generated.source,
        }
        try:
            result_set = self.run_sql(ticket_id=ticket_id, statement=generated.statement)
        except (ColumnResolutionError, RemoteExecutionError) as exc:
            result.update({"status": "execution_failed", "error": str(exc)})
            return self._resolve(ticket_id, result)

        result["status"] = "answered" if parse_query(generated.statement).supported else "unsupported_query"
        result["result"] = result_set.to_dict()
        return self._resolve(ticket_id, result)

    def run_sql(self, *, ticket_id: str, statement: str) -> ResultSet:
        """Execute *statement* directly, bypassing generation."""

        result_set = self.sql_executor.run(statement)
        self._log_event(
            ticket_id,
            "sql_executed",
            {
                "statement": statement,
                "row_count": result_set.row_count,
                "execution_time_ms": round(result_set.execution_time, 3),
            },
        )
        return result_set

    def _resolve(self, ticket_id: str, result: dict[str, Any]) -> dict[str, Any]:
        self._log_event(ticket_id, "question_resolved", {"status": result.get("status")})
        return result

    def _log_event(self, ticket_id: str, event: str, payload: dict[str, Any]) -> None:
        if self.logger is None:
            return
        self.logger.log_event(ticket_id, event, payload)
