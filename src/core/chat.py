"""Interactive chat interface for asking questions about the CSV dataset."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence
from uuid import uuid4

from src.agents.query_agent import QueryAgent
from src.core.config import load_settings
from src.core.dependencies import AppDependencies, build_dependencies
from src.core.logging_utils import configure_logging
from src.core.observability import QueryObservationSink

_exit_commands = {"/exit", "exit", "quit", ":q"}
_MAX_CELL_WIDTH = 40


@dataclass
class ChatCLI:
    """Simple terminal chat experience built on top of the query agent."""

    dependencies: AppDependencies
    input_func: Callable[[str], str] = field(default=input)
    output_func: Callable[[str], None] = field(default=print)
    session_id_factory: Callable[[], str] = field(default=lambda: f"session-{uuid4().hex[:8]}")
    max_display_rows: int = 20
    _agent: QueryAgent | None = field(default=None, init=False)

    def start(self) -> None:
        """Launch an interactive chat session."""

        session_id = self.session_id_factory()
        agent = self._build_agent()

        self.output_func(
            f"Ask questions about '{self.dependencies.table_name}'"
            f" ({self.dependencies.table.row_count} rows). Use '/sql <statement>' to run SQL"
            " directly, '/columns' to list columns and '/exit' to leave."
        )

        counter = 1
        while True:
            try:
                raw = self.input_func("sql-bot> ")
            except EOFError:
                self.output_func("\nSession ended.")
                break

            text = raw.strip()
            if not text:
                continue
            if text.lower() in _exit_commands:
                self.output_func("Session ended.")
                break
            if text == "/columns":
                self.output_func("Columns: " + ", ".join(self.dependencies.table.headers))
                continue

            ticket_id = f"{session_id}-Q{counter:03d}"
            counter += 1
            if text.startswith("/sql"):
                self._handle_sql_command(agent, ticket_id, text)
                continue

            result = agent.answer_question(ticket_id=ticket_id, question=text)
            self._render_response(ticket_id, result)

    def _build_agent(self) -> QueryAgent:
        if self._agent is None:
            logger = ChatQueryLogger(downstream=self.dependencies.query_logger, emit=self.output_func)
            self._agent = self.dependencies.build_agent(logger=logger)
        return self._agent

    def _handle_sql_command(self, agent: QueryAgent, ticket_id: str, command: str) -> None:
        parts = command.split(maxsplit=1)
        if len(parts) != 2 or not parts[1].strip():
            self.output_func("Usage: /sql <statement>")
            return
        try:
            result_set = agent.run_sql(ticket_id=ticket_id, statement=parts[1].strip())
        except ValueError as exc:
            self.output_func(f"Error: {exc}")
            return
        self._render_response(
            ticket_id,
            {"status": "executed", "sql": parts[1].strip(), "result": result_set.to_dict()},
        )

    def _render_response(self, ticket_id: str, result: dict[str, Any]) -> None:
        status = str(result.get("status", "unknown"))
        self.output_func(f"[{ticket_id}] status: {status}")

        sql = result.get("sql")
        if sql:
            source = result.get("source")
            suffix = f" (via {source})" if source else ""
            self.output_func(f"SQL{suffix}: {sql}")

        error = result.get("error")
        if error:
            self.output_func(f"Error: {error}")

        payload = result.get("result")
        if isinstance(payload, dict):
            for line in render_table(
                payload.get("columns") or [],
                payload.get("rows") or [],
                max_rows=self.max_display_rows,
            ):
                self.output_func(line)
            self.output_func(
                f"{payload.get('rowCount', 0)} row(s) in {float(payload.get('executionTime') or 0.0):.2f} ms"
            )

        self.output_func("")


def render_table(columns: Sequence[str], rows: Sequence[Sequence[Any]], *, max_rows: int = 20) -> list[str]:
    """Format rows as an aligned plain-text table."""

    shown = [[_clip(cell) for cell in row] for row in rows[:max_rows]]
    headers = [_clip(column) for column in columns]
    widths = [len(header) for header in headers]
    for row in shown:
        for position, cell in enumerate(row[: len(widths)]):
            widths[position] = max(widths[position], len(cell))

    def _line(cells: Sequence[str]) -> str:
        padded = [cell.ljust(widths[position]) for position, cell in enumerate(cells[: len(widths)])]
        return " | ".join(padded).rstrip()

    lines = [_line(headers), "-+-".join("-" * width for width in widths)]
    lines.extend(_line(row) for row in shown)
    hidden = len(rows) - len(shown)
    if hidden > 0:
        lines.append(f"... {hidden} more row(s)")
    return lines


def _clip(value: Any) -> str:
    text = "" if value is None else str(value).replace("\n", " ")
    if len(text) <= _MAX_CELL_WIDTH:
        return text
    return text[: _MAX_CELL_WIDTH - 3] + "..."


@dataclass(slots=True)
class ChatQueryLogger(QueryObservationSink):
    downstream: QueryObservationSink | None
    emit: Callable[[str], None]

    def log_event(self, ticket_id: str, event: str, payload: dict[str, Any]) -> None:  # type: ignore[override]
        if self.downstream is not None:
            self.downstream.log_event(ticket_id, event, payload)
        message = describe_query_event(event, payload)
        if message:
            self.emit(f"  ↳ {message}")


def describe_query_event(event: str, payload: dict[str, Any]) -> str:
    if event == "question_received":
        question = payload.get("question")
        return f"Received question: {question}" if question else "Received question."
    if event == "sql_generated":
        source = payload.get("source")
        if source == "llm":
            return "Language model generated the SQL."
        return "Generated SQL with keyword rules."
    if event == "generation_failed":
        return f"Could not generate SQL: {payload.get('error', 'unknown error')}"
    if event == "sql_executed":
        count = payload.get("row_count", 0)
        return f"Query returned {count} row(s)."
    if event == "question_resolved":
        status = payload.get("status")
        return f"Completed question with status '{status}'."
    return f"Query event: {event}"


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat-based interface for querying the CSV dataset")
    parser.add_argument("--config", default="configs/dev.yaml", help="Path to the YAML config file")
    parser.add_argument("--max-rows", type=int, default=20, help="Rows to display per result")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    configure_logging(debug=args.debug)
    settings = load_settings(args.config)
    dependencies = build_dependencies(settings)

    cli = ChatCLI(dependencies=dependencies, max_display_rows=args.max_rows)
    cli.start()


if __name__ == "__main__":
    main()
