"""FastAPI service exposing SQL generation and CSV query execution."""

from __future__ import annotations

import argparse
import logging
import threading
from typing import Any, Literal
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.agents.sql_generator import SQLGenerationError
from src.core.config import Settings, load_settings
from src.core.dependencies import AppDependencies, build_dependencies
from src.core.logging_utils import configure_logging
from src.core.table import Table
from src.integrations.csv_dataset import describe_schema
from src.integrations.csv_loader import DataSourceError
from src.integrations.csv_sql_executor import ColumnResolutionError


LOGGER = logging.getLogger(__name__)


class DatasetService:
    """Loads the CSV table once and caches the derived dependencies."""

    def __init__(self, settings: Settings, table: Table | None = None) -> None:
        self._settings = settings
        self._table = table
        self._dependencies: AppDependencies | None = None
        self._lock = threading.Lock()
        self.table_name = settings.csv_source.table_name

    @property
    def dependencies(self) -> AppDependencies:
        with self._lock:
            if self._dependencies is None:
                LOGGER.info("Loading CSV data source for table '%s'", self.table_name)
                self._dependencies = build_dependencies(self._settings, table=self._table)
                LOGGER.info(
                    "Loaded %s rows with %s columns",
                    self._dependencies.table.row_count,
                    self._dependencies.table.width,
                )
            return self._dependencies

    @property
    def table(self) -> Table:
        return self.dependencies.table

    def list_columns(self) -> list[str]:
        return list(self.table.headers)

    def row_count(self) -> int:
        return self.table.row_count

    def fetch_rows(self, *, offset: int, limit: int) -> list[dict[str, Any]]:
        return self.table.as_records(offset=offset, limit=limit)


class GenerateSQLRequest(BaseModel):
    question: str = Field(..., min_length=1)


class GenerateSQLResponse(BaseModel):
    sql: str
    source: Literal["llm", "rules"]


class ExecuteSQLRequest(BaseModel):
    query: str = Field(..., min_length=1)


class ExecuteSQLResponse(BaseModel):
    columns: list[str]
    rows: list[list[str]]
    rowCount: int
    executionTime: float


class AskQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1)


class AskQuestionResponse(BaseModel):
    ticket_id: str
    status: str
    question: str
    sql: str | None = None
    source: str | None = None
    error: str | None = None
    result: ExecuteSQLResponse | None = None


class DatasetColumnsResponse(BaseModel):
    columns: list[str]
    table_name: str


class DatasetRowsResponse(BaseModel):
    columns: list[str]
    rows: list[dict[str, Any]]
    total: int
    offset: int
    limit: int
    has_more: bool


class DatasetSchemaResponse(BaseModel):
    table_name: str
    description: str


def create_app(
    config_path: str = "configs/dev.yaml",
    *,
    settings: Settings | None = None,
    table: Table | None = None,
) -> FastAPI:
    LOGGER.info("Initialising web application with config '%s'", config_path)
    if settings is None:
        settings = load_settings(config_path)
    dataset_service = DatasetService(settings, table=table)

    app = FastAPI(title="CSV Question-to-SQL Service", version="0.1.0")
    app.state.settings = settings
    app.state.dataset_service = dataset_service

    def _dependencies() -> AppDependencies:
        try:
            return dataset_service.dependencies
        except (DataSourceError, OSError) as exc:
            LOGGER.exception("CSV data source unavailable")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    @app.get("/api/health")
    def healthcheck() -> dict[str, str]:  # pragma: no cover - trivial
        return {"status": "ok"}

    @app.get("/api/dataset/columns", response_model=DatasetColumnsResponse)
    def dataset_columns() -> DatasetColumnsResponse:
        LOGGER.debug("Dataset columns requested")
        _dependencies()
        return DatasetColumnsResponse(
            columns=dataset_service.list_columns(),
            table_name=dataset_service.table_name,
        )

    @app.get("/api/dataset/rows", response_model=DatasetRowsResponse)
    def dataset_rows(
        offset: int = Query(0, ge=0),
        limit: int = Query(25, ge=1, le=100),
    ) -> DatasetRowsResponse:
        LOGGER.debug("Dataset rows requested offset=%s limit=%s", offset, limit)
        _dependencies()
        total = dataset_service.row_count()
        if offset >= total:
            rows: list[dict[str, Any]] = []
        else:
            rows = dataset_service.fetch_rows(offset=offset, limit=limit)
        has_more = offset + len(rows) < total
        return DatasetRowsResponse(
            columns=dataset_service.list_columns(),
            rows=rows,
            total=total,
            offset=offset,
            limit=limit,
            has_more=has_more,
        )

    @app.get("/api/dataset/schema", response_model=DatasetSchemaResponse)
    def dataset_schema() -> DatasetSchemaResponse:
        deps = _dependencies()
        return DatasetSchemaResponse(
            table_name=deps.table_name,
            description=describe_schema(deps.table, table_name=deps.table_name),
        )

    @app.post("/api/sql/generate", response_model=GenerateSQLResponse)
    def generate_sql(payload: GenerateSQLRequest) -> GenerateSQLResponse:
        LOGGER.info("SQL generation requested question=%s", _truncate_for_log(payload.question))
        deps = _dependencies()
        try:
            generated = deps.sql_generator.generate(payload.question)
        except SQLGenerationError as exc:
            LOGGER.warning("SQL generation failed: %s", exc)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        LOGGER.info("SQL generated via %s: %s", generated.source, _truncate_for_log(generated.statement))
        return GenerateSQLResponse(sql=generated.statement, source=generated.source)

    @app.post("/api/sql/execute", response_model=ExecuteSQLResponse)
    def execute_sql(payload: ExecuteSQLRequest) -> ExecuteSQLResponse:
        LOGGER.info("SQL execution requested query=%s", _truncate_for_log(payload.query))
        deps = _dependencies()
        try:
            # always the local engine so a remote_url pointing here cannot loop
            result_set = deps.local_executor.run(payload.query)
        except ColumnResolutionError as exc:
            LOGGER.warning("SQL execution rejected: %s", exc)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        LOGGER.info(
            "SQL executed rows=%s time_ms=%.3f",
            result_set.row_count,
            result_set.execution_time,
        )
        return ExecuteSQLResponse(**result_set.to_dict())

    @app.post("/api/ask", response_model=AskQuestionResponse)
    def ask_question(payload: AskQuestionRequest) -> AskQuestionResponse:
        ticket_id = f"api-{uuid4().hex[:8]}"
        LOGGER.info(
            "Received question ticket=%s question=%s",
            ticket_id,
            _truncate_for_log(payload.question),
        )
        agent = _dependencies().build_agent()
        result = agent.answer_question(ticket_id=ticket_id, question=payload.question)
        LOGGER.info("Ticket %s completed with status=%s", ticket_id, result.get("status"))
        return AskQuestionResponse(**result)

    return app


def _truncate_for_log(value: str, limit: int = 200) -> str:
    text = value.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def main() -> None:
    parser = argparse.ArgumentParser(description="Launch the question-to-SQL web service")
    parser.add_argument("--config", default="configs/dev.yaml", help="Path to configuration file")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind the server")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind the server")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    configure_logging(debug=args.debug)
    app = create_app(config_path=args.config)

    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise SystemExit("uvicorn must be installed to run the web service") from exc

    LOGGER.info("Starting uvicorn on %s:%s", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
