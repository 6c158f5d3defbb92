"""Factory helpers for constructing workflow dependencies from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from src.agents.query_agent import QueryAgent, SQLExecutor
from src.agents.sql_generator import (
    FallbackSQLGenerator,
    LLMSQLGenerator,
    RuleBasedSQLGenerator,
    SQLGenerator,
)
from src.core.config import Settings
from src.core.observability import JSONLQueryLogger, QueryObservationSink
from src.core.table import Table
from src.integrations.csv_dataset import describe_schema
from src.integrations.csv_source import load_table
from src.integrations.csv_sql_executor import CsvSQLExecutor
from src.integrations.openai_models import GPTResponseClient, OpenAIClientFactory, OpenAIError
from src.integrations.remote_sql_executor import FallbackSQLExecutor, HttpSQLExecutor

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppDependencies:
    """Collection of collaborators shared by the CLI, runner and web service."""

    table: Table
    table_name: str
    local_executor: CsvSQLExecutor
    sql_executor: SQLExecutor
    sql_generator: SQLGenerator
    query_logger: QueryObservationSink | None = None

    def build_agent(self, logger: QueryObservationSink | None = None) -> QueryAgent:
        return QueryAgent(
            sql_generator=self.sql_generator,
            sql_executor=self.sql_executor,
            logger=logger if logger is not None else self.query_logger,
        )


def build_dependencies(settings: Settings, *, table: Table | None = None) -> AppDependencies:
    """Create dependency instances based on *settings*.

    *table* skips loading from the configured CSV source, which keeps tests and
    long-running services from re-reading the file.
    """

    csv_settings = settings.csv_source
    if table is None:
        table = load_table(
            csv_settings.resolve_path(),
            csv_settings.fallback_path,
            timeout_s=csv_settings.timeout_s,
        )

    local_executor = CsvSQLExecutor(
        table=table,
        table_name=csv_settings.table_name,
        strict=settings.engine.strict_columns,
    )
    sql_executor: SQLExecutor = local_executor
    if settings.execution.remote_url:
        sql_executor = FallbackSQLExecutor(
            primary=HttpSQLExecutor(
                base_url=settings.execution.remote_url,
                timeout_s=settings.execution.timeout_s,
            ),
            fallback=local_executor,
        )

    return AppDependencies(
        table=table,
        table_name=csv_settings.table_name,
        local_executor=local_executor,
        sql_executor=sql_executor,
        sql_generator=_build_sql_generator(settings, table),
        query_logger=JSONLQueryLogger(base_dir=_resolve_query_logs_dir(settings)),
    )


def _build_sql_generator(settings: Settings, table: Table) -> SQLGenerator:
    table_name = settings.csv_source.table_name
    rules = RuleBasedSQLGenerator(table_name=table_name)
    response_client = _build_response_client(settings)
    if response_client is None:
        return FallbackSQLGenerator(fallback=rules)

    llm_settings = settings.llm
    assert llm_settings is not None  # guarded by _build_response_client
    llm = LLMSQLGenerator(
        client=response_client,
        schema_description=describe_schema(table, table_name=table_name),
        default_limit=llm_settings.default_limit,
        max_output_tokens=llm_settings.max_output_tokens,
    )
    return FallbackSQLGenerator(primary=llm, fallback=rules)


def _build_response_client(settings: Settings) -> GPTResponseClient | None:
    llm_settings = settings.llm
    if llm_settings is None or not llm_settings.enabled:
        return None
    factory = OpenAIClientFactory(api_key_env=llm_settings.api_key_env, timeout_s=llm_settings.timeout_s)
    client = GPTResponseClient(model=llm_settings.model_id, client_factory=factory)
    try:
        # trigger lazy init to validate configuration early
        client.client
    except OpenAIError as exc:
        LOGGER.warning("LLM SQL generation disabled: %s", exc)
        return None
    return client


def _resolve_query_logs_dir(settings: Settings) -> Path:
    base = (
        settings.paths.query_logs_dir
        if settings.paths and settings.paths.query_logs_dir
        else "logs/query"
    )
    path = Path(base).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return path
