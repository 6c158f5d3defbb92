"""Utilities for loading application settings from YAML configuration files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass(slots=True)
class CSVSourceSettings:
    path_env: str | None = None
    path: str | None = None
    fallback_path: str | None = None
    table_name: str = "survey_data"
    timeout_s: float = 30.0

    def resolve_path(self) -> str:
        """Return the primary location; the environment variable wins over ``path``."""

        if self.path_env:
            value = os.getenv(self.path_env)
            if value:
                return str(Path(value).expanduser()) if not _is_url(value) else value
        if self.path:
            return self.path
        raise OSError(
            f"Environment variable '{self.path_env}' or data_sources.csv.path is required for CSV data source"
        )


@dataclass(slots=True)
class LLMSettings:
    provider: str = "openai"
    model_id: str = ""
    api_key_env: str = "OPENAI_API_KEY"
    max_output_tokens: int | None = 150
    default_limit: int = 100
    timeout_s: float | None = None

    @property
    def enabled(self) -> bool:
        return self.provider == "openai" and bool(self.model_id)


@dataclass(slots=True)
class EngineSettings:
    strict_columns: bool = False


@dataclass(slots=True)
class ExecutionSettings:
    remote_url: str | None = None
    timeout_s: float = 10.0


@dataclass(slots=True)
class PathsSettings:
    query_logs_dir: str | None = None


@dataclass(slots=True)
class Settings:
    csv_source: CSVSourceSettings
    llm: LLMSettings | None = None
    engine: EngineSettings = field(default_factory=EngineSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    paths: PathsSettings | None = None


def _is_url(value: str) -> bool:
    return value.lower().startswith(("http://", "https://"))


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _optional_str(value: Any) -> str | None:
    return str(value) if value else None


def load_settings(path: str | Path) -> Settings:
    """Read configuration from *path* and return structured settings."""

    config_path = Path(path)
    raw = _load_yaml(config_path)

    data_sources = raw.get("data_sources") or {}
    csv_raw = data_sources.get("csv") or {}
    csv_source = CSVSourceSettings(
        path_env=_optional_str(csv_raw.get("path_env")),
        path=_optional_str(csv_raw.get("path")),
        fallback_path=_optional_str(csv_raw.get("fallback_path")),
        table_name=str(csv_raw.get("table_name", "survey_data")),
        timeout_s=float(csv_raw.get("timeout_s", 30.0)),
    )

    llm_raw = raw.get("llm")
    llm = None
    if llm_raw:
        max_tokens = llm_raw.get("max_output_tokens", 150)
        timeout = llm_raw.get("timeout_s")
        llm = LLMSettings(
            provider=str(llm_raw.get("provider", "openai")).lower(),
            model_id=str(llm_raw.get("model_id", "")),
            api_key_env=str(llm_raw.get("api_key_env", "OPENAI_API_KEY")),
            max_output_tokens=int(max_tokens) if max_tokens is not None else None,
            default_limit=int(llm_raw.get("default_limit", 100)),
            timeout_s=float(timeout) if timeout is not None else None,
        )

    engine_raw = raw.get("engine") or {}
    engine = EngineSettings(strict_columns=bool(engine_raw.get("strict_columns", False)))

    execution_raw = raw.get("execution") or {}
    execution = ExecutionSettings(
        remote_url=_optional_str(execution_raw.get("remote_url")),
        timeout_s=float(execution_raw.get("timeout_s", 10.0)),
    )

    paths_raw: dict[str, Any] | None = raw.get("paths")
    paths = None
    if paths_raw:
        paths = PathsSettings(query_logs_dir=_optional_str(paths_raw.get("query_logs_dir")))

    return Settings(
        csv_source=csv_source,
        llm=llm,
        engine=engine,
        execution=execution,
        paths=paths,
    )
