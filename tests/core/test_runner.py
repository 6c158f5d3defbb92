"""Runner integration tests."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from src.core.config import CSVSourceSettings, EngineSettings, PathsSettings, Settings
from src.core.dependencies import AppDependencies, build_dependencies
from src.core.runner import Runner, YamlScenarioLoader, run_scenario
from src.integrations.csv_loader import parse_csv


@dataclass
class _ScenarioLoaderStub:
    scenarios: list[dict[str, Any]]

    def load(self, profile: str) -> list[dict[str, Any]]:  # type: ignore[override]
        return self.scenarios


@pytest.fixture()
def dependencies(tmp_path: Path) -> AppDependencies:
    settings = Settings(
        csv_source=CSVSourceSettings(table_name="survey_data"),
        paths=PathsSettings(query_logs_dir=str(tmp_path / "logs")),
    )
    table = parse_csv(
        "Industry_name_NZSIOC,Variable_name,Variable_category,Value\n"
        "Mining,Total income,Financial performance,5\n"
        "Forestry,Total income,Financial performance,10\n"
        "Mining,Employees,Employment,2\n"
    )
    return build_dependencies(settings, table=table)


def test_runner_executes_questions_and_sql(dependencies: AppDependencies) -> None:
    loader = _ScenarioLoaderStub(
        scenarios=[
            {"question": "Which industry is top by revenue?"},
            {"ticket_id": "direct", "sql": "SELECT Value FROM survey_data WHERE Variable_category = 'employment'"},
        ]
    )
    runner = Runner(scenario_loader=loader, dependencies=dependencies)

    results = runner.execute(profile="demo")

    assert results[0]["ticket_id"] == "demo-001"
    assert results[0]["status"] == "answered"
    assert results[0]["source"] == "rules"
    assert [row[1] for row in results[0]["result"]["rows"]] == ["10", "5"]
    assert results[1] == {
        "ticket_id": "direct",
        "status": "executed",
        "sql": "SELECT Value FROM survey_data WHERE Variable_category = 'employment'",
        "result": {
            "columns": ["Value"],
            "rows": [["2"]],
            "rowCount": 1,
            "executionTime": results[1]["result"]["executionTime"],
        },
    }


def test_runner_requires_dependencies() -> None:
    runner = Runner(scenario_loader=_ScenarioLoaderStub(scenarios=[]))

    with pytest.raises(ValueError):
        runner.execute(profile="demo")


def test_run_scenario_rejects_empty_scenario(dependencies: AppDependencies) -> None:
    with pytest.raises(ValueError, match="question"):
        run_scenario(dependencies, {"ticket_id": "empty"})


def test_runner_reports_strict_column_errors_and_continues(tmp_path: Path) -> None:
    settings = Settings(
        csv_source=CSVSourceSettings(table_name="survey_data"),
        engine=EngineSettings(strict_columns=True),
        paths=PathsSettings(query_logs_dir=str(tmp_path / "logs")),
    )
    strict_dependencies = build_dependencies(settings, table=parse_csv("Industry,Value\nMining,5\n"))
    loader = _ScenarioLoaderStub(
        scenarios=[
            {"sql": "SELECT missing_col FROM survey_data"},
            {"sql": "SELECT Value FROM survey_data LIMIT 1"},
        ]
    )

    results = Runner(scenario_loader=loader, dependencies=strict_dependencies).execute(profile="strict")

    assert results[0]["ticket_id"] == "strict-001"
    assert results[0]["status"] == "execution_failed"
    assert "missing_col" in results[0]["error"]
    assert "result" not in results[0]
    assert results[1]["status"] == "executed"
    assert results[1]["result"]["rows"] == [["5"]]


def test_yaml_loader_reads_profiles(tmp_path: Path) -> None:
    (tmp_path / "demo.yaml").write_text(
        "- question: Show all data\n- ticket_id: t-2\n  sql: SELECT * FROM survey_data\n",
        encoding="utf-8",
    )
    loader = YamlScenarioLoader(base_dir=tmp_path)

    assert loader.load("demo") == [
        {"question": "Show all data"},
        {"ticket_id": "t-2", "sql": "SELECT * FROM survey_data"},
    ]
    assert loader.load("missing") == []


def test_yaml_loader_rejects_non_list(tmp_path: Path) -> None:
    (tmp_path / "bad.yaml").write_text("question: nope\n", encoding="utf-8")

    with pytest.raises(ValueError):
        YamlScenarioLoader(base_dir=tmp_path).load("bad")


def test_shipped_demo_scenarios_run(dependencies: AppDependencies) -> None:
    scenarios_dir = Path(__file__).resolve().parents[2] / "assets" / "scenarios"
    runner = Runner(scenario_loader=YamlScenarioLoader(base_dir=scenarios_dir), dependencies=dependencies)

    results = runner.execute(profile="demo")

    assert len(results) == 5
    assert {result["status"] for result in results} <= {"answered", "executed"}
