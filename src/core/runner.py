"""Command-line entry point for running batches of question scenarios."""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import yaml

from src.core.config import load_settings
from src.core.dependencies import AppDependencies, build_dependencies
from src.core.logging_utils import configure_logging
from src.integrations.csv_sql_executor import ColumnResolutionError
from src.integrations.remote_sql_executor import RemoteExecutionError


class ScenarioLoader(Protocol):
    """Provides scenarios for the runner to execute."""

    def load(self, profile: str) -> list[dict[str, Any]]:  # pragma: no cover - interface
        """Return scenario definitions for the requested profile."""


@dataclass(slots=True)
class YamlScenarioLoader(ScenarioLoader):
    """Loads scenarios from YAML files located under a base directory."""

    base_dir: Path

    def load(self, profile: str) -> list[dict[str, Any]]:
        target = self.base_dir / f"{profile}.yaml"
        if not target.exists():
            return []
        with target.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or []
        if not isinstance(payload, list):
            raise ValueError("Scenario file must contain a top-level list")
        scenarios: list[dict[str, Any]] = []
        for entry in payload:
            if not isinstance(entry, dict):
                raise ValueError("Scenario entries must be mappings")
            scenarios.append({str(key): value for key, value in entry.items()})
        return scenarios


@dataclass
class Runner:
    """Runs every scenario of a profile against shared dependencies."""

    scenario_loader: ScenarioLoader
    dependencies: AppDependencies | None = None

    def execute(self, profile: str) -> list[dict[str, Any]]:
        """Run all scenarios defined for the supplied profile."""

        if self.dependencies is None:
            raise ValueError("Runner dependencies must be provided")

        scenarios = self.scenario_loader.load(profile)
        results = []
        for position, scenario in enumerate(scenarios, start=1):
            scenario.setdefault("ticket_id", f"{profile}-{position:03d}")
            results.append(run_scenario(self.dependencies, scenario))
        return results


def run_scenario(dependencies: AppDependencies, scenario: dict[str, Any]) -> dict[str, Any]:
    """Execute a single scenario using the provided *dependencies*.

    A scenario carries either a ``question`` (generated into SQL first) or a
    literal ``sql`` statement, plus an optional ``ticket_id``.
    """

    ticket_id = str(scenario.get("ticket_id") or "scenario")
    agent = dependencies.build_agent()

    statement = scenario.get("sql")
    if statement:
        result: dict[str, Any] = {"ticket_id": ticket_id, "sql": str(statement)}
        try:
            result_set = agent.run_sql(ticket_id=ticket_id, statement=str(statement))
        except (ColumnResolutionError, RemoteExecutionError) as exc:
            result.update({"status": "execution_failed", "error": str(exc)})
            return result
        result.update({"status": "executed", "result": result_set.to_dict()})
        return result

    question = scenario.get("question")
    if not question:
        raise ValueError("Scenario must define either 'question' or 'sql'")
    return agent.answer_question(ticket_id=ticket_id, question=str(question))


def main() -> None:
    """CLI entry point for running question scenarios."""

    parser = argparse.ArgumentParser(description="Run question-to-SQL scenarios")
    parser.add_argument("--config", default="configs/dev.yaml", help="Path to the YAML config file")
    parser.add_argument("--profile", default="demo", help="Scenario profile to execute")
    parser.add_argument(
        "--scenarios",
        default="assets/scenarios",
        help="Directory containing scenario YAML files",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    configure_logging(debug=args.debug)
    settings = load_settings(args.config)
    dependencies = build_dependencies(settings)
    loader = YamlScenarioLoader(base_dir=Path(args.scenarios))
    runner = Runner(scenario_loader=loader, dependencies=dependencies)

    results = runner.execute(profile=args.profile)
    print(json.dumps(results, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
