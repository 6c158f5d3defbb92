"""HTTP client for a remote execute endpoint with a local fallback.

The remote service speaks the same wire shape as ``POST /api/sql/execute`` in
:mod:`src.core.webapp`: the request body is ``{"query": "<sql>"}`` and the
response is ``{"columns", "rows", "rowCount", "executionTime"}`` or
``{"error": "<message>"}``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from src.core.table import ResultSet

if TYPE_CHECKING:
    from src.agents.query_agent import SQLExecutor

LOGGER = logging.getLogger(__name__)

EXECUTE_PATH = "/api/sql/execute"


class RemoteExecutionError(RuntimeError):
    """Raised when the remote execute endpoint cannot answer a query."""


@dataclass(slots=True)
class HttpSQLExecutor:
    """Posts statements to a remote execute endpoint."""

    base_url: str
    timeout_s: float = 10.0
    client: httpx.Client | None = None

    @property
    def endpoint(self) -> str:
        return self.base_url.rstrip("/") + EXECUTE_PATH

    def run(self, statement: str) -> ResultSet:
        try:
            if self.client is not None:
                response = self.client.post(self.endpoint, json={"query": statement}, timeout=self.timeout_s)
            else:
                with httpx.Client(timeout=self.timeout_s) as client:
                    response = client.post(self.endpoint, json={"query": statement})
        except httpx.HTTPError as exc:
            raise RemoteExecutionError(f"Remote execution failed: {exc}") from exc

        payload = _decode(response)
        if not response.is_success or "error" in payload:
            message = payload.get("error") or payload.get("detail") or response.reason_phrase
            raise RemoteExecutionError(f"Remote execution failed ({response.status_code}): {message}")
        if not isinstance(payload.get("columns"), list):
            raise RemoteExecutionError(
                f"Remote execution returned an unreadable result ({response.status_code})"
            )
        return ResultSet.from_dict(payload)


def _decode(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@dataclass(slots=True)
class FallbackSQLExecutor:
    """Tries the primary executor, then the fallback exactly once."""

    primary: SQLExecutor
    fallback: SQLExecutor

    def run(self, statement: str) -> ResultSet:
        try:
            return self.primary.run(statement)
        except RemoteExecutionError as exc:
            LOGGER.warning("Primary SQL executor failed (%s); using fallback", exc)
            return self.fallback.run(statement)
