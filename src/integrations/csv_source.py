"""Fetch raw CSV text from files or URLs and build tables with one fallback."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from src.core.table import Table
from src.integrations.csv_loader import DataSourceError, parse_csv

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0


def is_url(location: str) -> bool:
    return location.lower().startswith(("http://", "https://"))


def read_csv_text(
    location: str | Path,
    *,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    client: httpx.Client | None = None,
) -> str:
    """Return the CSV text stored at *location* (file path or http(s) URL)."""

    target = str(location)
    if is_url(target):
        return _download(target, timeout_s=timeout_s, client=client)

    path = Path(target).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")
    # utf-8-sig drops the byte-order mark spreadsheet exports like to add
    return path.read_text(encoding="utf-8-sig")


def _download(url: str, *, timeout_s: float, client: httpx.Client | None) -> str:
    if client is not None:
        response = client.get(url, timeout=timeout_s)
    else:
        with httpx.Client(timeout=timeout_s, follow_redirects=True) as owned:
            response = owned.get(url)
    response.raise_for_status()
    return response.text


def load_table(
    primary: str | Path,
    fallback: str | Path | None = None,
    *,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    client: httpx.Client | None = None,
) -> Table:
    """Load a table from *primary*, trying *fallback* once if that fails."""

    try:
        return parse_csv(read_csv_text(primary, timeout_s=timeout_s, client=client))
    except (DataSourceError, OSError, httpx.HTTPError) as exc:
        if fallback is None:
            raise DataSourceError(f"Could not read CSV file '{primary}': {exc}") from exc
        LOGGER.warning("Primary CSV source '%s' failed (%s); trying fallback '%s'", primary, exc, fallback)

    try:
        return parse_csv(read_csv_text(fallback, timeout_s=timeout_s, client=client))
    except (DataSourceError, OSError, httpx.HTTPError) as exc:
        raise DataSourceError(
            f"Could not read CSV file '{primary}' or fallback '{fallback}': {exc}"
        ) from exc
