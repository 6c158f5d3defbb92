"""Shared helpers for timestamped JSONL logging."""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from datetime import UTC, datetime
from pathlib import Path

# least recently used tickets are evicted first
FILENAME_CACHE_SIZE = 1024
_FILENAME_CACHE: OrderedDict[tuple[str, str], Path] = OrderedDict()


def make_timestamp_slug(raw: str | None = None) -> str:
    """Return a sortable timestamp slug (UTC) suitable for filenames."""

    candidate = (raw or "").strip()
    parsed = None
    if candidate:
        sanitized = candidate[:-1] if candidate.endswith("Z") else candidate
        try:
            parsed = datetime.fromisoformat(sanitized)
        except ValueError:
            parsed = None

    if parsed is None:
        parsed = datetime.now(UTC)

    return parsed.strftime("%Y%m%dT%H%M%S%f")[:-3]


def sanitize_ticket_id(ticket_id: str) -> str:
    """Sanitize *ticket_id* so it can be embedded in filenames."""

    cleaned = re.sub(r"[^A-Za-z0-9_-]+", "-", ticket_id.strip())
    return cleaned or "query"


def resolve_log_path(base_dir: Path, ticket_id: str, timestamp: str | None = None) -> Path:
    """Return a cached, timestamp-prefixed path for the given query ticket."""

    normalized_base = str(base_dir.expanduser().resolve())
    key = (normalized_base, ticket_id)
    cached = _FILENAME_CACHE.get(key)
    if cached is not None:
        _FILENAME_CACHE.move_to_end(key)
        return cached

    slug = make_timestamp_slug(timestamp)
    filename = f"{slug}-{sanitize_ticket_id(ticket_id)}.jsonl"
    target = Path(normalized_base) / filename
    target.parent.mkdir(parents=True, exist_ok=True)
    _FILENAME_CACHE[key] = target
    while len(_FILENAME_CACHE) > FILENAME_CACHE_SIZE:
        _FILENAME_CACHE.popitem(last=False)
    return target


def utc_now_iso() -> str:
    """Return the current UTC time in ISO-8601 with millisecond precision."""

    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def configure_logging(debug: bool = False) -> None:
    """Install a root handler unless the host application already has one."""

    root_logger = logging.getLogger()
    if root_logger.handlers:
        if debug:
            root_logger.setLevel(logging.DEBUG)
        return
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
