"""Persistence of aggregated telemetry to timestamped JSON files."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()

FILE_PREFIX = "telemetry"


def result_filename(now: datetime) -> str:
    """Filesystem-safe name derived from an ISO timestamp (no colons)."""
    stamp = now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return f"{FILE_PREFIX}_{stamp.replace(':', '-')}.json"


def _unique_path(directory: Path, filename: str) -> Path:
    path = directory / filename
    counter = 1
    while path.exists():
        path = directory / f"{Path(filename).stem}_{counter}.json"
        counter += 1
    return path


def save_results(
    records: list[Any],
    metadata: dict[str, Any],
    output_dir: str | Path = ".",
    *,
    now: datetime | None = None,
) -> Path:
    """Write ``{metadata, data}`` to a new JSON file and return its path."""
    directory = Path(output_dir).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = _unique_path(directory, result_filename(now or datetime.now(UTC)))

    document = {"metadata": metadata, "data": records}
    path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Telemetry saved", path=str(path), records=len(records))
    return path

