"""Telemetry aggregation run orchestration."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import structlog

from energygrid.api.fetch import BatchResult, TelemetryFetcher, describe_range
from energygrid.batching import chunk, generate_device_ids
from energygrid.config import Settings, load_settings
from energygrid.shutdown import ShutdownFlag
from energygrid.storage.results import save_results

logger = structlog.get_logger()


class BatchFetcher(Protocol):
    def fetch_batch(self, batch: Sequence[str]) -> BatchResult: ...


@dataclass
class RunResult:
    """Aggregated records plus run statistics."""

    records: list[Any] = field(default_factory=list)
    total_devices: int = 0
    total_batches: int = 0
    succeeded: int = 0
    failed: int = 0
    duration_seconds: float = 0.0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    interrupted: bool = False
    saved_path: Path | None = None
    failed_ranges: list[str] = field(default_factory=list)

    @property
    def processed_batches(self) -> int:
        return self.succeeded + self.failed

    @property
    def success_rate(self) -> float:
        """Percentage of processed batches that succeeded."""
        if not self.processed_batches:
            return 0.0
        return round(self.succeeded / self.processed_batches * 100, 2)

    def metadata(self) -> dict[str, Any]:
        return {
            "timestamp": self.started_at.isoformat(),
            "totalRecords": len(self.records),
            "duration": round(self.duration_seconds, 2),
            "successRate": self.success_rate,
            "totalDevices": self.total_devices,
            "failedBatches": self.failed,
        }


def run_aggregation(
    *,
    persist: bool = False,
    settings: Settings | None = None,
    fetcher: BatchFetcher | None = None,
    sleep_fn: Callable[[float], None] | None = None,
    shutdown: ShutdownFlag | None = None,
    monotonic_fn: Callable[[], float] = time.monotonic,
) -> RunResult:
    """Fetch telemetry for every device, one rate-limited batch at a time.

    Args:
        persist: If True, save collected records to a JSON file.
        settings: Loaded settings (read from the environment when omitted).
        fetcher: Batch fetcher; a TelemetryFetcher is created when omitted.
        sleep_fn: Used for inter-batch pacing and, for the default fetcher,
            retry backoff. Defaults to an interruptible sleep.
        shutdown: Checked before each batch; a set flag ends the run early.

    Returns:
        RunResult with records in dispatch order and batch counters.
    """
    settings = settings or load_settings()
    shutdown = shutdown or ShutdownFlag()
    sleep_fn = sleep_fn or shutdown.sleep

    owned_fetcher: TelemetryFetcher | None = None
    if fetcher is None:
        owned_fetcher = TelemetryFetcher(settings, sleep_fn=sleep_fn, shutdown=shutdown)
        fetcher = owned_fetcher

    try:
        result = _run_batches(settings, fetcher, sleep_fn, shutdown, monotonic_fn)
    finally:
        if owned_fetcher is not None:
            owned_fetcher.close()

    if persist:
        _persist(result, settings)
    return result


def _run_batches(
    settings: Settings,
    fetcher: BatchFetcher,
    sleep_fn: Callable[[float], None],
    shutdown: ShutdownFlag,
    monotonic_fn: Callable[[], float],
) -> RunResult:
    logger.info("Starting telemetry aggregation", api=settings.api_base_url)

    device_ids = generate_device_ids(
        settings.device_count,
        prefix=settings.device_id_prefix,
        width=settings.device_id_width,
    )
    batches = chunk(device_ids, settings.batch_size)
    logger.info("Batches planned", devices=len(device_ids), batches=len(batches))

    result = RunResult(total_devices=len(device_ids), total_batches=len(batches))
    delay_seconds = settings.rate_limit_ms / 1000
    start = monotonic_fn()

    for index, batch in enumerate(batches):
        if shutdown.requested:
            logger.warning("Stopping before next batch", remaining=len(batches) - index, reason=shutdown.reason)
            result.interrupted = True
            break

        position = f"{index + 1}/{len(batches)}"
        logger.info("Fetching batch", batch=position, range=describe_range(batch))
        outcome = fetcher.fetch_batch(batch)

        if outcome.ok:
            result.records.extend(outcome.records)
            result.succeeded += 1
            logger.info("Batch fetched", batch=position, records=len(outcome.records))
        else:
            result.failed += 1
            result.failed_ranges.append(outcome.range_label)
            logger.debug("Batch counted as failed", batch=position, attempts=outcome.attempts)

        # Pace after failures too; retries inside the fetcher do not count.
        if index < len(batches) - 1 and not shutdown.requested:
            sleep_fn(delay_seconds)

    result.duration_seconds = monotonic_fn() - start
    logger.info(
        "Aggregation complete",
        records=len(result.records),
        devices=result.total_devices,
        succeeded=result.succeeded,
        failed=result.failed,
        success_rate=result.success_rate,
        duration_seconds=round(result.duration_seconds, 2),
        interrupted=result.interrupted,
    )
    return result


def _persist(result: RunResult, settings: Settings) -> None:
    if not result.records:
        logger.warning("No records collected, nothing saved")
        return
    try:
        result.saved_path = save_results(result.records, result.metadata(), settings.output_dir)
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Failed to save telemetry", output_dir=settings.output_dir, error=str(exc))
