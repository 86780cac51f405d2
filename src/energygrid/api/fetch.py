"""Signed telemetry batch fetching with bounded retries."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from energygrid.api.schemas import TelemetryResponse
from energygrid.api.signing import current_timestamp_ms, generate_signature
from energygrid.config import QUERY_PATH, Settings
from energygrid.errors import FetchError, RetryableFetchError
from energygrid.shutdown import ShutdownFlag

logger = structlog.get_logger()

USER_AGENT = "EnergyGridAggregator/0.1"
RETRYABLE_STATUS_CODES = {429}


def describe_range(batch: Sequence[str]) -> str:
    if not batch:
        return "(empty)"
    return f"{batch[0]} to {batch[-1]}"


@dataclass(frozen=True)
class BatchResult:
    """Outcome of fetching one batch, after any retries."""

    batch: list[str]
    records: list[Any] = field(default_factory=list)
    error: str | None = None
    attempts: int = 0
    status_code: int | None = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def range_label(self) -> str:
        return describe_range(self.batch)


def _should_retry(exc: BaseException) -> bool:
    return isinstance(exc, RetryableFetchError)


class TelemetryFetcher:
    """Fetches telemetry for one batch of serial numbers per call.

    Every attempt is signed with a fresh timestamp. Retryable failures
    (HTTP 429, connection errors, timeouts) back off 1s, 2s, 4s, ... up to
    ``max_retries`` retries; anything else fails the batch immediately.
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.Client | None = None,
        *,
        sleep_fn: Callable[[float], None] = time.sleep,
        now_fn: Callable[[], int] = current_timestamp_ms,
        shutdown: ShutdownFlag | None = None,
    ):
        self._settings = settings
        self._timeout = settings.request_timeout_ms / 1000
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self._timeout)
        self._sleep_fn = sleep_fn
        self._now_fn = now_fn
        self._shutdown = shutdown

    def __enter__(self) -> TelemetryFetcher:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch_batch(self, batch: Sequence[str]) -> BatchResult:
        """Fetch one batch. Per-batch failures are returned, never raised."""
        batch = list(batch)
        attempts = 0
        records: list[Any] = []
        try:
            for attempt in self._retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    if attempts > 1 and self._shutdown is not None and self._shutdown.requested:
                        raise FetchError("Shutdown requested before retry")
                    records = self._attempt(batch)
        except FetchError as exc:
            logger.error(
                "Failed to fetch batch",
                range=describe_range(batch),
                attempts=attempts,
                status=exc.status_code,
                error=str(exc),
            )
            return BatchResult(
                batch=batch,
                error=str(exc),
                attempts=attempts,
                status_code=exc.status_code,
                retryable=isinstance(exc, RetryableFetchError),
            )

        return BatchResult(batch=batch, records=records, attempts=attempts, status_code=200)

    def _retrying(self) -> Retrying:
        stop = stop_after_attempt(self._settings.max_retries + 1)
        if self._shutdown is not None:
            stop = stop | stop_when_event_set(self._shutdown.event)
        return Retrying(
            stop=stop,
            wait=wait_exponential(multiplier=1, exp_base=2),
            retry=retry_if_exception(_should_retry),
            sleep=self._sleep_fn,
            before_sleep=self._log_retry,
            reraise=True,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "Rate limited or unavailable, retrying",
            delay_ms=int(delay * 1000),
            attempt=retry_state.attempt_number,
            max_retries=self._settings.max_retries,
            error=str(exc),
        )

    def _attempt(self, batch: list[str]) -> list[Any]:
        timestamp_ms = self._now_fn()
        signature = generate_signature(
            QUERY_PATH,
            self._settings.secret_token.get_secret_value(),
            timestamp_ms,
        )
        headers = {
            "Content-Type": "application/json",
            "Signature": signature,
            "Timestamp": str(timestamp_ms),
            "User-Agent": USER_AGENT,
        }
        logger.debug("Sending signed request", range=describe_range(batch), timestamp=timestamp_ms)

        try:
            response = self._client.post(
                self._settings.query_url,
                json={"sn_list": batch},
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise RetryableFetchError(f"Request timed out: {exc}") from exc
        except httpx.ConnectError as exc:
            raise RetryableFetchError(f"Connection failed: {exc}") from exc
        except httpx.RequestError as exc:
            raise FetchError(f"Request error: {exc}") from exc

        status_code = response.status_code
        if status_code in RETRYABLE_STATUS_CODES:
            raise RetryableFetchError(f"HTTP {status_code}", status_code=status_code)
        if not response.is_success:
            raise FetchError(f"HTTP {status_code}", status_code=status_code)

        try:
            parsed = TelemetryResponse.model_validate_json(response.content)
        except ValidationError as exc:
            first = exc.errors()[0]["msg"] if exc.errors() else str(exc)
            raise FetchError(f"Malformed response: {first}", status_code=status_code) from exc
        return parsed.data
