"""Batch processing for bulk imports.

The controller drains a snapshot of grid rows into the inventory API one row
at a time, in batches, with pacing between items and batches. It can be
paused, resumed and cancelled from another task on the same event loop.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from stockbox.config.schema import EnrichmentConfig, ImporterConfig
from stockbox.exceptions import ImportCancelledError, InvalidStateError, RateLimitedError, RowRejectedError
from stockbox.models.progress import (
    ImportProgress,
    ImportResult,
    ImportResultRow,
    ImportRowData,
    ImportStatus,
    RowError,
)
from stockbox.services.api_client import ApiClient

from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_DELAY_BETWEEN_BATCHES,
    DEFAULT_DELAY_BETWEEN_ITEMS,
    ENRICHMENT_BATCH_SIZE,
    ENRICHMENT_DELAY_BETWEEN_BATCHES,
    ENRICHMENT_DELAY_BETWEEN_ITEMS,
    PAUSE_POLL_INTERVAL,
    RATE_LIMIT_DELAY,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportOptions:
    """Pacing and hooks for one controller (delays in seconds)."""

    batch_size: int = DEFAULT_BATCH_SIZE
    delay_between_items: float = DEFAULT_DELAY_BETWEEN_ITEMS
    delay_between_batches: float = DEFAULT_DELAY_BETWEEN_BATCHES
    rate_limit_delay: float = RATE_LIMIT_DELAY
    max_rate_limit_retries: int | None = None
    pause_poll_interval: float = PAUSE_POLL_INTERVAL
    transform_row: Callable[[ImportRowData], ImportRowData] | None = None
    on_progress: Callable[[ImportProgress], None] | None = None
    on_complete: Callable[[ImportResult], None] | None = None
    on_error: Callable[[Exception], None] | None = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.pause_poll_interval <= 0:
            raise ValueError("pause_poll_interval must be positive")

    @classmethod
    def from_config(cls, config: ImporterConfig, **hooks: Any) -> "ImportOptions":
        """Build options from the [importer] config section plus callables."""
        return cls(
            batch_size=config.batch_size,
            delay_between_items=config.delay_between_items,
            delay_between_batches=config.delay_between_batches,
            rate_limit_delay=config.rate_limit_delay,
            max_rate_limit_retries=config.max_rate_limit_retries,
            pause_poll_interval=config.pause_poll_interval,
            **hooks,
        )

    @classmethod
    def for_enrichment(cls, config: EnrichmentConfig | None = None, **hooks: Any) -> "ImportOptions":
        """Slower defaults for runs that call the company registry per row."""
        if config is None:
            return cls(
                batch_size=ENRICHMENT_BATCH_SIZE,
                delay_between_items=ENRICHMENT_DELAY_BETWEEN_ITEMS,
                delay_between_batches=ENRICHMENT_DELAY_BETWEEN_BATCHES,
                **hooks,
            )
        return cls(
            batch_size=config.batch_size,
            delay_between_items=config.delay_between_items,
            delay_between_batches=config.delay_between_batches,
            rate_limit_delay=config.rate_limit_delay,
            **hooks,
        )


def extract_entity_id(response: Any) -> str | None:
    """Find the created entity's id in an API response.

    Accepts {"id": ...}, {"data": {"id": ...}} or a single nested entity
    such as {"manufacturer": {"id": ...}}.
    """
    if not isinstance(response, dict):
        return None
    if response.get("id") is not None:
        return str(response["id"])
    data = response.get("data")
    if isinstance(data, dict) and data.get("id") is not None:
        return str(data["id"])
    nested = [value for value in response.values() if isinstance(value, dict) and value.get("id") is not None]
    if len(nested) == 1:
        return str(nested[0]["id"])
    return None


def _unsuccessful_message(response: dict[str, Any]) -> str:
    for key in ("message", "error"):
        value = response.get(key)
        if isinstance(value, str) and value:
            return value
    return "Request was not successful"


class ImportProcessController:
    """Runs one import at a time against a single API endpoint.

    Progress is held in a frozen ImportProgress that is replaced on every
    change and handed to options.on_progress.
    """

    def __init__(self, api_client: ApiClient, endpoint: str, options: ImportOptions | None = None):
        self.api_client = api_client
        self.endpoint = endpoint
        self.options = options or ImportOptions()
        self._progress = ImportProgress()
        self._pause_requested = False
        self._cancel_event = asyncio.Event()
        self._results: list[ImportResultRow] = []
        self._retry_counts: dict[int, int] = {}

    # =========================================================================
    # State
    # =========================================================================

    @property
    def progress(self) -> ImportProgress:
        return self._progress

    @property
    def status(self) -> ImportStatus:
        return self._progress.status

    @property
    def is_processing(self) -> bool:
        return self.status == ImportStatus.IMPORTING

    @property
    def is_paused(self) -> bool:
        return self.status == ImportStatus.PAUSED

    @property
    def is_completed(self) -> bool:
        return self.status == ImportStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == ImportStatus.FAILED

    @property
    def is_cancelled(self) -> bool:
        return self.status == ImportStatus.CANCELLED

    @property
    def retry_counts(self) -> dict[int, int]:
        """Rate-limit retries per row_index for the current run."""
        return dict(self._retry_counts)

    # =========================================================================
    # Control
    # =========================================================================

    async def start_import(self, rows: Sequence[ImportRowData]) -> ImportResult:
        """Import rows in batches and return the result.

        The rows are copied, so the grid they came from can keep changing.
        A cancelled or failed run returns the rows processed so far; neither
        raises.

        Args:
            rows: Snapshot from SpreadsheetGrid.get_row_data().

        Returns:
            ImportResult for the rows that were processed.

        Raises:
            InvalidStateError: If the controller is not idle.
        """
        if self.status != ImportStatus.IDLE:
            raise InvalidStateError(f"Cannot start an import while {self.status.value}; call reset() first")

        snapshot = [row.model_copy(deep=True) for row in rows]
        batch_size = self.options.batch_size
        batches = [snapshot[i : i + batch_size] for i in range(0, len(snapshot), batch_size)]

        self._cancel_event = asyncio.Event()
        self._pause_requested = False
        self._results = []
        self._retry_counts = {}
        self._publish(
            status=ImportStatus.IMPORTING,
            total=len(snapshot),
            processed=0,
            successful=0,
            failed=0,
            current_batch=0,
            total_batches=len(batches),
            errors=(),
            started_at=datetime.now(timezone.utc),
            completed_at=None,
        )
        logger.info("Importing %d row(s) into %s in %d batch(es)", len(snapshot), self.endpoint, len(batches))

        try:
            await self._run_batches(batches)
        except ImportCancelledError:
            self._publish(status=ImportStatus.CANCELLED, completed_at=datetime.now(timezone.utc))
            logger.info("Import into %s cancelled after %d row(s)", self.endpoint, self._progress.processed)
            return self._build_result(len(snapshot))
        except asyncio.CancelledError:
            self._publish(status=ImportStatus.CANCELLED, completed_at=datetime.now(timezone.utc))
            raise
        except Exception as e:
            self._publish(status=ImportStatus.FAILED, completed_at=datetime.now(timezone.utc))
            logger.exception("Import into %s failed after %d row(s)", self.endpoint, self._progress.processed)
            if self.options.on_error:
                self.options.on_error(e)
            return self._build_result(len(snapshot))

        result = self._build_result(len(snapshot))
        self._publish(status=ImportStatus.COMPLETED, completed_at=datetime.now(timezone.utc))
        logger.info(
            "Import into %s completed: %d imported, %d failed",
            self.endpoint,
            result.imported_rows,
            result.failed_rows,
        )
        if self.options.on_complete:
            self.options.on_complete(result)
        return result

    def pause_import(self) -> None:
        """Stop before the next row; the row in flight still finishes."""
        if self.status != ImportStatus.IMPORTING:
            logger.debug("pause_import ignored while %s", self.status.value)
            return
        self._pause_requested = True
        self._publish(status=ImportStatus.PAUSED)
        logger.info("Import into %s paused", self.endpoint)

    def resume_import(self) -> None:
        if self.status != ImportStatus.PAUSED:
            logger.debug("resume_import ignored while %s", self.status.value)
            return
        self._pause_requested = False
        self._publish(status=ImportStatus.IMPORTING)
        logger.info("Import into %s resumed", self.endpoint)

    def cancel_import(self) -> None:
        """Ask the running import to stop at its next checkpoint."""
        if not self.status.is_active:
            logger.debug("cancel_import ignored while %s", self.status.value)
            return
        self._cancel_event.set()
        logger.info("Cancellation requested for import into %s", self.endpoint)

    def reset(self) -> None:
        """Return to idle with cleared counters.

        Raises:
            InvalidStateError: If an import is running or paused.
        """
        if self.status.is_active:
            raise InvalidStateError("Cannot reset while an import is running; cancel it first")
        self._pause_requested = False
        self._cancel_event = asyncio.Event()
        self._results = []
        self._retry_counts = {}
        self._progress = ImportProgress()
        if self.options.on_progress:
            self.options.on_progress(self._progress)

    # =========================================================================
    # Hooks for subclasses
    # =========================================================================

    async def build_payload(self, row: ImportRowData) -> dict[str, Any]:
        """Request body for a row. Raise RowRejectedError to fail the row."""
        return row.data

    # =========================================================================
    # Loop
    # =========================================================================

    async def _run_batches(self, batches: list[list[ImportRowData]]) -> None:
        for batch_index, batch in enumerate(batches):
            await self._checkpoint()
            self._publish(current_batch=batch_index + 1)
            logger.debug("Starting batch %d/%d (%d row(s))", batch_index + 1, len(batches), len(batch))

            for item_index, row in enumerate(batch):
                await self._checkpoint()
                outcome = await self._process_row(row)
                self._record(row, outcome)
                if item_index < len(batch) - 1:
                    await self._wait(self.options.delay_between_items)

            if batch_index < len(batches) - 1:
                await self._wait(self.options.delay_between_batches)

    async def _process_row(self, row: ImportRowData) -> ImportResultRow:
        if self.options.transform_row:
            row = self.options.transform_row(row)

        try:
            payload = await self.build_payload(row)
        except RowRejectedError as e:
            return ImportResultRow(row_index=row.row_index, success=False, error=str(e))

        # Rate limits hit inside build_payload() do not count toward this cap
        create_retries = 0
        while True:
            try:
                response = await self.api_client.create(self.endpoint, payload)
            except RateLimitedError as e:
                limit = self.options.max_rate_limit_retries
                if limit is not None and create_retries >= limit:
                    logger.warning("Row %d still rate limited after %d retries", row.row_number, limit)
                    return ImportResultRow(
                        row_index=row.row_index,
                        success=False,
                        error=f"Rate limit exceeded after {limit} retries",
                    )
                create_retries += 1
                self._note_rate_limit(row)
                delay = e.retry_after if e.retry_after is not None else self.options.rate_limit_delay
                logger.warning("Rate limited on row %d, retry %d in %.1fs", row.row_number, create_retries, delay)
                await self._wait(delay)
                await self._checkpoint()
                continue
            except Exception as e:
                return ImportResultRow(row_index=row.row_index, success=False, error=str(e) or type(e).__name__)

            if isinstance(response, dict) and response.get("success") is False:
                return ImportResultRow(
                    row_index=row.row_index,
                    success=False,
                    error=_unsuccessful_message(response),
                )
            return ImportResultRow(row_index=row.row_index, success=True, entity_id=extract_entity_id(response))

    def _record(self, row: ImportRowData, outcome: ImportResultRow) -> None:
        self._results.append(outcome)
        current = self._progress
        if outcome.success:
            logger.debug("Row %d imported (id=%s)", row.row_number, outcome.entity_id)
            self._publish(processed=current.processed + 1, successful=current.successful + 1)
            return

        message = outcome.error or "Unknown error"
        logger.warning("Row %d failed: %s", row.row_number, message)
        self._publish(
            processed=current.processed + 1,
            failed=current.failed + 1,
            errors=current.errors + (RowError(row=row.row_number, message=message, data=row.data),),
        )

    def _note_rate_limit(self, row: ImportRowData) -> int:
        retries = self._retry_counts.get(row.row_index, 0) + 1
        self._retry_counts[row.row_index] = retries
        return retries

    # =========================================================================
    # Suspension points
    # =========================================================================

    async def _checkpoint(self) -> None:
        """Block while paused, then stop if cancelled."""
        while self._pause_requested and not self._cancel_event.is_set():
            await self._wait(self.options.pause_poll_interval)
        self._raise_if_cancelled()

    async def _wait(self, seconds: float) -> None:
        """Sleep, waking early if the run is cancelled."""
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)

    def _raise_if_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise ImportCancelledError()

    def _publish(self, **changes: Any) -> None:
        self._progress = self._progress.model_copy(update=changes)
        if self.options.on_progress:
            self.options.on_progress(self._progress)

    def _build_result(self, total_rows: int) -> ImportResult:
        result = ImportResult.from_results(total_rows, self._results)
        if len(self._results) < total_rows:
            # Rows never reached make the run unsuccessful even without failures
            return result.model_copy(update={"success": False})
        return result
