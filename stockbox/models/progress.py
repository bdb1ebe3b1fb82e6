"""Import run models: row snapshots, progress state and final results."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ImportStatus(str, Enum):
    """Status of an import run."""

    IDLE = "idle"
    IMPORTING = "importing"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportStatus.COMPLETED, ImportStatus.FAILED, ImportStatus.CANCELLED)

    @property
    def is_active(self) -> bool:
        return self in (ImportStatus.IMPORTING, ImportStatus.PAUSED)


class ImportRowData(BaseModel):
    """One filled grid row handed to the import controller."""

    row_index: int  # 0-based position in the full grid
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def row_number(self) -> int:
        """1-based row number shown to users."""
        return self.row_index + 1


class RowError(BaseModel):
    """A row that failed during an import run."""

    model_config = ConfigDict(frozen=True)

    row: int  # 1-based
    message: str
    data: dict[str, Any] | None = None


class ImportProgress(BaseModel):
    """Observable state of an import run.

    Instances are frozen; the controller publishes a new copy on every change.
    """

    model_config = ConfigDict(frozen=True)

    status: ImportStatus = ImportStatus.IDLE
    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    current_batch: int = 0
    total_batches: int = 0
    errors: tuple[RowError, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def percent(self) -> float:
        if not self.total:
            return 0.0
        return round(self.processed / self.total * 100, 1)


class ImportResultRow(BaseModel):
    """Outcome of a single processed row."""

    row_index: int
    success: bool
    entity_id: str | None = None
    error: str | None = None


class ImportResult(BaseModel):
    """Summary returned when a run ends."""

    success: bool
    total_rows: int
    imported_rows: int
    skipped_rows: int = 0  # reserved
    failed_rows: int
    results: list[ImportResultRow] = Field(default_factory=list)
    created_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_results(cls, total_rows: int, results: list[ImportResultRow]) -> "ImportResult":
        """Aggregate per-row outcomes into a result."""
        imported = sum(1 for r in results if r.success)
        failed = len(results) - imported
        return cls(
            success=failed == 0,
            total_rows=total_rows,
            imported_rows=imported,
            failed_rows=failed,
            results=list(results),
            created_ids=[r.entity_id for r in results if r.success and r.entity_id],
        )
