"""Result types shared by background sweeps.

A sweep walks a list of items and reports how many it handled and which
ones failed. One failing item never stops the rest of the sweep.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class WorkerStatus(str, Enum):
    """Status of a worker run."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Some items processed, some failed
    FAILED = "failed"
    NO_WORK = "no_work"


@dataclass
class WorkerResult:
    """Result of a worker processing cycle.

    Attributes:
        worker_name: Name of the worker that produced the result
        status: Overall status of the worker run
        processed_count: Number of items successfully processed
        failed_count: Number of items that failed
        skipped_count: Number of items skipped (e.g. already notified)
        duration_ms: Time taken for the processing cycle
        errors: List of error details for failed items
        metadata: Additional worker-specific metadata
    """

    worker_name: str
    status: WorkerStatus = WorkerStatus.NO_WORK
    processed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    duration_ms: float = 0.0
    errors: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def record_success(self) -> None:
        self.processed_count += 1

    def record_skip(self) -> None:
        self.skipped_count += 1

    def record_failure(self, item_id: str, error: str) -> None:
        self.failed_count += 1
        self.errors.append({"item_id": item_id, "error": error[:500]})

    def finish(self, started_at: datetime) -> "WorkerResult":
        """Set the final status and duration."""
        if self.failed_count == 0 and self.processed_count > 0:
            self.status = WorkerStatus.SUCCESS
        elif self.processed_count > 0 and self.failed_count > 0:
            self.status = WorkerStatus.PARTIAL
        elif self.failed_count > 0:
            self.status = WorkerStatus.FAILED
        else:
            self.status = WorkerStatus.NO_WORK
        self.duration_ms = (datetime.utcnow() - started_at).total_seconds() * 1000
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "worker_name": self.worker_name,
            "status": self.status.value,
            "processed_count": self.processed_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "duration_ms": self.duration_ms,
            "errors": self.errors,
            "metadata": self.metadata,
        }
