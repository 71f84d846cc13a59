"""Background sweeps.

Components:
- base.py: WorkerResult and WorkerStatus
- deadline_worker.py: Deadline reminders for tasks and projects
- runner.py: Standalone runner used by scripts/run_workers.py

The web process runs the same sweep from the reminder scheduler.
"""

from app.workers.base import WorkerResult, WorkerStatus
from app.workers.deadline_worker import DEADLINE_HORIZONS, DeadlineSweep
from app.workers.runner import (
    SweepRunner,
    configure_worker_logging,
    run_sweep_loop,
    run_sweep_once,
)

__all__ = [
    # Base
    "WorkerResult",
    "WorkerStatus",
    # Sweeps
    "DeadlineSweep",
    "DEADLINE_HORIZONS",
    # Runner
    "SweepRunner",
    "run_sweep_once",
    "run_sweep_loop",
    "configure_worker_logging",
]
