"""Deadline sweep runner for use outside the web process.

Entry points:
- run_sweep_once(): Single sweep
- run_sweep_loop(): Sweep on a fixed interval until interrupted

There are no WebSocket clients in a standalone process, so reminders are
persisted and the live push is only logged; users pick them up by
polling.
"""

import asyncio
import logging
import signal
import time
from datetime import datetime

from sqlmodel import Session

from app.config import get_settings
from app.db.session import engine
from app.events.channel import ChannelHolder, LoggingChannel
from app.services.notifications import NotificationService
from app.workers.base import WorkerResult
from app.workers.deadline_worker import DeadlineSweep

logger = logging.getLogger(__name__)


class SweepRunner:
    """Runs the deadline sweep against its own session and channel.

    Usage:
        runner = SweepRunner()
        result = runner.run_once()
    """

    def __init__(self, deduplicate: bool | None = None) -> None:
        """Initialize the runner.

        Args:
            deduplicate: Override DEADLINE_REMINDER_DEDUPLICATE
        """
        settings = get_settings()
        if deduplicate is None:
            deduplicate = settings.DEADLINE_REMINDER_DEDUPLICATE

        notifications = NotificationService(ChannelHolder(LoggingChannel()))
        self._sweep = DeadlineSweep(notifications, deduplicate=deduplicate)
        self._logger = logging.getLogger(self.__class__.__name__)
        self._shutdown_requested = False

    def run_once(self, session: Session | None = None, now: datetime | None = None) -> WorkerResult:
        """Execute one sweep.

        Args:
            session: Optional database session (creates new if not provided)
            now: Reference time (default: current UTC time)
        """
        own_session = session is None
        if own_session:
            session = Session(engine)

        try:
            return asyncio.run(self._sweep.run(session, now=now))
        finally:
            if own_session:
                session.close()

    def run_loop(
        self,
        interval_seconds: int | None = None,
        max_iterations: int | None = None,
    ) -> None:
        """Run sweeps continuously.

        Args:
            interval_seconds: Seconds between sweeps (default from config)
            max_iterations: Max sweeps to run (None for infinite)
        """
        settings = get_settings()
        interval = interval_seconds or settings.DEADLINE_SWEEP_INTERVAL_MINUTES * 60
        iterations = 0

        self._setup_signal_handlers()

        self._logger.info(
            "Starting sweep loop",
            extra={"interval_seconds": interval, "max_iterations": max_iterations},
        )

        try:
            while not self._shutdown_requested:
                if max_iterations is not None and iterations >= max_iterations:
                    self._logger.info(f"Reached max iterations ({max_iterations}), stopping")
                    break

                try:
                    result = self.run_once()
                    self._logger.info(
                        f"Iteration {iterations + 1} complete",
                        extra={"processed": result.processed_count, "failed": result.failed_count},
                    )
                except Exception as e:
                    self._logger.error(f"Sweep failed: {e}", exc_info=True)
                iterations += 1

                if not self._shutdown_requested:
                    self._logger.debug(f"Sleeping for {interval} seconds")
                    time.sleep(interval)

        except KeyboardInterrupt:
            self._logger.info("Keyboard interrupt received, shutting down")

        self._logger.info("Sweep loop stopped", extra={"total_iterations": iterations})

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def handle_signal(signum, frame):
            self._logger.info(f"Received signal {signum}, requesting shutdown")
            self._shutdown_requested = True

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    def request_shutdown(self) -> None:
        """Request graceful shutdown of the loop."""
        self._shutdown_requested = True


def run_sweep_once(deduplicate: bool | None = None) -> WorkerResult:
    """Run the deadline sweep once.

    Example:
        >>> from app.workers import run_sweep_once
        >>> result = run_sweep_once()
        >>> print(f"Sent: {result.processed_count}")
    """
    return SweepRunner(deduplicate=deduplicate).run_once()


def run_sweep_loop(
    interval_seconds: int | None = None,
    max_iterations: int | None = None,
    deduplicate: bool | None = None,
) -> None:
    """Run the deadline sweep until interrupted (Ctrl+C) or max_iterations reached."""
    SweepRunner(deduplicate=deduplicate).run_loop(
        interval_seconds=interval_seconds,
        max_iterations=max_iterations,
    )


def configure_worker_logging(level: int = logging.INFO) -> None:
    """Configure logging for worker processes.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("app.workers").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
