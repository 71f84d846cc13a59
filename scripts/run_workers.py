#!/usr/bin/env python3
"""Dev entrypoint for running the deadline sweep outside the web process.

Usage:
    # Single sweep
    python scripts/run_workers.py --once

    # Single sweep, machine-readable summary
    python scripts/run_workers.py --once --json

    # Continuous loop (Ctrl+C to stop)
    python scripts/run_workers.py --loop

    # Loop with custom interval, sending each reminder only once
    python scripts/run_workers.py --loop --interval 600 --dedupe

    # Limit iterations (for testing)
    python scripts/run_workers.py --loop --max-iterations 5

Environment variables:
    DATABASE_URL: Database to sweep
    DEADLINE_SWEEP_INTERVAL_MINUTES: Minutes between sweeps (default: 60)
    DEADLINE_REMINDER_DEDUPLICATE: Send each deadline reminder once (default: false)
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.workers import (
    configure_worker_logging,
    run_sweep_loop,
    run_sweep_once,
)


def main() -> int:
    """Main entrypoint for the sweep runner."""
    parser = argparse.ArgumentParser(
        description="Run the deadline reminder sweep",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Mode selection
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run the sweep once and exit",
    )
    mode.add_argument(
        "--loop",
        action="store_true",
        help="Run the sweep continuously in a loop",
    )

    # Configuration
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between sweeps (loop mode only)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Maximum iterations before stopping (loop mode only)",
    )
    parser.add_argument(
        "--dedupe",
        action="store_true",
        default=None,
        help="Send each deadline reminder to each user only once",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the sweep result as JSON (once mode only)",
    )

    # Logging
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Reduce logging to warnings only",
    )

    args = parser.parse_args()

    if args.verbose:
        configure_worker_logging(logging.DEBUG)
    elif args.quiet:
        configure_worker_logging(logging.WARNING)
    else:
        configure_worker_logging(logging.INFO)

    logger = logging.getLogger(__name__)

    try:
        if args.once:
            logger.info("Running deadline sweep once...")
            result = run_sweep_once(deduplicate=args.dedupe)

            if args.json:
                print(json.dumps(result.to_dict(), indent=2))
                return 0 if not result.errors else 1

            print("\n--- Deadline Sweep Summary ---")
            print(f"Status: {result.status.value}")
            print(f"Sent: {result.processed_count}")
            print(f"Skipped: {result.skipped_count}")
            print(f"Failed: {result.failed_count}")

            for err in result.errors:
                print(f"  - {err['item_id']}: {err['error']}")

            return 0 if not result.errors else 1

        elif args.loop:
            logger.info("Starting sweep loop (Ctrl+C to stop)...")
            run_sweep_loop(
                interval_seconds=args.interval,
                max_iterations=args.max_iterations,
                deduplicate=args.dedupe,
            )
            return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Sweep failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
