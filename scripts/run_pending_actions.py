"""Run the pending-action executor on a fixed interval.

Every tick retries queued audit records, then executes (or expires) each
pending action whose scheduled time has passed.

Usage:
  python scripts/run_pending_actions.py          # poll forever
  python scripts/run_pending_actions.py --once   # single tick, for cron

Exit codes:
  0 - tick(s) completed
  1 - last tick had failed actions (with --once)
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from skillportal.config import get_settings
from skillportal.exceptions import PortalException
from skillportal.modules.safe_actions.executor import PendingActionExecutor

logger = logging.getLogger("skillportal.executor")


async def run(once: bool) -> int:
    settings = get_settings()
    executor = PendingActionExecutor(settings=settings)
    interval = settings.safe_actions.poll_interval_seconds

    while True:
        try:
            summary = await executor.run_due()
        except PortalException as e:
            # Store unreachable; try again next tick
            logger.error(f"Executor tick failed: {e.code} - {e.message}")
            if once:
                return 1
        else:
            if once:
                return 1 if summary.failed else 0
        await asyncio.sleep(interval)


def main() -> int:
    logging.basicConfig(
        level=get_settings().app_log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    once = "--once" in sys.argv[1:]
    try:
        return asyncio.run(run(once))
    except KeyboardInterrupt:
        logger.info("Executor stopped")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
