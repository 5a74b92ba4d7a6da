"""Worker process for the scheduled leave jobs.

Wakes once a day and, using "today" in the configured timezone:
- runs the monthly accrual when today is the last day of a payroll cycle;
- runs the annual CL reset when today is the next reset date.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from leave_ledger.config import get_settings, local_today
from leave_ledger.db import session_scope

logger = logging.getLogger(__name__)


async def run_daily_jobs(today: date) -> None:
    """Run whichever scheduled jobs are due on ``today``."""
    from leave_ledger.services.accrual import post_monthly_accruals
    from leave_ledger.services.annual_reset import next_reset_date, perform_annual_reset
    from leave_ledger.services.config_repository import SqlConfigRepository
    from leave_ledger.services.cycle import CycleResolver
    from leave_ledger.services.settings_cascade import SettingsCascade

    settings = get_settings()

    if settings.accrual_enabled:
        try:
            async with session_scope() as session:
                cycles = await CycleResolver.from_cascade(SettingsCascade(SqlConfigRepository(session)))
                cycle = cycles.payroll_cycle_for_date(today)
                if today == cycle.end_date:
                    result = await post_monthly_accruals(session, cycle.month, cycle.year)
                    logger.info(
                        "Monthly accrual for %02d/%d: processed=%d cl=%d el=%d expired_ccl=%d errors=%d",
                        result.month,
                        result.year,
                        result.processed,
                        result.cl_credits,
                        result.el_credits,
                        result.expired_ccls,
                        len(result.errors),
                    )
        except Exception:
            logger.exception("Monthly accrual run failed for %s", today)

    if settings.annual_reset_enabled:
        try:
            async with session_scope() as session:
                cascade = SettingsCascade(SqlConfigRepository(session))
                policy = await cascade.leave_policy()
                cycles = await CycleResolver.from_cascade(cascade)
                if policy.annual_cl_reset.enabled and today == next_reset_date(policy, cycles, today):
                    reset_result = await perform_annual_reset(session, today=today)
                    logger.info(
                        "Annual CL reset for %s: reset=%d skipped=%d errors=%d",
                        reset_result.reset_date,
                        reset_result.reset,
                        reset_result.skipped,
                        len(reset_result.errors),
                    )
        except Exception:
            logger.exception("Annual CL reset failed for %s", today)


async def run_scheduler_loop() -> None:
    """Main worker loop; jobs are idempotent so an extra wake-up is harmless."""
    settings = get_settings()
    logger.info("Leave worker started tz=%s interval=%ss", settings.timezone, settings.worker_interval_seconds)
    while True:
        await run_daily_jobs(local_today())
        await asyncio.sleep(settings.worker_interval_seconds)


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(level=get_settings().log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(run_scheduler_loop())


if __name__ == "__main__":
    main()
