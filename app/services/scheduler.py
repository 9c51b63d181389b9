import asyncio
import logging
from datetime import datetime

from app.services.clock import utcnow

logger = logging.getLogger(__name__)

# fail fast when the broker is unreachable; the sweep covers a lost schedule
PUBLISH_RETRY_POLICY = {"max_retries": 2, "interval_start": 0, "interval_step": 0.2, "interval_max": 0.5}


class HoldScheduler:
    """Schedules the one-shot expiry check of a pending booking."""

    def schedule_booking_expiry(self, booking_id: int, run_at: datetime) -> None:
        raise NotImplementedError()


class CeleryHoldScheduler(HoldScheduler):
    def schedule_booking_expiry(self, booking_id: int, run_at: datetime) -> None:
        from app.tasks.holds import expire_booking_task

        countdown = max(0, int((run_at - utcnow()).total_seconds()) + 1)
        expire_booking_task.apply_async(args=[booking_id], countdown=countdown, retry=True, retry_policy=PUBLISH_RETRY_POLICY)
        logger.info("Scheduled expiry check for booking %s in %ss", booking_id, countdown)


hold_scheduler = CeleryHoldScheduler()


def get_scheduler() -> HoldScheduler:
    return hold_scheduler


async def schedule_expiry_safely(scheduler: HoldScheduler, booking_id: int, run_at: datetime) -> bool:
    """A lost schedule is not fatal: the periodic sweep expires overdue bookings.

    The broker publish is blocking, so it runs in a worker thread.
    """
    try:
        await asyncio.to_thread(scheduler.schedule_booking_expiry, booking_id, run_at)
        return True
    except Exception:
        logger.exception("Could not schedule expiry for booking %s; relying on sweep", booking_id)
        return False
