import asyncio

from celery.utils.log import get_task_logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.celery_app import celery_app
from app.db.session import create_task_engine
from app.services.holds import expire_booking, release_expired_holds

logger = get_task_logger(__name__)


async def _with_session_factory(fn, *args):
    engine = create_task_engine()
    try:
        factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        return await fn(factory, *args)
    finally:
        await engine.dispose()


@celery_app.task(name="holds.expire_booking", bind=True, autoretry_for=(ConnectionError, OSError), retry_backoff=True, max_retries=5)
def expire_booking_task(self, booking_id: int) -> str:
    """One-shot hold check, scheduled HOLD_WINDOW after the reservation."""
    outcome = asyncio.run(_with_session_factory(expire_booking, booking_id))
    logger.info("Expiry check for booking %s: %s", booking_id, outcome.value)
    return outcome.value


@celery_app.task(name="holds.sweep")
def sweep_expired_holds_task() -> dict:
    """Periodic sweep: expired payment links and any overdue unpaid bookings."""
    result = asyncio.run(_with_session_factory(release_expired_holds))
    logger.info("Hold sweep: %s", result)
    return result
