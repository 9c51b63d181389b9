from celery import Celery
from celery.signals import after_setup_logger, after_setup_task_logger
from app.config import settings
from app.logging_setup import json_handler


celery_app = Celery(
    "cinema_tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.tasks.holds"],
)

celery_app.conf.update(
    task_track_started=True,
    # expiry tasks are idempotent; redeliver them if a worker dies mid-run
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # countdowns up to the hold window must survive the redis visibility timeout
    broker_transport_options={"visibility_timeout": 60 * 60, "socket_connect_timeout": 2, "socket_timeout": 5},
    broker_connection_timeout=2.0,
    beat_schedule={
        "sweep-expired-holds": {
            "task": "holds.sweep",
            "schedule": float(settings.LINK_SWEEP_INTERVAL_SECONDS),
        },
    },
)


@after_setup_logger.connect
@after_setup_task_logger.connect
def use_json_logs(logger, **kwargs):
    logger.handlers = [json_handler()]
