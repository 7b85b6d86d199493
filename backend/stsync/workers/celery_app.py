from celery import Celery
from stsync.core.config import get_settings
from stsync.core.logging import configure_logging

settings = get_settings()
configure_logging(settings.debug)

celery_app = Celery(
    "stsync",
    broker=settings.redis_broker_url,
    backend=settings.redis_broker_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    enable_utc=True,
    task_track_started=True,
    # Transfers persist after every step; a redelivered task resumes from the last one
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=settings.git_timeout_seconds * 10,
    task_time_limit=settings.git_timeout_seconds * 20,
    result_expires=6 * 3600,
    task_routes={
        "stsync.workers.tasks.compute_file_operations_task": {"queue": "st_derivation"},
        "stsync.workers.tasks.sync_foreign_repository_task": {"queue": "st_transfer"},
    },
    broker_connection_retry_on_startup=True,
    broker_transport_options={"health_check_interval": 30, "retry_on_timeout": True},
)

celery_app.autodiscover_tasks(["stsync.workers"])
