from celery import Celery
from app.config import settings

celery_app = Celery(
    "customdomains",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.broker_connection_retry_on_startup = True

celery_app.conf.task_routes = {
    "app.tasks.*": {"queue": "celery"}
}

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

# Poll Cloudflare for domains still waiting on hostname / certificate activation
celery_app.conf.beat_schedule = {
    "refresh-pending-custom-domains": {
        "task": "app.tasks.domain_tasks.refresh_pending_domains_task",
        "schedule": float(settings.DOMAIN_REFRESH_INTERVAL_SECONDS),
    },
}

# Auto-discover tasks so that @celery_app.task decorators in app/tasks/ get registered
celery_app.autodiscover_tasks(['app.tasks'])

# Explicitly import tasks to ensure they are registered
import app.tasks.domain_tasks  # noqa: F401, E402
