"""
Worker / beat entry point.

    celery -A celery_worker worker -l info
    celery -A celery_worker beat -l info
"""
from app.celery_app import celery_app as app
from app.logging_config import setup_logging

setup_logging()

__all__ = ["app"]
