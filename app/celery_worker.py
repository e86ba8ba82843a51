# app/celery_worker.py
from celery import Celery
from celery.signals import setup_logging

from app.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND
from app.utils.logging import init_logging

celery_app = Celery(
    "cart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# explicite importuj taski, zeby Celery je zarejestrowal
celery_app.conf.imports = (
    "app.tasks.expire",
    "app.tasks.usage",
)

celery_app.conf.beat_schedule = {
    "expire-carts-every-minute": {
        "task": "app.tasks.expire.expire_carts_task",
        "schedule": 60.0,
    },
    "mark-abandoned-carts-hourly": {
        "task": "app.tasks.expire.mark_abandoned_carts_task",
        "schedule": 3600.0,
    },
    "reconcile-usage-counters-hourly": {
        "task": "app.tasks.usage.reconcile_usage_counters_task",
        "schedule": 3600.0,
    },
}

celery_app.conf.timezone = "UTC"


@setup_logging.connect
def _setup_logging(**kwargs):
    init_logging()
