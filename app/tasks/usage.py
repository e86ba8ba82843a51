# app/tasks/usage.py
from app.data import models  # noqa: F401
from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.repos.promotion_repo import PromotionRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.usage.reconcile_usage_counters_task")
def reconcile_usage_counters_task():
    """
    Siatka bezpieczenstwa dla licznika uzyc: nieudane zwolnienie uzycia
    w orkiestratorze jest tylko logowane, tutaj current_usage wraca do
    liczby wierszy historii.
    """
    logger.info("Reconcile usage counters task started")

    db = SessionLocal()
    try:
        fixed = PromotionRepo(db).reconcile_usage_counters()
        db.commit()
        logger.info(f"Usage counters fixed for {len(fixed)} promotions")
        return {str(k): v for k, v in fixed.items()}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
