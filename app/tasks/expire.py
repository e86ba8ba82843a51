# app/tasks/expire.py
from datetime import timedelta

from app.data import models  # noqa: F401
from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.domain.models import utcnow
from app.repos.cart_repo import CartRepo
from app.utils.settings import CART_ABANDON_HOURS
from app.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.expire.expire_carts_task")
def expire_carts_task():
    """Aktywne koszyki po expires_at -> expired."""
    logger.info("Expire carts task started")

    db = SessionLocal()
    try:
        expired = CartRepo(db).expire_carts(utcnow())
        db.commit()
        logger.info(f"Expired {len(expired)} carts")
        return expired
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@celery_app.task(name="app.tasks.expire.mark_abandoned_carts_task")
def mark_abandoned_carts_task():
    """Aktywne koszyki z produktami, nieruszane od CART_ABANDON_HOURS -> abandoned."""
    logger.info("Mark abandoned carts task started")

    db = SessionLocal()
    try:
        abandoned = CartRepo(db).mark_abandoned(utcnow() - timedelta(hours=CART_ABANDON_HOURS))
        db.commit()
        logger.info(f"Marked {len(abandoned)} carts as abandoned")
        return abandoned
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
