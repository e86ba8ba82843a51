from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, Numeric, DateTime
from sqlalchemy.orm import relationship

from app.data.database import Base


class PromotionUsageModel(Base):
    """Historia uzyc - wpis bez order_id to rezerwacja z koszyka."""

    __tablename__ = "promotion_usages"

    id = Column(Integer, primary_key=True)
    promotion_id = Column(Integer, ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    order_id = Column(Integer, nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)

    promotion = relationship("PromotionModel", back_populates="usages")
