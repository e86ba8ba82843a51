from datetime import datetime, timezone

from sqlalchemy import Column, Integer, Numeric, Boolean, String, DateTime, JSON, Text, Index
from sqlalchemy.orm import relationship

from app.data.database import Base


class PromotionModel(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True)
    store_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    code = Column(String, nullable=True, unique=True)  # zawsze UPPERCASE

    type = Column(String, nullable=False)  # cartTotal, quantityDiscount, buyXGetY
    rule = Column(JSON, nullable=False)

    applicable_products = Column(JSON, nullable=False, default=list)
    applicable_categories = Column(JSON, nullable=False, default=list)
    excluded_products = Column(JSON, nullable=False, default=list)
    excluded_categories = Column(JSON, nullable=False, default=list)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    max_usage = Column(Integer, nullable=False, default=0)  # 0 = bez limitu
    current_usage = Column(Integer, nullable=False, default=0)
    max_usage_per_user = Column(Integer, nullable=False, default=1)
    min_order_amount = Column(Numeric(12, 2), nullable=False, default=0)

    priority = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    auto_apply = Column(Boolean, nullable=False, default=False)
    requires_code = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    usages = relationship(
        "PromotionUsageModel",
        back_populates="promotion",
        cascade="all, delete-orphan",
        order_by="PromotionUsageModel.id",
    )

    __table_args__ = (
        Index("ix_promotions_store_window", "store_id", "is_active", "start_date", "end_date"),
    )
