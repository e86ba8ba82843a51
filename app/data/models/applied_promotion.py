from sqlalchemy import Column, Integer, ForeignKey, Numeric, Boolean, String, DateTime, JSON
from sqlalchemy.orm import relationship

from app.data.database import Base


class AppliedPromotionModel(Base):
    __tablename__ = "applied_promotions"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    promotion_id = Column(Integer, ForeignKey("promotions.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    code = Column(String, nullable=True)
    applied_at = Column(DateTime(timezone=True), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    is_auto_applied = Column(Boolean, nullable=False, default=False)
    discounts = Column(JSON, nullable=False, default=list)  # rabaty z momentu naliczenia

    cart = relationship("CartModel", back_populates="applied_promotions")
