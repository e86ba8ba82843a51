#app/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.orm import relationship

from app.data.database import Base


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    store_id = Column(Integer, nullable=False)

    status = Column(String, nullable=False, default="active")  # active, abandoned, checked_out, expired
    version = Column(Integer, nullable=False, default=1)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.position",
    )
    applied_promotions = relationship(
        "AppliedPromotionModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="AppliedPromotionModel.position",
    )

    __table_args__ = (
        Index("ix_carts_user_store_status", "user_id", "store_id", "status"),
        Index("ix_carts_status_last_updated", "status", "last_updated"),
    )
