from sqlalchemy import Column, Integer, ForeignKey, Numeric, Boolean, String
from sqlalchemy.orm import relationship

from app.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(Integer, nullable=False)
    name = Column(String, nullable=True)
    category_code = Column(String, nullable=True)

    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)  # snapshot ceny
    is_free_item = Column(Boolean, nullable=False, default=False)
    free_quantity = Column(Integer, nullable=False, default=0)

    cart = relationship("CartModel", back_populates="items")
