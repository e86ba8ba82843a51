#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.data.models.applied_promotion import AppliedPromotionModel
from app.data.models.promotion import PromotionModel
from app.data.models.promotion_usage import PromotionUsageModel

__all__ = [
    "CartModel",
    "CartItemModel",
    "AppliedPromotionModel",
    "PromotionModel",
    "PromotionUsageModel",
]
