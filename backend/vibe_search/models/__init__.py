"""SQLAlchemy ORM models - catalog products and AI interaction logs."""
from vibe_search.models.base import Base, CreatedAtMixin, TimestampMixin, UUIDMixin
from vibe_search.models.product import Product, ProductStatus
from vibe_search.models.interaction_log import AIInteractionLog, InteractionType

__all__ = [
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    "Product",
    "ProductStatus",
    "AIInteractionLog",
    "InteractionType",
]
