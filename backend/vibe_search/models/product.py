"""Product ORM model — the catalog searched by the hybrid engine."""
import enum

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vibe_search.models.base import Base, JSONType, TimestampMixin, UUIDMixin, pg_enum


class ProductStatus(str, enum.Enum):
    ACTIVE = "active"
    OUT_OF_STOCK = "out_of_stock"
    ARCHIVED = "archived"


class Product(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    brand: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    status: Mapped[ProductStatus] = mapped_column(
        pg_enum(ProductStatus, name="product_status"), nullable=False, default=ProductStatus.ACTIVE
    )
    # Whole-vector replacement only; "<model>:<combine version>" identifies how it was built
    vector_embedding: Mapped[list[float] | None] = mapped_column(JSONType, nullable=True)
    embedding_version: Mapped[str | None] = mapped_column(String(100), nullable=True)
