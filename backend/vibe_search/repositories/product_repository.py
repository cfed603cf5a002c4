"""Product catalog data access layer."""
import uuid as _uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vibe_search.exceptions import CatalogStoreError
from vibe_search.models.product import Product, ProductStatus


@contextmanager
def catalog_errors(action: str) -> Iterator[None]:
    """Re-raise database failures as CatalogStoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise CatalogStoreError(f"Catalog store failed to {action}", {"error": str(exc)}) from exc


async def get_by_id(db: AsyncSession, product_id: _uuid.UUID) -> Product | None:
    with catalog_errors("load product"):
        q = select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        return (await db.execute(q)).scalar_one_or_none()


async def list_products(
    db: AsyncSession,
    *,
    product_ids: Sequence[_uuid.UUID] | None = None,
) -> list[Product]:
    """All products, or the given ids, in catalog order."""
    q = select(Product).execution_options(populate_existing=True)
    if product_ids is not None:
        q = q.where(Product.id.in_(list(product_ids)))
    with catalog_errors("list products"):
        rows = (await db.execute(q.order_by(Product.created_at, Product.id))).scalars().all()
    return list(rows)


async def list_search_candidates(
    db: AsyncSession,
    *,
    category: str | None = None,
    brand: str | None = None,
    limit: int | None = None,
) -> list[Product]:
    """Active products matching the hard filters, in catalog order."""
    q = (
        select(Product)
        .where(Product.status == ProductStatus.ACTIVE)
        .execution_options(populate_existing=True)
    )
    if category:
        q = q.where(Product.category == category)
    if brand:
        q = q.where(Product.brand == brand)
    q = q.order_by(Product.created_at, Product.id)
    if limit is not None:
        q = q.limit(limit)

    with catalog_errors("list search candidates"):
        rows = (await db.execute(q)).scalars().all()
    return list(rows)


async def update_embedding(
    db: AsyncSession,
    product_id: _uuid.UUID,
    vector: list[float],
    version: str,
) -> None:
    """Replace one product's whole embedding. Last write wins."""
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(vector_embedding=list(vector), embedding_version=version)
    )
    with catalog_errors("update embedding"):
        await db.execute(stmt)
