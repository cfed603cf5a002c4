"""Product vectorization: single item and batched backfill."""
import asyncio
import logging
import uuid as _uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from vibe_search.config import settings
from vibe_search.exceptions import CatalogStoreError, EmbeddingProviderError, ProductNotFoundError
from vibe_search.integrations.ai.embeddings import (
    EmbeddingProvider,
    combine_product_fields,
    embedding_version,
)
from vibe_search.models.product import Product
from vibe_search.repositories import product_repository
from vibe_search.repositories.product_repository import catalog_errors
from vibe_search.utils.helpers import chunk_list
from vibe_search.utils.vector_math import is_valid_vector

logger = logging.getLogger(__name__)

FAILURE_POLICIES = ("continue", "abort")


@dataclass
class VectorizeResult:
    product_id: _uuid.UUID
    status: Literal["vectorized", "already_vectorized"]
    vector_length: int


@dataclass
class BatchReport:
    """Outcome of one pipeline run. In-process only, never persisted."""

    attempted: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed_ids: list[_uuid.UUID] = field(default_factory=list)
    batches: int = 0

    @property
    def processed(self) -> int:
        return self.attempted

    @property
    def failed(self) -> int:
        return len(self.failed_ids)


class VectorizationPipeline:
    """Embed catalog products in sequential fixed-size batches.

    Within a batch, texts are embedded concurrently with per-item error
    capture. Under the ``continue`` policy every successful sibling of a
    failed item is persisted; under ``abort`` items after the first
    failure (in batch order) are counted failed without being written.
    Either way the run proceeds with the next batch. Each embedding is
    committed on its own, so a failed write only fails its own product.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        batch_size: int | None = None,
        batch_delay: float | None = None,
        failure_policy: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.embedder = embedder
        self.batch_size = batch_size or settings.VECTORIZE_BATCH_SIZE
        self.batch_delay = settings.VECTORIZE_BATCH_DELAY_SECONDS if batch_delay is None else batch_delay
        self.failure_policy = failure_policy or settings.VECTORIZE_FAILURE_POLICY
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"Unsupported failure policy: {self.failure_policy}")
        self._sleep = sleep

    @property
    def version(self) -> str:
        return embedding_version(self.embedder)

    def has_current_embedding(self, product: Product) -> bool:
        return product.embedding_version == self.version and is_valid_vector(
            product.vector_embedding, self.embedder.dimension
        )

    # ── Single item ──

    async def vectorize_product(
        self,
        db: AsyncSession,
        product_id: _uuid.UUID,
        force_regenerate: bool = False,
    ) -> VectorizeResult:
        product = await product_repository.get_by_id(db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        if not force_regenerate and self.has_current_embedding(product):
            return VectorizeResult(product.id, "already_vectorized", len(product.vector_embedding))

        vector = await self.embedder.embed_text(combine_product_fields(product))
        await product_repository.update_embedding(db, product.id, vector, self.version)
        with catalog_errors("commit embedding"):
            await db.commit()

        logger.info("Vectorized product %s (%d dims)", product_id, len(vector))
        return VectorizeResult(product_id, "vectorized", len(vector))

    # ── Batches ──

    async def vectorize_products(
        self,
        db: AsyncSession,
        product_ids: Sequence[_uuid.UUID],
        force_regenerate: bool = False,
    ) -> BatchReport:
        """Vectorize the given products; unknown ids are reported as failed."""
        wanted = list(dict.fromkeys(product_ids))
        products = await product_repository.list_products(db, product_ids=wanted)
        found = {p.id for p in products}

        report = BatchReport()
        missing = [pid for pid in wanted if pid not in found]
        if missing:
            logger.warning("Vectorize requested for %d unknown products", len(missing))
            report.attempted += len(missing)
            report.failed_ids.extend(missing)

        return await self._run(db, products, force_regenerate, report)

    async def backfill(self, db: AsyncSession, force_regenerate: bool = False) -> BatchReport:
        """Vectorize every product lacking a current embedding (all when forced)."""
        products = await product_repository.list_products(db)
        return await self._run(db, products, force_regenerate, BatchReport())

    async def _run(
        self,
        db: AsyncSession,
        products: list[Product],
        force_regenerate: bool,
        report: BatchReport,
    ) -> BatchReport:
        # Snapshot ids and texts up front: a rollback expires loaded rows.
        todo: list[tuple[_uuid.UUID, str]] = []
        for product in products:
            if force_regenerate or not self.has_current_embedding(product):
                todo.append((product.id, combine_product_fields(product)))
            else:
                report.skipped += 1

        if not todo:
            logger.info("Nothing to vectorize (%d already current)", report.skipped)
            return report

        batches = chunk_list(todo, self.batch_size)
        for index, batch in enumerate(batches):
            if index:
                await self._sleep(self.batch_delay)

            report.batches += 1
            report.attempted += len(batch)
            logger.info("Processing batch %d/%d (%d products)", index + 1, len(batches), len(batch))

            try:
                succeeded, failed = await self._process_batch(db, batch)
            except Exception as exc:
                logger.error("Batch %d failed, skipping to next batch: %s", index + 1, exc)
                await db.rollback()
                report.failed_ids.extend(pid for pid, _ in batch)
                continue

            report.succeeded += len(succeeded)
            report.failed_ids.extend(failed)

        logger.info(
            "Vectorization complete: %d/%d succeeded, %d skipped, %d failed",
            report.succeeded, report.attempted, report.skipped, report.failed,
        )
        return report

    async def _process_batch(
        self,
        db: AsyncSession,
        batch: list[tuple[_uuid.UUID, str]],
    ) -> tuple[list[_uuid.UUID], list[_uuid.UUID]]:
        results = await self.embedder.embed_batch([text for _, text in batch], return_exceptions=True)

        succeeded: list[_uuid.UUID] = []
        failed: list[_uuid.UUID] = []
        aborted = False
        for (product_id, _), result in zip(batch, results):
            if aborted:
                failed.append(product_id)
                continue
            if isinstance(result, EmbeddingProviderError):
                logger.warning("Embedding failed for product %s: %s", product_id, result)
                failed.append(product_id)
                aborted = self.failure_policy == "abort"
                continue
            try:
                await product_repository.update_embedding(db, product_id, result, self.version)
                with catalog_errors("commit embedding"):
                    await db.commit()
            except CatalogStoreError as exc:
                logger.warning("Storing embedding failed for product %s: %s", product_id, exc)
                await db.rollback()
                failed.append(product_id)
                aborted = self.failure_policy == "abort"
                continue
            succeeded.append(product_id)

        return succeeded, failed
