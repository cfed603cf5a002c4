"""Vectorization tasks — HIGH queue.

Backfill embeddings outside the request path. Each task opens its own
session and embedding provider and closes both when done.
"""
import asyncio
import logging
import uuid as _uuid
from dataclasses import asdict
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vibe_search.integrations.ai.embeddings import EmbeddingProvider, get_embedding_provider
from vibe_search.services.vectorization_service import BatchReport, VectorizationPipeline
from vibe_search.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def report_to_dict(report: BatchReport) -> dict[str, Any]:
    data = asdict(report)
    data["failed_ids"] = [str(pid) for pid in report.failed_ids]
    data["processed"] = report.processed
    return data


async def run_pipeline(
    product_ids: list[str] | None = None,
    force_regenerate: bool = False,
    batch_size: int | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    embedder: EmbeddingProvider | None = None,
) -> BatchReport:
    """Run a backfill (all products) or a vectorization of the given ids."""
    if session_factory is None:
        from vibe_search.database import async_session_factory

        session_factory = async_session_factory

    owns_embedder = embedder is None
    embedder = embedder or get_embedding_provider()
    pipeline = VectorizationPipeline(embedder, batch_size=batch_size)
    try:
        async with session_factory() as db:
            if product_ids is None:
                return await pipeline.backfill(db, force_regenerate=force_regenerate)
            ids = [_uuid.UUID(str(pid)) for pid in product_ids]
            return await pipeline.vectorize_products(db, ids, force_regenerate=force_regenerate)
    finally:
        if owns_embedder:
            await embedder.aclose()


@celery_app.task(name="vibe_search.tasks.vectorization_tasks.backfill_embeddings")
def backfill_embeddings(force_regenerate: bool = False) -> dict[str, Any]:
    """Embed every product lacking a current embedding."""
    report = asyncio.run(run_pipeline(force_regenerate=force_regenerate))
    logger.info("Backfill finished: %d/%d succeeded", report.succeeded, report.attempted)
    return report_to_dict(report)


@celery_app.task(name="vibe_search.tasks.vectorization_tasks.vectorize_products")
def vectorize_products(product_ids: list[str], force_regenerate: bool = False) -> dict[str, Any]:
    """Embed the given products."""
    report = asyncio.run(run_pipeline(product_ids, force_regenerate=force_regenerate))
    logger.info("Vectorized %d/%d requested products", report.succeeded, report.attempted)
    return report_to_dict(report)
