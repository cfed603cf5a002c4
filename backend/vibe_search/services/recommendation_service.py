"""Personalized product recommendations from a user's recent AI interactions."""
import logging
import uuid as _uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from vibe_search.integrations.ai.embeddings import EmbeddingProvider, embedding_version
from vibe_search.models.interaction_log import InteractionType
from vibe_search.models.product import Product
from vibe_search.repositories import product_repository
from vibe_search.services.interaction_log_service import InteractionLogDispatcher, recent_queries
from vibe_search.utils.helpers import new_session_id
from vibe_search.utils.vector_math import (
    VectorCandidate,
    average_vectors,
    find_top_k_similar,
    is_valid_vector,
)

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 20


@dataclass
class RecommendationOutcome:
    products: list[Product] = field(default_factory=list)
    reason: Literal["personalized", "popular"] = "popular"


class RecommendationService:
    """Rank active products against the average embedding of recent queries.

    Users without history, or whose queries cannot be embedded, get the
    first active products of the catalog ("popular").
    """

    def __init__(self, embedder: EmbeddingProvider, log_dispatcher: InteractionLogDispatcher | None = None):
        self.embedder = embedder
        self.log_dispatcher = log_dispatcher

    async def _preference_vector(self, queries: list[str]) -> list[float]:
        try:
            vectors = await self.embedder.embed_batch(queries)
        except Exception as exc:
            logger.warning("Preference embedding failed, using popular products: %s", exc)
            return []
        return average_vectors(vectors)

    async def recommend(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int = 5,
        exclude_ids: Iterable[_uuid.UUID] = (),
        category: str | None = None,
    ) -> RecommendationOutcome:
        if not 1 <= limit <= MAX_RECOMMENDATIONS:
            raise ValueError(f"Limit must be between 1 and {MAX_RECOMMENDATIONS}")
        excluded = set(exclude_ids)

        queries = await recent_queries(db, user_id)
        candidates = await product_repository.list_search_candidates(db, category=category)
        preference = await self._preference_vector(queries) if queries else []

        if preference:
            version = embedding_version(self.embedder)
            pool = [
                VectorCandidate(p.id, p.vector_embedding, p)
                for p in candidates
                if p.id not in excluded
                and p.embedding_version == version
                and is_valid_vector(p.vector_embedding, self.embedder.dimension)
            ]
            products = [m.data for m in find_top_k_similar(preference, pool, limit)]
            outcome = RecommendationOutcome(products, "personalized")
        else:
            products = [p for p in candidates if p.id not in excluded][:limit]
            outcome = RecommendationOutcome(products, "popular")

        logger.info(
            "Recommendations for user %s: %d products (%s, %d recent queries)",
            user_id, len(outcome.products), outcome.reason, len(queries),
        )

        if self.log_dispatcher is not None:
            self.log_dispatcher.dispatch(
                InteractionType.RECOMMENDATION,
                user_id=user_id,
                session_id=new_session_id(),
                related_product_ids=[p.id for p in outcome.products],
            )
        return outcome
