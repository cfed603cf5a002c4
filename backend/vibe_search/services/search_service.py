"""Hybrid product search: vector similarity with keyword fallback."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from vibe_search.config import settings
from vibe_search.exceptions import DimensionMismatch, SearchValidationError
from vibe_search.integrations.ai.embeddings import EmbeddingProvider, embedding_version
from vibe_search.models.interaction_log import InteractionType
from vibe_search.models.product import Product
from vibe_search.repositories import product_repository
from vibe_search.services.interaction_log_service import InteractionLogDispatcher
from vibe_search.utils.helpers import new_session_id, sanitize_prompt, truncate
from vibe_search.utils.vector_math import VectorCandidate, find_top_k_similar, is_valid_vector

logger = logging.getLogger(__name__)

KEYWORD_MATCH_SCORE = 0.3
MAX_QUERY_LENGTH = 500
MAX_LIMIT = 50

SearchMethod = Literal["hybrid", "keyword", "keyword-fallback"]


@dataclass
class SearchParams:
    """Search input for direct callers; the HTTP layer builds it from SearchRequest."""

    query: str
    limit: int = 10
    min_similarity: float = 0.5
    category: str | None = None
    brand: str | None = None


@dataclass
class ScoredProduct:
    product: Product
    similarity: float
    source: Literal["vector", "keyword"]


@dataclass
class SearchOutcome:
    results: list[ScoredProduct] = field(default_factory=list)
    method: SearchMethod = "keyword"

    @property
    def total(self) -> int:
        return len(self.results)


def validate_params(params: SearchParams) -> str:
    """Check bounds and return the sanitized query."""
    if not params.query or len(params.query) > MAX_QUERY_LENGTH:
        raise SearchValidationError(
            f"Query must be between 1 and {MAX_QUERY_LENGTH} characters", field="query"
        )
    if not 1 <= params.limit <= MAX_LIMIT:
        raise SearchValidationError(f"Limit must be between 1 and {MAX_LIMIT}", field="limit")
    if not 0.0 <= params.min_similarity <= 1.0:
        raise SearchValidationError("min_similarity must be between 0 and 1", field="min_similarity")

    query = sanitize_prompt(params.query)
    if not query:
        raise SearchValidationError("Query is empty after sanitization", field="query")
    return query


def keyword_matches(product: Product, query: str) -> bool:
    needle = query.lower()
    for value in (product.name, product.description, product.category, product.brand):
        if value and needle in value.lower():
            return True
    return False


def merge_results(
    vector_results: list[ScoredProduct],
    keyword_results: list[ScoredProduct],
    limit: int,
) -> list[ScoredProduct]:
    """Vector hits first, then keyword hits not already present, cut to ``limit``.

    A product found by both paths keeps its vector entry.
    """
    seen = {r.product.id for r in vector_results}
    merged = vector_results + [r for r in keyword_results if r.product.id not in seen]
    return merged[:limit]


class HybridSearchEngine:
    """Per-request search pipeline; holds no state between requests."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        log_dispatcher: InteractionLogDispatcher | None = None,
        embed_timeout: float | None = None,
    ):
        self.embedder = embedder
        self.log_dispatcher = log_dispatcher
        self.embed_timeout = embed_timeout or settings.EMBEDDING_TIMEOUT_SECONDS

    def has_usable_embedding(self, product: Product) -> bool:
        return (
            product.embedding_version == embedding_version(self.embedder)
            and is_valid_vector(product.vector_embedding, self.embedder.dimension)
        )

    async def _embed_query(self, query: str) -> list[float] | None:
        try:
            return await asyncio.wait_for(self.embedder.embed_text(query), timeout=self.embed_timeout)
        except asyncio.TimeoutError:
            logger.warning("Query embedding timed out after %.1fs", self.embed_timeout)
        except Exception as exc:
            logger.warning("Query embedding failed, falling back to keyword search: %s", exc)
        return None

    async def search(
        self,
        db: AsyncSession,
        params: SearchParams,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> SearchOutcome:
        query = validate_params(params)

        query_vector = await self._embed_query(query)
        vector_failed = query_vector is None

        candidates = await product_repository.list_search_candidates(
            db, category=params.category, brand=params.brand
        )
        with_vectors = [p for p in candidates if self.has_usable_embedding(p)]
        usable_ids = {p.id for p in with_vectors}

        vector_results: list[ScoredProduct] = []
        if not vector_failed:
            try:
                matches = find_top_k_similar(
                    query_vector,
                    [VectorCandidate(p.id, p.vector_embedding, p) for p in with_vectors],
                    2 * params.limit,
                )
            except DimensionMismatch as exc:
                logger.error("Vector scoring failed: %s", exc)
                vector_failed = True
            else:
                vector_results = [
                    ScoredProduct(m.data, m.similarity, "vector")
                    for m in matches
                    if m.similarity >= params.min_similarity
                ]

        keyword_pool = candidates if vector_failed else [p for p in candidates if p.id not in usable_ids]
        keyword_results = [
            ScoredProduct(p, KEYWORD_MATCH_SCORE, "keyword")
            for p in keyword_pool
            if keyword_matches(p, query)
        ]

        merged = merge_results(vector_results, keyword_results, params.limit)

        if vector_failed:
            method: SearchMethod = "keyword-fallback"
        elif vector_results:
            method = "hybrid"
        else:
            method = "keyword"

        logger.info(
            "Search '%s' → %d results (method=%s, vector=%d, keyword=%d)",
            truncate(query, 50), len(merged), method, len(vector_results), len(keyword_results),
        )

        if self.log_dispatcher is not None:
            self.log_dispatcher.dispatch(
                InteractionType.SEARCH,
                user_id=user_id,
                session_id=session_id or new_session_id(),
                query_text=query,
                related_product_ids=[r.product.id for r in merged],
            )

        return SearchOutcome(results=merged, method=method)
