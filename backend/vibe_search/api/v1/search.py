"""Search API endpoints: hybrid product search and manual vectorization."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vibe_search.database import get_db
from vibe_search.dependencies import (
    CurrentUser,
    get_optional_user,
    get_search_engine,
    get_vectorization_pipeline,
    require_role,
)
from vibe_search.middleware.metrics import record_search, record_vectorized
from vibe_search.schemas.common import APIResponse
from vibe_search.schemas.search import (
    BatchVectorizeRequest,
    BatchVectorizeResponse,
    ProductResponse,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    VectorizeRequest,
    VectorizeResponse,
)
from vibe_search.services.search_service import HybridSearchEngine, SearchParams
from vibe_search.services.vectorization_service import VectorizationPipeline

router = APIRouter()


@router.get("", response_model=APIResponse)
async def search_products(
    params: Annotated[SearchRequest, Query()],
    db: AsyncSession = Depends(get_db),
    engine: HybridSearchEngine = Depends(get_search_engine),
    current_user: CurrentUser | None = Depends(get_optional_user),
):
    """Hybrid search: vector similarity with keyword fallback."""
    outcome = await engine.search(
        db,
        SearchParams(
            query=params.query,
            limit=params.limit,
            min_similarity=params.min_similarity,
            category=params.category,
            brand=params.brand,
        ),
        user_id=current_user.id if current_user else None,
    )
    record_search(outcome.method)

    items = [
        SearchResultItem(
            **ProductResponse.model_validate(r.product).model_dump(),
            similarity=r.similarity,
            source=r.source,
        )
        for r in outcome.results
    ]
    data = SearchResponse(products=items, total=outcome.total, method=outcome.method)
    return {"status": "success", "data": data.model_dump(mode="json")}


@router.post("/vectorize", response_model=APIResponse)
async def vectorize_product(
    body: VectorizeRequest,
    db: AsyncSession = Depends(get_db),
    pipeline: VectorizationPipeline = Depends(get_vectorization_pipeline),
    _admin: CurrentUser = require_role("admin"),
):
    """Embed one product (admin only)."""
    result = await pipeline.vectorize_product(db, body.product_id, body.force_regenerate)
    if result.status == "vectorized":
        record_vectorized("succeeded")
        message = "Product vectorized successfully"
    else:
        record_vectorized("skipped")
        message = "Product already has vector embedding"

    data = VectorizeResponse(
        message=message,
        product_id=result.product_id,
        status=result.status,
        vector_length=result.vector_length,
    )
    return {"status": "success", "data": data.model_dump(mode="json")}


@router.post("/vectorize/batch", response_model=APIResponse)
async def vectorize_products(
    body: BatchVectorizeRequest,
    db: AsyncSession = Depends(get_db),
    pipeline: VectorizationPipeline = Depends(get_vectorization_pipeline),
    _admin: CurrentUser = require_role("admin"),
):
    """Embed up to 100 products in rate-limited batches (admin only)."""
    report = await pipeline.vectorize_products(db, body.product_ids, body.force_regenerate)
    record_vectorized("succeeded", report.succeeded)
    record_vectorized("skipped", report.skipped)
    record_vectorized("failed", report.failed)

    data = BatchVectorizeResponse(
        processed=report.processed,
        succeeded=report.succeeded,
        skipped=report.skipped,
        failed_ids=report.failed_ids,
    )
    return {
        "status": "success",
        "data": data.model_dump(mode="json"),
        "message": f"Vectorized {report.succeeded}/{report.processed} products",
    }
