"""AI recommendation endpoints."""
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vibe_search.database import get_db
from vibe_search.dependencies import CurrentUser, get_current_user, get_recommendation_service
from vibe_search.schemas.common import APIResponse
from vibe_search.schemas.search import ProductResponse, RecommendationResponse
from vibe_search.services.recommendation_service import MAX_RECOMMENDATIONS, RecommendationService

router = APIRouter()


@router.get("/recommendations", response_model=APIResponse)
async def get_recommendations(
    limit: int = Query(5, ge=1, le=MAX_RECOMMENDATIONS),
    category: str | None = None,
    exclude: list[uuid.UUID] = Query(default=[]),
    db: AsyncSession = Depends(get_db),
    service: RecommendationService = Depends(get_recommendation_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Products similar to the caller's recent searches, or popular ones."""
    outcome = await service.recommend(
        db,
        current_user.id,
        limit=limit,
        exclude_ids=exclude,
        category=category,
    )
    data = RecommendationResponse(
        products=[ProductResponse.model_validate(p) for p in outcome.products],
        reason=outcome.reason,
    )
    return {"status": "success", "data": data.model_dump(mode="json")}
