"""FastAPI dependency injection utilities."""
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from vibe_search.config import settings
from vibe_search.integrations.ai.embeddings import EmbeddingProvider, get_embedding_provider
from vibe_search.services.interaction_log_service import InteractionLogDispatcher
from vibe_search.services.recommendation_service import RecommendationService
from vibe_search.services.search_service import HybridSearchEngine
from vibe_search.services.vectorization_service import VectorizationPipeline

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Identity carried by a verified bearer token (issued by the auth service)."""

    id: str
    role: str = "customer"


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def _user_from_token(token: str) -> CurrentUser:
    try:
        payload = decode_access_token(token)
    except JWTError as e:
        detail = "Token expired" if "expired" in str(e).lower() else "Invalid token"
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return CurrentUser(id=str(user_id), role=str(payload.get("role") or "customer"))


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser | None:
    """Anonymous callers get None; a presented but invalid token is still rejected."""
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return _user_from_token(credentials.credentials)


def require_role(*roles: str):
    """Role-based access control dependency."""
    async def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user
    return Depends(dependency)


# ── Services ──

_embedder: EmbeddingProvider | None = None
log_dispatcher = InteractionLogDispatcher()


def get_embedder() -> EmbeddingProvider:
    global _embedder
    if _embedder is None:
        _embedder = get_embedding_provider()
    return _embedder


async def close_embedder() -> None:
    global _embedder
    if _embedder is not None:
        await _embedder.aclose()
        _embedder = None


def get_log_dispatcher() -> InteractionLogDispatcher:
    return log_dispatcher


def get_search_engine(
    embedder: EmbeddingProvider = Depends(get_embedder),
    dispatcher: InteractionLogDispatcher = Depends(get_log_dispatcher),
) -> HybridSearchEngine:
    return HybridSearchEngine(embedder, dispatcher)


def get_vectorization_pipeline(
    embedder: EmbeddingProvider = Depends(get_embedder),
) -> VectorizationPipeline:
    return VectorizationPipeline(embedder)


def get_recommendation_service(
    embedder: EmbeddingProvider = Depends(get_embedder),
    dispatcher: InteractionLogDispatcher = Depends(get_log_dispatcher),
) -> RecommendationService:
    return RecommendationService(embedder, dispatcher)
