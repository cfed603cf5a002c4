"""Pydantic schemas for search, vectorization and recommendations API."""
import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from vibe_search.models.product import ProductStatus


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)
    limit: int = Field(default=10, ge=1, le=50)
    min_similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    category: str | None = None
    brand: str | None = None

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Query must not be blank")
        return v


class ProductResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    price: float
    stock_quantity: int
    category: str
    brand: str
    status: ProductStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SearchResultItem(ProductResponse):
    similarity: float
    source: Literal["vector", "keyword"]


class SearchResponse(BaseModel):
    products: list[SearchResultItem]
    total: int
    method: Literal["hybrid", "keyword", "keyword-fallback"]


class VectorizeRequest(BaseModel):
    product_id: uuid.UUID
    force_regenerate: bool = False


class VectorizeResponse(BaseModel):
    message: str
    product_id: uuid.UUID
    status: Literal["vectorized", "already_vectorized"]
    vector_length: int


class BatchVectorizeRequest(BaseModel):
    product_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=100)
    force_regenerate: bool = False


class BatchVectorizeResponse(BaseModel):
    processed: int
    succeeded: int
    skipped: int
    failed_ids: list[uuid.UUID]


class RecommendationResponse(BaseModel):
    products: list[ProductResponse]
    reason: Literal["personalized", "popular"]
