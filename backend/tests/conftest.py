"""Shared test fixtures with in-memory SQLite."""
import asyncio
import hashlib
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("EMBEDDING_PROVIDER", "mock")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from vibe_search.config import settings
from vibe_search.database import get_db
from vibe_search.dependencies import get_embedder, get_log_dispatcher
from vibe_search.exceptions import EmbeddingProviderError
from vibe_search.integrations.ai.embeddings import EmbeddingProvider, embedding_version
from vibe_search.integrations.resilience import InMemoryRateLimiter
from vibe_search.main import create_app
from vibe_search.models.base import Base
from vibe_search.models.product import Product, ProductStatus
from vibe_search.services.interaction_log_service import InteractionLogDispatcher

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_DIMENSION = 8


async def _no_sleep(_delay: float) -> None:
    return None


class FakeEmbedder(EmbeddingProvider):
    """Deterministic in-process provider.

    ``vectors`` pins exact texts to vectors, ``fail_on`` makes any text
    containing one of its markers fail with quota_exceeded, ``down``
    fails every call with a 503, ``delay`` slows every call.
    """

    name = "fake"

    def __init__(self, dimension: int = TEST_DIMENSION):
        super().__init__("fake-embedding", dimension, max_concurrency=3, max_retries=0, sleep=_no_sleep)
        self.vectors: dict[str, list[float]] = {}
        self.fail_on: set[str] = set()
        self.down = False
        self.delay = 0.0
        self.calls: list[str] = []

    async def _embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.down:
            raise EmbeddingProviderError("Provider unavailable", "server_error", status_code=503, provider=self.name)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingProviderError("Quota exceeded", "quota_exceeded", status_code=429, provider=self.name)
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode()).digest()
        return [digest[i] / 255.0 - 0.5 for i in range(self.dimension)]


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
async def dispatcher(session_factory):
    log_dispatcher = InteractionLogDispatcher(session_factory)
    yield log_dispatcher
    await log_dispatcher.drain()


@pytest.fixture
def current_version(embedder):
    return embedding_version(embedder)


@pytest.fixture
def make_product(db_session):
    """Insert a product; catalog order follows creation order."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    async def _make(name: str = "Test Product", **fields) -> Product:
        counter["n"] += 1
        fields.setdefault("description", None)
        fields.setdefault("price", 10.0)
        fields.setdefault("stock_quantity", 5)
        fields.setdefault("category", "general")
        fields.setdefault("brand", "Acme")
        fields.setdefault("status", ProductStatus.ACTIVE)
        fields.setdefault("created_at", base + timedelta(seconds=counter["n"]))
        product = Product(name=name, **fields)
        db_session.add(product)
        await db_session.commit()
        return product

    return _make


def make_token(user_id: str = "user-1", role: str = "customer") -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=30),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user-1", role: str = "customer") -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}

    return _headers


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers("admin-1", "admin")


@pytest.fixture
def rate_limiter():
    return InMemoryRateLimiter(limit=1000, window=60)


@pytest.fixture
async def app(session_factory, embedder, dispatcher, rate_limiter):
    application = create_app(rate_limiter=rate_limiter)

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_embedder] = lambda: embedder
    application.dependency_overrides[get_log_dispatcher] = lambda: dispatcher
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
