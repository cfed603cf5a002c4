"""Recommendation service tests."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from vibe_search.models.interaction_log import AIInteractionLog, InteractionType
from vibe_search.services.recommendation_service import RecommendationService

DIM = 8


def _unit(i: int) -> list[float]:
    v = [0.0] * DIM
    v[i] = 1.0
    return v


@pytest.fixture
def service(embedder, dispatcher):
    return RecommendationService(embedder, dispatcher)


@pytest.fixture
async def catalog(make_product, current_version):
    return [
        await make_product("Desk Lamp", category="lighting", vector_embedding=_unit(0), embedding_version=current_version),
        await make_product("Floor Lamp", category="lighting", vector_embedding=_unit(1), embedding_version=current_version),
        await make_product("Yoga Mat", category="fitness", vector_embedding=_unit(2), embedding_version=current_version),
    ]


@pytest.fixture
def add_history(db_session):
    base = datetime(2026, 3, 1, tzinfo=timezone.utc)

    async def _add(user_id: str, *queries: str) -> None:
        for i, query in enumerate(queries):
            db_session.add(AIInteractionLog(
                user_id=user_id,
                interaction_type=InteractionType.SEARCH,
                query_text=query,
                related_product_ids=[],
                session_id=f"sess-{i}",
                created_at=base + timedelta(minutes=i),
            ))
        await db_session.commit()

    return _add


async def test_no_history_gets_popular_products(service, db_session, catalog):
    outcome = await service.recommend(db_session, "new-user", limit=2)

    assert outcome.reason == "popular"
    assert [p.name for p in outcome.products] == ["Desk Lamp", "Floor Lamp"]


async def test_history_personalizes_ranking(service, embedder, db_session, catalog, add_history):
    embedder.vectors["yoga"] = _unit(2)
    embedder.vectors["stretching"] = _unit(2)
    await add_history("user-1", "yoga", "stretching")

    outcome = await service.recommend(db_session, "user-1", limit=1)

    assert outcome.reason == "personalized"
    assert [p.name for p in outcome.products] == ["Yoga Mat"]


async def test_blank_queries_ignored(service, db_session, catalog, add_history):
    await add_history("user-2", "", "   ")

    outcome = await service.recommend(db_session, "user-2")

    assert outcome.reason == "popular"


async def test_excluded_products_are_skipped(service, embedder, db_session, catalog, add_history):
    embedder.vectors["lamp"] = _unit(0)
    await add_history("user-1", "lamp")

    outcome = await service.recommend(db_session, "user-1", limit=2, exclude_ids=[catalog[0].id])

    assert catalog[0].id not in {p.id for p in outcome.products}
    assert len(outcome.products) == 2


async def test_exclusions_applied_before_ranking(service, embedder, db_session, catalog, add_history):
    embedder.vectors["lamp"] = [0.9, 0.4, 0.1] + [0.0] * (DIM - 3)
    await add_history("user-1", "lamp")

    outcome = await service.recommend(
        db_session, "user-1", limit=1, exclude_ids=[catalog[0].id, catalog[1].id],
    )

    assert outcome.reason == "personalized"
    assert [p.name for p in outcome.products] == ["Yoga Mat"]


async def test_category_filter_applies(service, db_session, catalog):
    outcome = await service.recommend(db_session, "new-user", category="fitness")
    assert [p.name for p in outcome.products] == ["Yoga Mat"]


async def test_provider_down_falls_back_to_popular(service, embedder, db_session, catalog, add_history):
    await add_history("user-1", "lamp")
    embedder.down = True

    outcome = await service.recommend(db_session, "user-1", limit=3)

    assert outcome.reason == "popular"
    assert len(outcome.products) == 3


@pytest.mark.parametrize("limit", [0, 21])
async def test_limit_out_of_range(service, db_session, limit):
    with pytest.raises(ValueError):
        await service.recommend(db_session, "user-1", limit=limit)


async def test_recommendation_is_logged(service, dispatcher, db_session, catalog):
    outcome = await service.recommend(db_session, "user-9", limit=2)
    await dispatcher.drain()

    log = (await db_session.execute(
        select(AIInteractionLog).where(AIInteractionLog.interaction_type == InteractionType.RECOMMENDATION)
    )).scalar_one()
    assert log.user_id == "user-9"
    assert log.related_product_ids == [str(p.id) for p in outcome.products]
