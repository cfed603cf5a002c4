"""AI interaction log data access layer. Append and read only."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vibe_search.models.interaction_log import AIInteractionLog
from vibe_search.repositories.product_repository import catalog_errors


async def append(db: AsyncSession, entry: AIInteractionLog) -> AIInteractionLog:
    db.add(entry)
    with catalog_errors("append interaction log"):
        await db.flush()
    return entry


async def list_recent_for_user(db: AsyncSession, user_id: str, limit: int = 10) -> list[AIInteractionLog]:
    q = (
        select(AIInteractionLog)
        .where(AIInteractionLog.user_id == user_id)
        .order_by(AIInteractionLog.created_at.desc())
        .limit(limit)
    )
    with catalog_errors("list interaction logs"):
        rows = (await db.execute(q)).scalars().all()
    return list(rows)
