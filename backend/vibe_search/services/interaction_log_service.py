"""Best-effort AI interaction logging off the request path."""
import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vibe_search.models.interaction_log import AIInteractionLog, InteractionType
from vibe_search.repositories import interaction_log_repository

logger = logging.getLogger(__name__)


class InteractionLogDispatcher:
    """Append interaction log entries in background tasks.

    Each entry is written on its own session so a failed insert never
    touches the caller's transaction. Failures are logged and dropped.
    ``drain()`` waits for in-flight writes (shutdown and tests).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory
        self._tasks: set[asyncio.Task] = set()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from vibe_search.database import async_session_factory

            self._session_factory = async_session_factory
        return self._session_factory

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(
        self,
        interaction_type: InteractionType,
        *,
        user_id: str | None,
        session_id: str,
        query_text: str | None = None,
        related_product_ids: Iterable[Any] = (),
    ) -> asyncio.Task:
        """Schedule one log insert and return immediately."""
        entry = AIInteractionLog(
            user_id=user_id,
            interaction_type=interaction_type,
            query_text=query_text,
            related_product_ids=[str(pid) for pid in related_product_ids],
            session_id=session_id,
        )
        task = asyncio.create_task(self._write(entry))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _write(self, entry: AIInteractionLog) -> None:
        try:
            async with self.session_factory() as session:
                await interaction_log_repository.append(session, entry)
                await session.commit()
        except Exception as exc:
            logger.warning(
                "Failed to write %s interaction log (session=%s): %s",
                entry.interaction_type.value, entry.session_id, exc,
            )

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


async def recent_queries(db: AsyncSession, user_id: str, *, log_limit: int = 10, max_queries: int = 5) -> list[str]:
    """Non-empty query texts from the user's most recent interactions."""
    logs = await interaction_log_repository.list_recent_for_user(db, user_id, limit=log_limit)
    return [log.query_text for log in logs if log.query_text and log.query_text.strip()][:max_queries]
