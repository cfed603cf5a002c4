"""AI interaction log ORM model (append-only)."""
import enum

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vibe_search.models.base import Base, CreatedAtMixin, JSONType, UUIDMixin, pg_enum


class InteractionType(str, enum.Enum):
    SEARCH = "search"
    RECOMMENDATION = "recommendation"
    CONVERSATION = "conversation"


class AIInteractionLog(Base, UUIDMixin, CreatedAtMixin):
    __tablename__ = "ai_interaction_logs"

    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    interaction_type: Mapped[InteractionType] = mapped_column(
        pg_enum(InteractionType, name="interaction_type"), nullable=False
    )
    query_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    related_product_ids: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
