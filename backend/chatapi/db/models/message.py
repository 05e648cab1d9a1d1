from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Enum, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from chatapi.db.base import Base

MESSAGE_ROLES = ("user", "assistant", "system", "tool")
MODEL_NAME_MAX_LENGTH = 120

message_role_enum = Enum(*MESSAGE_ROLES, name="message_role")


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    conversation_id: Mapped[UUID] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[str] = mapped_column(message_role_enum, nullable=False)

    # {"parts": [{"type": "text", "text": "..."}, ...]}
    content: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    # {"inputTokens": .., "outputTokens": .., "totalTokens": ..}
    token_usage: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    model: Mapped[str | None] = mapped_column(String(MODEL_NAME_MAX_LENGTH), nullable=True)
