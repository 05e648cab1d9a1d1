from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from chatapi.db.base import Base

TITLE_MAX_LENGTH = 120


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        CheckConstraint("updated_at >= created_at", name="ck_conversations_updated_after_created"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Bumped whenever a message is appended.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    # NOTE: attribute name cannot be `metadata` (reserved by SQLAlchemy Declarative API).
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB, nullable=True)
