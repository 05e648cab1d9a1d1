from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pgvector.sqlalchemy import Vector
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from chatapi.db.base import Base


class MessageEmbedding(Base):
    """
    One vector per message. The message id is both the primary key and the
    cascading foreign key, so an embedding never outlives its message.

    The vector column is declared without a fixed dimension so different
    embedding models can coexist; `dimensions` records the length and a check
    constraint keeps the two in agreement.
    """

    __tablename__ = "message_embeddings"
    __table_args__ = (
        CheckConstraint("dimensions > 0", name="ck_message_embeddings_dimensions_positive"),
        CheckConstraint("vector_dims(embedding) = dimensions", name="ck_message_embeddings_dims_match"),
    )

    message_id: Mapped[UUID] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True,
    )

    embedding: Mapped[list[float]] = mapped_column(Vector(), nullable=False)

    dimensions: Mapped[int] = mapped_column(Integer, nullable=False)

    vector_model: Mapped[str] = mapped_column(String(120), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB, nullable=True)
