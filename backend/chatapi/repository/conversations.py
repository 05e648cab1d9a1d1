from __future__ import annotations

import logging
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from chatapi.core.errors import NotFoundError, ValidationError
from chatapi.db.models.conversation import Conversation
from chatapi.db.models.message import Message
from chatapi.db.models.message_embedding import MessageEmbedding
from chatapi.rag.similarity import score_from_cosine_distance
from chatapi.rag.types import SimilarMessage
from chatapi.schemas.persistence import (
    ConversationValidators,
    MessageEmbeddingValidators,
    MessageValidators,
)

logger = logging.getLogger(__name__)

_FOREIGN_KEY_VIOLATION = "23503"


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code == _FOREIGN_KEY_VIOLATION
    return "foreign key" in str(orig).lower()


# Conversations


async def create_conversation(db: AsyncSession, *, data: Any) -> Conversation:
    payload = ConversationValidators.validate_insert(data)
    conversation = Conversation(**payload.row_values())
    db.add(conversation)
    await db.commit()
    await db.refresh(conversation)
    logger.debug("Created conversation %s", conversation.id)
    return conversation


async def get_conversation(db: AsyncSession, *, conversation_id: UUID) -> Conversation:
    res = await db.execute(select(Conversation).where(Conversation.id == conversation_id))
    conversation = res.scalar_one_or_none()
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


async def list_conversations(db: AsyncSession, *, limit: int = 50) -> list[Conversation]:
    res = await db.execute(
        select(Conversation).order_by(Conversation.updated_at.desc()).limit(int(limit))
    )
    return list(res.scalars().all())


async def delete_conversation(db: AsyncSession, *, conversation_id: UUID) -> None:
    """Delete a conversation; messages and their embeddings go with it (ON DELETE CASCADE)."""
    res = await db.execute(
        delete(Conversation).where(Conversation.id == conversation_id).returning(Conversation.id)
    )
    if res.scalar_one_or_none() is None:
        await db.rollback()
        raise NotFoundError("Conversation not found")
    await db.commit()
    logger.debug("Deleted conversation %s", conversation_id)


# Messages


async def add_message(db: AsyncSession, *, data: Any) -> Message:
    """
    Append a message and bump the owning conversation's `updated_at`.

    A conversation id that does not resolve surfaces from Postgres as a foreign
    key violation, which is reported as NotFoundError.
    """
    payload = MessageValidators.validate_insert(data)
    message = Message(**payload.row_values())
    db.add(message)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        if _is_foreign_key_violation(e):
            raise NotFoundError("Conversation not found") from e
        raise

    await db.execute(
        update(Conversation)
        .where(Conversation.id == message.conversation_id)
        .values(updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(message)
    logger.debug("Stored %s message %s in conversation %s", message.role, message.id, message.conversation_id)
    return message


async def get_message(db: AsyncSession, *, message_id: UUID) -> Message:
    message = await db.get(Message, message_id)
    if message is None:
        raise NotFoundError("Message not found")
    return message


async def list_messages(db: AsyncSession, *, conversation_id: UUID) -> list[Message]:
    res = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(res.scalars().all())


# Embeddings


async def upsert_message_embedding(db: AsyncSession, *, data: Any) -> MessageEmbedding:
    """Store the embedding for a message, replacing any previous one (at most one per message)."""
    payload = MessageEmbeddingValidators.validate_insert(data)
    values = payload.row_values()

    row = await db.get(MessageEmbedding, payload.message_id)
    if row is None:
        row = MessageEmbedding(**values)
        db.add(row)
    else:
        for key, value in values.items():
            setattr(row, key, value)

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if _is_foreign_key_violation(e):
            raise NotFoundError("Message not found") from e
        raise

    await db.refresh(row)
    logger.debug("Stored %d-dim embedding for message %s", row.dimensions, row.message_id)
    return row


async def get_message_embedding(db: AsyncSession, *, message_id: UUID) -> MessageEmbedding:
    row = await db.get(MessageEmbedding, message_id)
    if row is None:
        raise NotFoundError("Embedding not found")
    return row


async def find_similar_messages(
    db: AsyncSession,
    *,
    conversation_id: UUID,
    embedding: Sequence[float],
    limit: int = 5,
) -> list[SimilarMessage]:
    """
    Rank a conversation's embedded messages by cosine similarity to `embedding`.

    Only embeddings with the same dimensionality are compared; pgvector rejects
    distance operators across different lengths.
    """
    vector = [float(x) for x in embedding]
    if not vector:
        raise ValidationError("Query embedding must not be empty")
    k = int(limit)
    if k <= 0:
        return []

    distance = MessageEmbedding.embedding.cosine_distance(vector).label("distance")
    stmt = (
        select(Message, distance)
        .join(MessageEmbedding, MessageEmbedding.message_id == Message.id)
        .where(
            Message.conversation_id == conversation_id,
            MessageEmbedding.dimensions == len(vector),
        )
        .order_by(distance.asc())
        .limit(k)
    )
    res = await db.execute(stmt)
    return [SimilarMessage(message=msg, score=score_from_cosine_distance(dist)) for msg, dist in res.all()]
