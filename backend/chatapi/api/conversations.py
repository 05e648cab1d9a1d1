from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from chatapi.ai.embeddings import embed_text, message_text
from chatapi.core.settings import Settings, get_settings
from chatapi.db.models.conversation import Conversation
from chatapi.db.models.message import Message
from chatapi.db.models.message_embedding import MessageEmbedding
from chatapi.db.session import get_db
from chatapi.repository import conversations as repo
from chatapi.schemas.chat import (
    ConversationCreateRequest,
    EmbeddingUpsertRequest,
    MessageCreateRequest,
    SimilarMessagePublic,
    SimilarMessagesRequest,
)
from chatapi.schemas.persistence import ConversationSelect, MessageEmbeddingSelect, MessageSelect

router = APIRouter(tags=["conversations"])


@router.post("/conversations", response_model=ConversationSelect)
async def create_conversation(
    body: ConversationCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> Conversation:
    return await repo.create_conversation(db, data={"title": body.title, "metadata": body.metadata})


@router.get("/conversations", response_model=list[ConversationSelect])
async def list_conversations(limit: int = 50, db: AsyncSession = Depends(get_db)) -> list[Conversation]:
    return await repo.list_conversations(db, limit=max(1, min(limit, 200)))


@router.get("/conversations/{conversation_id}", response_model=ConversationSelect)
async def get_conversation(conversation_id: UUID, db: AsyncSession = Depends(get_db)) -> Conversation:
    return await repo.get_conversation(db, conversation_id=conversation_id)


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(conversation_id: UUID, db: AsyncSession = Depends(get_db)) -> dict:
    await repo.delete_conversation(db, conversation_id=conversation_id)
    return {"ok": True}


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageSelect])
async def list_messages(conversation_id: UUID, db: AsyncSession = Depends(get_db)) -> list[Message]:
    await repo.get_conversation(db, conversation_id=conversation_id)
    return await repo.list_messages(db, conversation_id=conversation_id)


@router.post("/conversations/{conversation_id}/messages", response_model=MessageSelect)
async def create_message(
    conversation_id: UUID,
    body: MessageCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> Message:
    data = body.model_dump(exclude_none=True)
    data["conversation_id"] = conversation_id
    return await repo.add_message(db, data=data)


@router.post("/conversations/{conversation_id}/similar", response_model=list[SimilarMessagePublic])
async def similar_messages(
    conversation_id: UUID,
    body: SimilarMessagesRequest,
    db: AsyncSession = Depends(get_db),
) -> list[SimilarMessagePublic]:
    await repo.get_conversation(db, conversation_id=conversation_id)
    hits = await repo.find_similar_messages(
        db, conversation_id=conversation_id, embedding=body.embedding, limit=body.limit
    )
    return [SimilarMessagePublic(message=MessageSelect.model_validate(h.message), score=h.score) for h in hits]


@router.put("/messages/{message_id}/embedding", response_model=MessageEmbeddingSelect)
async def put_message_embedding(
    message_id: UUID,
    body: EmbeddingUpsertRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageEmbedding:
    data = body.model_dump(exclude_none=True)
    data["message_id"] = message_id
    return await repo.upsert_message_embedding(db, data=data)


@router.post("/messages/{message_id}/embedding", response_model=MessageEmbeddingSelect)
async def generate_message_embedding(
    message_id: UUID,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> MessageEmbedding:
    """Embed a stored message's text with the configured embedding model and store the vector."""
    message = await repo.get_message(db, message_id=message_id)
    vector = await embed_text(message_text(message.content), settings=settings)
    return await repo.upsert_message_embedding(
        db,
        data={
            "message_id": message.id,
            "embedding": vector,
            "dimensions": len(vector),
            "vector_model": settings.embedding_model,
        },
    )


@router.get("/messages/{message_id}/embedding", response_model=MessageEmbeddingSelect)
async def get_message_embedding(message_id: UUID, db: AsyncSession = Depends(get_db)) -> MessageEmbedding:
    return await repo.get_message_embedding(db, message_id=message_id)
