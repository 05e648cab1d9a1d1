from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatapi.ai.agent import AgentEvent, stream_agent
from chatapi.ai.ui_stream import UI_STREAM_HEADERS, OnFinish, ui_message_stream
from chatapi.db.session import get_session_maker
from chatapi.repository.conversations import add_message, get_conversation
from chatapi.schemas.chat import ChatRequest, UIMessage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def _reply_persister(SessionLocal: async_sessionmaker[AsyncSession], conversation_id: UUID) -> OnFinish:
    async def _persist(text: str, event: AgentEvent) -> None:
        async with SessionLocal() as db:
            await add_message(
                db,
                data={
                    "conversation_id": conversation_id,
                    "role": "assistant",
                    "content": {"parts": [{"type": "text", "text": text}]},
                    "token_usage": event.usage or None,
                    "model": event.model,
                },
            )

    return _persist


async def _persist_user_turn(
    SessionLocal: async_sessionmaker[AsyncSession], conversation_id: UUID, messages: list[UIMessage]
) -> None:
    last_user = next((m for m in reversed(messages) if m.role == "user"), None)
    if last_user is None:
        return
    async with SessionLocal() as db:
        await add_message(
            db,
            data={"conversation_id": conversation_id, "role": "user", "content": last_user.to_content()},
        )


@router.post("/chat")
async def chat(body: ChatRequest) -> StreamingResponse:
    """
    Stream an assistant reply for a UI message history.

    With `conversationId`, the latest user turn and the finished assistant
    reply are stored on that conversation. Without it nothing touches the
    database.
    """
    conversation_id = body.conversation_id
    logger.debug("Chat request: %d messages, conversation=%s", len(body.messages), conversation_id)
    SessionLocal = get_session_maker() if conversation_id is not None else None

    if SessionLocal is not None:
        # Unknown conversation -> 404 before anything is sent to the provider.
        async with SessionLocal() as db:
            await get_conversation(db, conversation_id=conversation_id)

    events = stream_agent(body.messages)
    # Await the first event here so a provider failure before any output maps
    # to a 5xx response rather than a stream that dies after a 200.
    first: AgentEvent | None = await anext(events, None)

    on_finish: OnFinish | None = None
    if SessionLocal is not None:
        try:
            await _persist_user_turn(SessionLocal, conversation_id, body.messages)
        except BaseException:
            await events.aclose()
            raise
        on_finish = _reply_persister(SessionLocal, conversation_id)

    return StreamingResponse(
        ui_message_stream(first, events, on_finish=on_finish),
        media_type="text/event-stream",
        headers=UI_STREAM_HEADERS,
    )
