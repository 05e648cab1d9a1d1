from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from chatapi.schemas.persistence import MessageContent, MessageRole, MessageSelect, TokenUsage


class UIMessagePart(BaseModel):
    """A part of a UI message. Only text parts are forwarded to the model."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1)
    text: str | None = None


class UIMessage(BaseModel):
    """
    Front-end message shape. Either `parts` (AI SDK style) or a plain string
    `content` is accepted; when both are present, `parts` wins.
    """

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    role: MessageRole
    content: str | None = None
    parts: list[UIMessagePart] | None = None

    def text(self) -> str:
        if self.parts:
            return "".join(p.text or "" for p in self.parts if p.type == "text")
        return self.content or ""

    def to_content(self) -> dict[str, Any]:
        """Persistable `{parts: [...]}` body for this message."""
        if self.parts:
            return {"parts": [p.model_dump(exclude_none=True) for p in self.parts]}
        return {"parts": [{"type": "text", "text": self.content or ""}]}


class ChatRequest(BaseModel):
    messages: list[UIMessage] = Field(min_length=1)
    conversation_id: UUID | None = Field(default=None, validation_alias="conversationId")


class ConversationCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    metadata: dict[str, Any] | None = None


class MessageCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: MessageRole
    content: MessageContent
    token_usage: TokenUsage | None = Field(default=None, alias="tokenUsage")
    model: str | None = Field(default=None, max_length=120)


class EmbeddingUpsertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    embedding: list[float] = Field(min_length=1)
    dimensions: int = Field(gt=0)
    vector_model: str = Field(min_length=1, max_length=120, alias="vectorModel")
    metadata: dict[str, Any] | None = None


class SimilarMessagesRequest(BaseModel):
    embedding: list[float] = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=50)


class SimilarMessagePublic(BaseModel):
    message: MessageSelect
    score: float
