"""
Insert/select validators for the persisted chat entities.

Insert models accept what a caller provides when creating a row (ids and
timestamps are optional, the database assigns them). Select models describe a
row as read back (ids and timestamps required). Both accept snake_case field
names as well as the camelCase names the front end uses, and read ORM objects
directly via ``from_attributes``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from chatapi.core.errors import ValidationError
from chatapi.db.models.conversation import TITLE_MAX_LENGTH
from chatapi.db.models.message import MODEL_NAME_MAX_LENGTH

MessageRole = Literal["user", "assistant", "system", "tool"]


# The ORM attribute is `meta` (SQLAlchemy reserves `metadata`); the wire name is `metadata`.
def _meta_field():
    return Field(
        default=None,
        validation_alias=AliasChoices("meta", "metadata"),
        serialization_alias="metadata",
    )


class _PersistenceModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


class MessagePart(BaseModel):
    """One typed part of a message body. Fields beyond `type` are kept as-is."""

    model_config = ConfigDict(extra="allow", from_attributes=True)

    type: str = Field(min_length=1)


class MessageContent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    parts: list[MessagePart]


class TokenUsage(_PersistenceModel):
    input_tokens: int | None = Field(default=None, ge=0)
    output_tokens: int | None = Field(default=None, ge=0)
    total_tokens: int | None = Field(default=None, ge=0)


def _check_timestamps(created_at: datetime | None, updated_at: datetime | None) -> None:
    if created_at is not None and updated_at is not None and updated_at < created_at:
        raise ValueError("updatedAt must not be earlier than createdAt")


# Conversations


class _ConversationFields(_PersistenceModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    meta: dict[str, Any] | None = _meta_field()

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v


class ConversationInsert(_ConversationFields):
    id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _ordered_timestamps(self) -> "ConversationInsert":
        _check_timestamps(self.created_at, self.updated_at)
        return self

    def row_values(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ConversationSelect(_ConversationFields):
    id: UUID
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _ordered_timestamps(self) -> "ConversationSelect":
        _check_timestamps(self.created_at, self.updated_at)
        return self


# Messages


class _MessageFields(_PersistenceModel):
    conversation_id: UUID
    role: MessageRole
    content: MessageContent
    token_usage: TokenUsage | None = None
    model: str | None = Field(default=None, max_length=MODEL_NAME_MAX_LENGTH)


class MessageInsert(_MessageFields):
    id: UUID | None = None
    created_at: datetime | None = None

    def row_values(self) -> dict[str, Any]:
        values = self.model_dump(exclude_none=True, exclude={"content", "token_usage"})
        values["content"] = self.content.model_dump()
        if self.token_usage is not None:
            values["token_usage"] = self.token_usage.model_dump(by_alias=True, exclude_none=True)
        return values


class MessageSelect(_MessageFields):
    id: UUID
    created_at: datetime


# Message embeddings


class _MessageEmbeddingFields(_PersistenceModel):
    message_id: UUID
    embedding: list[float] = Field(min_length=1)
    dimensions: int = Field(gt=0)
    vector_model: str = Field(min_length=1, max_length=120)
    meta: dict[str, Any] | None = _meta_field()

    @field_validator("embedding", mode="before")
    @classmethod
    def _coerce_vector(cls, v):
        # pgvector hands back numpy arrays on read.
        if hasattr(v, "tolist"):
            return v.tolist()
        return v

    @model_validator(mode="after")
    def _dimensions_match(self):
        if len(self.embedding) != self.dimensions:
            raise ValueError(
                f"embedding has {len(self.embedding)} values but dimensions is {self.dimensions}"
            )
        return self


class MessageEmbeddingInsert(_MessageEmbeddingFields):
    created_at: datetime | None = None

    def row_values(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class MessageEmbeddingSelect(_MessageEmbeddingFields):
    created_at: datetime


@dataclass(frozen=True)
class EntityValidators:
    entity: str
    insert: type[_PersistenceModel]
    select: type[_PersistenceModel]

    def validate_insert(self, data: Any):
        return self._validate(self.insert, data)

    def validate_select(self, data: Any):
        return self._validate(self.select, data)

    def _validate(self, model: type[BaseModel], data: Any):
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, entity=self.entity) from e


ConversationValidators = EntityValidators("conversation", ConversationInsert, ConversationSelect)
MessageValidators = EntityValidators("message", MessageInsert, MessageSelect)
MessageEmbeddingValidators = EntityValidators(
    "message embedding", MessageEmbeddingInsert, MessageEmbeddingSelect
)
