from __future__ import annotations

import pytest

from chatapi.ai import embeddings as ai_embeddings
from chatapi.core.errors import ProviderError, ValidationError
from chatapi.core.settings import Settings


class _FakeEmbeddings:
    def __init__(self, *, vector=None, error: Exception | None = None) -> None:
        self.vector = vector
        self.error = error
        self.queries: list[str] = []

    async def aembed_query(self, text: str):
        self.queries.append(text)
        if self.error is not None:
            raise self.error
        return self.vector


def test_message_text_joins_text_parts_only() -> None:
    content = {
        "parts": [
            {"type": "text", "text": "hello"},
            {"type": "file", "url": "x"},
            {"type": "text", "text": "  "},
            {"type": "text", "text": "world"},
        ]
    }
    assert ai_embeddings.message_text(content) == "hello\nworld"
    assert ai_embeddings.message_text(None) == ""


@pytest.mark.asyncio
async def test_embed_text_returns_floats(monkeypatch) -> None:
    fake = _FakeEmbeddings(vector=[1, 0.5])
    monkeypatch.setattr(ai_embeddings, "build_embeddings", lambda settings: fake)

    vector = await ai_embeddings.embed_text("  hi  ", settings=Settings(_env_file=None))

    assert vector == [1.0, 0.5]
    assert fake.queries == ["hi"]


@pytest.mark.asyncio
async def test_embed_text_rejects_empty_text(monkeypatch) -> None:
    monkeypatch.setattr(ai_embeddings, "build_embeddings", lambda settings: pytest.fail("provider called"))
    with pytest.raises(ValidationError):
        await ai_embeddings.embed_text("   ", settings=Settings(_env_file=None))


@pytest.mark.asyncio
async def test_embed_text_wraps_provider_failures(monkeypatch) -> None:
    fake = _FakeEmbeddings(error=RuntimeError("boom"))
    monkeypatch.setattr(ai_embeddings, "build_embeddings", lambda settings: fake)

    with pytest.raises(ProviderError) as exc:
        await ai_embeddings.embed_text("hi", settings=Settings(_env_file=None, EMBEDDING_MODEL="emb"))
    assert exc.value.model == "emb"
