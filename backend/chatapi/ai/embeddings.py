from __future__ import annotations

import logging

from chatapi.ai.models import build_embeddings
from chatapi.core.errors import ProviderError, ValidationError
from chatapi.core.settings import Settings

logger = logging.getLogger(__name__)


def message_text(content: dict | None) -> str:
    """Concatenate the text parts of a stored `{parts: [...]}` message body."""
    parts = (content or {}).get("parts") or []
    texts = [str(p.get("text") or "") for p in parts if isinstance(p, dict) and p.get("type") == "text"]
    return "\n".join(t for t in texts if t.strip())


async def embed_text(text: str, *, settings: Settings) -> list[float]:
    q = (text or "").strip()
    if not q:
        raise ValidationError("Cannot embed empty text")

    embeddings = build_embeddings(settings)
    try:
        vector = await embeddings.aembed_query(q)
    except Exception as e:
        logger.exception("Embedding request failed (model=%s)", settings.embedding_model)
        raise ProviderError("Embedding provider request failed", model=settings.embedding_model) from e
    return [float(x) for x in vector]
