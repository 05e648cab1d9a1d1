from __future__ import annotations

from dataclasses import dataclass

from chatapi.db.models.message import Message


@dataclass(frozen=True)
class SimilarMessage:
    message: Message
    score: float
