from __future__ import annotations

from fastapi import APIRouter

from chatapi.api import chat, conversations

api_router = APIRouter(prefix="/api")
api_router.include_router(chat.router)
api_router.include_router(conversations.router)
