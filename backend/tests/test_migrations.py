from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from chatapi.core.settings import get_settings
from chatapi.db.migrations import upgrade_to_head
from chatapi.db.session import resolve_database_url


async def _can_connect(database_url: str) -> bool:
    engine = create_async_engine(database_url, pool_pre_ping=True)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
    finally:
        await engine.dispose()


async def _existing_tables(database_url: str) -> set[str]:
    engine = create_async_engine(database_url, pool_pre_ping=True)
    try:
        async with engine.connect() as conn:
            res = await conn.execute(
                text(
                    """
                    SELECT table_name
                    FROM information_schema.tables
                    WHERE table_schema = 'public'
                      AND table_name IN ('conversations', 'messages', 'message_embeddings');
                    """
                )
            )
            return {row[0] for row in res.all()}
    finally:
        await engine.dispose()


def test_alembic_upgrade_creates_chat_tables() -> None:
    settings = get_settings()
    if not settings.database_url:
        pytest.skip("DATABASE_URL is not set.")
    database_url = resolve_database_url(settings)

    if not asyncio.run(_can_connect(database_url)):
        pytest.skip("Database not reachable. Start Postgres (with pgvector) and ensure DATABASE_URL is correct.")

    upgrade_to_head(settings)

    assert asyncio.run(_existing_tables(database_url)) == {"conversations", "messages", "message_embeddings"}
