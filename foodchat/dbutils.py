from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from foodchat.config import Config
from foodchat.log import logger
from foodchat.orm import Base


def init_engine(config: Config) -> AsyncEngine:
    return create_async_engine(config.get_db_url(async_mode=True))


def init_sync_engine(config: Config) -> Engine:
    return create_engine(config.get_db_url(async_mode=False))


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug(f"Database tables ready on {engine.url.render_as_string(hide_password=True)}")


def migrate(config: Config) -> None:
    engine = init_sync_engine(config)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()


def clear(config: Config) -> None:
    engine = init_sync_engine(config)
    try:
        Base.metadata.drop_all(engine)
    finally:
        engine.dispose()


@asynccontextmanager
async def open_db_session(sessionmaker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with sessionmaker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
