from __future__ import annotations

from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from foodchat.dbutils import create_tables, open_db_session
from foodchat.orm import Chat, Message
from foodchat.store.base import (
    DEFAULT_TITLE,
    ChatSummary,
    ConversationStore,
    Role,
    StoredMessage,
    derive_title,
    now_ms,
)


class SQLConversationStore(ConversationStore):
    """Every operation runs in its own committed transaction."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    async def initialize(self) -> None:
        await create_tables(self.engine)

    async def close(self) -> None:
        await self.engine.dispose()

    async def _get_chat(self, session: AsyncSession, session_id: str, chat_id: str) -> Chat | None:
        result = await session.execute(select(Chat).where(Chat.session_id == session_id, Chat.chat_id == chat_id))
        return result.scalars().one_or_none()

    async def create_chat(self, session_id: str, title: str = DEFAULT_TITLE, chat_id: str | None = None) -> str:
        chat = Chat(session_id=session_id, chat_id=chat_id or str(uuid4()), title=title, created_at=now_ms())
        async with open_db_session(self.sessionmaker) as session:
            session.add(chat)
            await session.commit()
        return chat.chat_id

    async def _insert_chat(self, session: AsyncSession, session_id: str, chat_id: str) -> Chat:
        chat = Chat(session_id=session_id, chat_id=chat_id, title=DEFAULT_TITLE, created_at=now_ms())
        session.add(chat)
        try:
            await session.flush()
        except IntegrityError:
            # Created by an overlapping append
            await session.rollback()
            existing = await self._get_chat(session, session_id, chat_id)
            if existing is None:
                raise
            return existing
        return chat

    async def add_message(self, session_id: str, chat_id: str, role: Role, content: str) -> str:
        async with open_db_session(self.sessionmaker) as session:
            chat = await self._get_chat(session, session_id, chat_id)
            if chat is None:
                chat = await self._insert_chat(session, session_id, chat_id)

            if role == "user" and chat.title == DEFAULT_TITLE:
                earlier = await session.scalar(
                    select(func.count()).select_from(Message).where(Message.chat_pk == chat.id, Message.role == "user")
                )
                if not earlier:
                    chat.title = derive_title(content)
            session.add(Message(chat_pk=chat.id, role=role, content=content, timestamp=now_ms()))
            await session.commit()
            return chat.chat_id

    async def list_chats(self, session_id: str) -> list[ChatSummary]:
        async with open_db_session(self.sessionmaker) as session:
            result = await session.execute(
                select(Chat).where(Chat.session_id == session_id).order_by(Chat.created_at.desc(), Chat.id.desc())
            )
            return [
                ChatSummary(id=chat.chat_id, title=chat.title, created_at=chat.created_at)
                for chat in result.scalars().all()
            ]

    async def get_messages(self, session_id: str, chat_id: str) -> list[StoredMessage]:
        async with open_db_session(self.sessionmaker) as session:
            result = await session.execute(
                select(Message)
                .join(Chat, Message.chat_pk == Chat.id)
                .where(Chat.session_id == session_id, Chat.chat_id == chat_id)
                .order_by(Message.id)
            )
            return [
                StoredMessage(role=message.role, content=message.content, timestamp=message.timestamp)
                for message in result.scalars().all()
            ]

    async def delete_chat(self, session_id: str, chat_id: str) -> bool:
        async with open_db_session(self.sessionmaker) as session:
            chat = await self._get_chat(session, session_id, chat_id)
            if chat is None:
                return False
            await session.execute(delete(Message).where(Message.chat_pk == chat.id))
            await session.execute(delete(Chat).where(Chat.id == chat.id))
            await session.commit()
            return True
