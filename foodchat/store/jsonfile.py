from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from foodchat.log import logger
from foodchat.store.base import (
    DEFAULT_TITLE,
    ChatRecord,
    ChatSummary,
    ConversationStore,
    Role,
    StoredMessage,
    derive_title,
    now_ms,
)

History = dict[str, list[ChatRecord]]
_history_adapter = TypeAdapter(History)


class JSONFileStore(ConversationStore):
    """
    All sessions in one JSON document: session id -> chats, newest first.

    The file is read fully and rewritten fully on every mutation.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    def _load(self) -> History:
        if not self.path.exists():
            self._save({})
            return {}
        try:
            return _history_adapter.validate_json(self.path.read_bytes())
        except ValidationError as e:
            logger.warning(f"Chat history at {self.path} is unreadable, starting empty: {e}")
            return {}

    def _save(self, history: History) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(_history_adapter.dump_json(history, by_alias=True, indent=2))

    @staticmethod
    def _find(history: History, session_id: str, chat_id: str) -> ChatRecord | None:
        return next((chat for chat in history.get(session_id, []) if chat.id == chat_id), None)

    async def create_chat(self, session_id: str, title: str = DEFAULT_TITLE, chat_id: str | None = None) -> str:
        async with self._lock:
            history = self._load()
            chat = ChatRecord(id=chat_id or str(uuid4()), title=title, created_at=now_ms())
            history.setdefault(session_id, []).insert(0, chat)
            self._save(history)
            return chat.id

    async def add_message(self, session_id: str, chat_id: str, role: Role, content: str) -> str:
        async with self._lock:
            history = self._load()
            chat = self._find(history, session_id, chat_id)
            if chat is None:
                chat = ChatRecord(id=chat_id, title=DEFAULT_TITLE, created_at=now_ms())
                history.setdefault(session_id, []).insert(0, chat)

            if role == "user" and chat.title == DEFAULT_TITLE and not any(m.role == "user" for m in chat.messages):
                chat.title = derive_title(content)
            chat.messages.append(StoredMessage(role=role, content=content, timestamp=now_ms()))
            self._save(history)
            return chat.id

    async def list_chats(self, session_id: str) -> list[ChatSummary]:
        async with self._lock:
            history = self._load()
        return [ChatSummary(id=chat.id, title=chat.title, created_at=chat.created_at) for chat in history.get(session_id, [])]

    async def get_messages(self, session_id: str, chat_id: str) -> list[StoredMessage]:
        async with self._lock:
            chat = self._find(self._load(), session_id, chat_id)
        return chat.messages if chat else []

    async def delete_chat(self, session_id: str, chat_id: str) -> bool:
        async with self._lock:
            history = self._load()
            chats = history.get(session_id, [])
            remaining = [chat for chat in chats if chat.id != chat_id]
            if len(remaining) == len(chats):
                return False
            history[session_id] = remaining
            self._save(history)
            return True
