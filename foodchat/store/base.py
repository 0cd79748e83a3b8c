from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Literal

from pydantic import Field

from foodchat.schema import CamelModel

Role = Literal["system", "user", "assistant", "tool"]

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 40
ELLIPSIS = "..."


def now_ms() -> int:
    return int(time.time() * 1000)


def derive_title(content: str) -> str:
    if len(content) <= TITLE_MAX_LENGTH:
        return content
    return content[: TITLE_MAX_LENGTH - len(ELLIPSIS)] + ELLIPSIS


class HistoryMessage(CamelModel):
    role: Role
    content: str


class StoredMessage(HistoryMessage):
    timestamp: int


class ChatSummary(CamelModel):
    id: str
    title: str = DEFAULT_TITLE
    created_at: int


class ChatRecord(ChatSummary):
    messages: list[StoredMessage] = Field(default_factory=list)


class ConversationStore(ABC):
    """
    Chats and their messages, partitioned by session id.

    Messages are append-only. Appending to an unknown chat id creates that chat, and the
    first user message of a chat titled `DEFAULT_TITLE` becomes its title. Later user
    messages never retitle it.
    """

    @abstractmethod
    async def create_chat(self, session_id: str, title: str = DEFAULT_TITLE, chat_id: str | None = None) -> str: ...

    @abstractmethod
    async def add_message(self, session_id: str, chat_id: str, role: Role, content: str) -> str: ...

    @abstractmethod
    async def list_chats(self, session_id: str) -> list[ChatSummary]:
        """Newest first, without message bodies."""

    @abstractmethod
    async def get_messages(self, session_id: str, chat_id: str) -> list[StoredMessage]:
        """All messages in append order; empty for an unknown chat."""

    @abstractmethod
    async def delete_chat(self, session_id: str, chat_id: str) -> bool: ...

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None
