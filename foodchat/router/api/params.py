from __future__ import annotations

from pydantic import Field

from foodchat.llms.tools import ToolCall
from foodchat.mcp.models import ConnectionStatus, ConnectResult, ToolInfo, ToolSummary
from foodchat.schema import CamelModel
from foodchat.store.base import ChatSummary, HistoryMessage, StoredMessage


class DisconnectResponse(CamelModel):
    success: bool = True
    message: str


class ToolsResponse(CamelModel):
    connected: bool
    tools: list[ToolInfo]


class NewSession(CamelModel):
    session_id: str


class Location(CamelModel):
    lat: float
    lng: float


class ChatRequest(CamelModel):
    message: str = Field(min_length=1)
    session_id: str | None = None
    chat_id: str | None = None
    history: list[HistoryMessage] | None = None
    location: Location | None = None


class ChatResponse(CamelModel):
    response: str
    tool_calls: list[ToolCall]
    session_id: str
    chat_id: str


class ChatList(CamelModel):
    chats: list[ChatSummary]


class ChatMessages(CamelModel):
    messages: list[StoredMessage]


class NewChatRequest(CamelModel):
    session_id: str


class NewChat(CamelModel):
    chat_id: str


class DeleteChatResponse(CamelModel):
    success: bool


class ErrorResponse(CamelModel):
    error: str
    tool_calls: list[ToolCall] | None = None
