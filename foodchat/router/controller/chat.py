from __future__ import annotations

from uuid import uuid4

from fastapi import Depends
from pydantic_ai.models import Model

from foodchat.config import Config, get_config
from foodchat.llms.mcp_agent import MCPAgent
from foodchat.llms.models import get_default_model, init_model_settings
from foodchat.mcp.manager import ConnectionManager, get_connection_manager
from foodchat.router.api.params import (
    ChatList,
    ChatMessages,
    ChatRequest,
    ChatResponse,
    DeleteChatResponse,
    NewChat,
)
from foodchat.store import get_conversation_store
from foodchat.store.base import ConversationStore


def get_chat_controller(
    config: Config = Depends(get_config),
    connection_manager: ConnectionManager = Depends(get_connection_manager),
    store: ConversationStore = Depends(get_conversation_store),
    default_model: Model | None = Depends(get_default_model),
) -> ChatController:
    return ChatController(config, connection_manager, store, default_model)


class ChatController:
    def __init__(
        self,
        config: Config,
        connection_manager: ConnectionManager,
        store: ConversationStore,
        default_model: Model | None,
    ) -> None:
        self.config = config
        self.connection_manager = connection_manager
        self.store = store
        self.default_model = default_model

    def get_agent(self) -> MCPAgent:
        return MCPAgent(
            model=self.default_model,
            connection_manager=self.connection_manager,
            store=self.store,
            config=self.config,
            model_settings=init_model_settings(self.config),
        )

    async def chat(self, params: ChatRequest) -> ChatResponse:
        session_id = params.session_id or str(uuid4())
        chat_id = params.chat_id or await self.store.create_chat(session_id)

        result = await self.get_agent().run_turn(
            session_id,
            chat_id,
            params.message,
            history=params.history,
            location=params.location.model_dump() if params.location else None,
        )
        return ChatResponse(
            response=result.response,
            tool_calls=result.tool_calls,
            session_id=session_id,
            chat_id=result.chat_id,
        )

    async def list_chats(self, session_id: str) -> ChatList:
        return ChatList(chats=await self.store.list_chats(session_id))

    async def get_messages(self, session_id: str, chat_id: str) -> ChatMessages:
        return ChatMessages(messages=await self.store.get_messages(session_id, chat_id))

    async def create_chat(self, session_id: str) -> NewChat:
        return NewChat(chat_id=await self.store.create_chat(session_id))

    async def delete_chat(self, session_id: str, chat_id: str) -> DeleteChatResponse:
        return DeleteChatResponse(success=await self.store.delete_chat(session_id, chat_id))
