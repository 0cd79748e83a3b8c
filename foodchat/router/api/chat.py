from uuid import uuid4

from fastapi import APIRouter, Depends, Query

from foodchat.router.api.params import (
    ChatList,
    ChatMessages,
    ChatRequest,
    ChatResponse,
    DeleteChatResponse,
    NewChat,
    NewChatRequest,
    NewSession,
)
from foodchat.router.controller.chat import ChatController, get_chat_controller

router = APIRouter(
    tags=["chat"],
    prefix="/api",
)


@router.post("/session")
async def create_session() -> NewSession:
    return NewSession(session_id=str(uuid4()))


@router.post("/chat")
async def chat(
    params: ChatRequest,
    chat_controller: ChatController = Depends(get_chat_controller),
) -> ChatResponse:
    return await chat_controller.chat(params)


@router.get("/chats")
async def list_chats(
    session_id: str = Query(alias="sessionId"),
    chat_controller: ChatController = Depends(get_chat_controller),
) -> ChatList:
    return await chat_controller.list_chats(session_id)


@router.post("/chats/new")
async def create_chat(
    params: NewChatRequest,
    chat_controller: ChatController = Depends(get_chat_controller),
) -> NewChat:
    return await chat_controller.create_chat(params.session_id)


@router.get("/chats/{chat_id}")
async def get_chat_messages(
    chat_id: str,
    session_id: str = Query(alias="sessionId"),
    chat_controller: ChatController = Depends(get_chat_controller),
) -> ChatMessages:
    return await chat_controller.get_messages(session_id, chat_id)


@router.delete("/chats/{chat_id}")
async def delete_chat(
    chat_id: str,
    session_id: str = Query(alias="sessionId"),
    chat_controller: ChatController = Depends(get_chat_controller),
) -> DeleteChatResponse:
    return await chat_controller.delete_chat(session_id, chat_id)
