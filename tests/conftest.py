from __future__ import annotations

import asyncio
import os

os.environ["LOGURU_LEVEL"] = "DEBUG"

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from mcp import Tool
from mcp.types import CallToolResult, EmptyResult, ListToolsResult
from pydantic_ai.messages import ModelMessage, ModelResponse
from pydantic_ai.models.function import AgentInfo, FunctionModel

from foodchat.app import app as APP
from foodchat.config import Config, get_config
from foodchat.dbutils import init_engine
from foodchat.llms.models import get_default_model
from foodchat.mcp.auth import PendingAuthorization
from foodchat.mcp.client import MCPTransport
from foodchat.mcp.manager import ConnectionManager, get_connection_manager
from foodchat.store import get_conversation_store
from foodchat.store.jsonfile import JSONFileStore
from foodchat.store.sql import SQLConversationStore

_HERE = Path(__file__).parent
MOCK_SERVER = _HERE / "mock" / "mcp_server.py"
AUTH_URL = "https://auth.example.com/authorize?client_id=abc"

FOOD_TOOLS = [
    Tool(
        name="get_restaurants_for_keyword",
        description="Search restaurants by keyword",
        inputSchema={
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
    ),
    Tool(
        name="place_order",
        description="Place the order for a cart",
        inputSchema={"type": "object", "properties": {"cart_id": {"type": "string"}}},
    ),
]


class FakeSession:
    def __init__(self, tools: list[Tool]) -> None:
        self.tools = tools
        self.results: dict[str, CallToolResult | Exception] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.ping_error: Exception | None = None

    async def list_tools(self) -> ListToolsResult:
        return ListToolsResult(tools=self.tools)

    async def send_ping(self) -> EmptyResult:
        if self.ping_error:
            raise self.ping_error
        return EmptyResult()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> CallToolResult:
        self.calls.append((name, arguments))
        result = self.results[name]
        if isinstance(result, Exception):
            raise result
        return result


class FakeTransport(MCPTransport):
    """Opens `session` once `release` is set, optionally waiting for an OAuth code first."""

    name = "fake"

    def __init__(self, session: FakeSession) -> None:
        self.session = session
        self.release = asyncio.Event()
        self.release.set()
        self.auth_url: str | None = None
        self.require_code = False
        self.fail_with: Exception | None = None

        self.opened = 0
        self.closed = 0
        self.cleaned = 0
        self.received_code: tuple[str, str | None] | None = None

    def clean_stale_auth(self) -> None:
        self.cleaned += 1

    @asynccontextmanager
    async def open_session(self, authorization: PendingAuthorization) -> AsyncIterator[FakeSession]:
        self.opened += 1
        try:
            if self.auth_url:
                authorization.set_url(self.auth_url)
            if self.require_code:
                self.received_code = await authorization.wait_for_code(5)
            await self.release.wait()
            if self.fail_with:
                raise self.fail_with
            yield self.session
        finally:
            self.closed += 1


class ScriptedModel:
    """Replies in order, repeating the last reply; an exception reply is raised."""

    def __init__(self, *replies: ModelResponse | Exception) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[list[ModelMessage], AgentInfo]] = []

    async def respond(self, messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        self.calls.append((list(messages), info))
        reply = self.replies[min(len(self.calls), len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def model(self) -> FunctionModel:
        return FunctionModel(self.respond)


async def wait_until(predicate: Callable[[], Any], timeout: float = 5) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


@pytest.fixture(autouse=True)
def config_env(monkeypatch, tmp_path):
    monkeypatch.setenv("FOODCHAT_SQLITE_FILE_PATH", str(tmp_path / "foodchat.sqlite"))
    monkeypatch.setenv("FOODCHAT_HISTORY_FILE_PATH", str(tmp_path / "chat_history.json"))
    monkeypatch.setenv("FOODCHAT_MCP_AUTH_DIR", str(tmp_path / "mcp-auth"))
    monkeypatch.setenv("FOODCHAT_OAUTH_TOKEN_DIR", str(tmp_path / "oauth"))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("FOODCHAT_OPENAI_API_KEY", raising=False)


@pytest.fixture
def config() -> Config:
    return get_config()


@pytest.fixture(params=["sql", "json"])
async def store(request, config: Config):
    if request.param == "sql":
        store = SQLConversationStore(init_engine(config))
    else:
        store = JSONFileStore(config.history_file_path)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession(FOOD_TOOLS)


@pytest.fixture
def fake_transport(fake_session: FakeSession) -> FakeTransport:
    return FakeTransport(fake_session)


@pytest.fixture
async def connection_manager(fake_transport: FakeTransport):
    manager = ConnectionManager(fake_transport, connect_timeout=5)
    yield manager
    await manager.disconnect()


@pytest.fixture
async def connected_manager(connection_manager: ConnectionManager) -> ConnectionManager:
    result = await connection_manager.connect()
    assert result.success
    return connection_manager


@pytest.fixture
def scripted_model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def app(config: Config, fake_transport: FakeTransport, scripted_model: ScriptedModel):
    store = SQLConversationStore(init_engine(config))
    manager = ConnectionManager(fake_transport, connect_timeout=5)

    # Dependencies injection mock
    APP.dependency_overrides = {
        get_connection_manager: lambda: manager,
        get_conversation_store: lambda: store,
        get_default_model: lambda: scripted_model.model,
    }
    yield APP
    APP.dependency_overrides = {}


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
