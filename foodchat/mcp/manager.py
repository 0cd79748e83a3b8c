from __future__ import annotations

import asyncio
import enum
import json
from contextlib import asynccontextmanager
from functools import cache
from typing import Any

from mcp import ClientSession, Tool
from mcp.shared.exceptions import McpError
from mcp.types import CONNECTION_CLOSED, CallToolResult, TextContent

from foodchat.config import Config, get_config
from foodchat.errors import ConnectionFailedError, NotConnectedError, ToolCallError
from foodchat.log import logger
from foodchat.mcp.auth import PendingAuthorization
from foodchat.mcp.client import MCPTransport, build_transport
from foodchat.mcp.models import ConnectionStatus, ConnectResult, ToolSummary

BUSY_MESSAGE = (
    "Connection already in progress. Complete the login in the browser window, "
    "or wait for it to time out and try again."
)
CANCELLED_MESSAGE = "Connection attempt was cancelled."
RETRY_HELP = (
    "Stale tokens have been cleaned. Connect again to retry. "
    "When the browser opens, complete the login and verification. "
    "If no verification code arrives, wait a minute before retrying."
)
PING_TIMEOUT = 10


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


def get_connection_manager() -> ConnectionManager:
    return _get_connection_manager()


@cache
def _get_connection_manager() -> ConnectionManager:
    return ConnectionManager.from_config(get_config())


@asynccontextmanager
async def init_connection_manager(manager: ConnectionManager):
    yield manager
    await manager.disconnect()
    logger.info("Connection manager disposed")


def describe_error(e: BaseException) -> str:
    # Task groups wrap the real failure in single-member exception groups
    while (inner := getattr(e, "exceptions", None)) and len(inner) == 1:
        e = inner[0]
    return str(e) or e.__class__.__name__


def _consume_outcome(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


class ConnectionManager:
    """
    Owns the connection to the remote tool service.

    disconnected -> connecting -> connected, and connecting -> error on failure. `error`
    holds the failure until the next `connect()` or `disconnect()`. A live connection that stops
    answering pings, or closes under a tool call, also lands in `error`.

    The connection lives in a dedicated task which enters and exits the transport
    context, so any request may tear it down. At most one handshake is in flight.
    """

    state: ConnectionState
    tools: list[Tool]
    last_error: str | None

    def __init__(self, transport: MCPTransport, connect_timeout: float = 300, ping_interval: float = 30) -> None:
        self.transport = transport
        self.connect_timeout = connect_timeout
        self.ping_interval = ping_interval

        self.state = ConnectionState.DISCONNECTED
        self.tools = []
        self.last_error = None

        self._session: ClientSession | None = None
        self._authorization: PendingAuthorization | None = None
        self._task: asyncio.Task | None = None
        self._shutdown: asyncio.Event | None = None

    @classmethod
    def from_config(cls, config: Config) -> ConnectionManager:
        return cls(
            build_transport(config),
            connect_timeout=config.connect_timeout,
            ping_interval=config.ping_interval,
        )

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self._session is not None

    @property
    def auth_url(self) -> str | None:
        if self.state is not ConnectionState.CONNECTING or self._authorization is None:
            return None
        return self._authorization.url

    def tool_summaries(self) -> list[ToolSummary]:
        return [ToolSummary(name=tool.name, description=tool.description) for tool in self.tools]

    def get_state(self) -> ConnectionStatus:
        return ConnectionStatus(
            state=self.state.value,
            connected=self.connected,
            connecting=self.state is ConnectionState.CONNECTING,
            tool_count=len(self.tools),
            tools=self.tool_summaries(),
            error=self.last_error,
            auth_url=self.auth_url,
        )

    async def connect(self) -> ConnectResult:
        if self.state is ConnectionState.CONNECTING:
            return ConnectResult(success=False, connecting=True, error=BUSY_MESSAGE, auth_url=self.auth_url)
        if self.connected:
            return ConnectResult(success=True, tools=self.tool_summaries())

        # Claimed before the first await, so an overlapping call sees the attempt
        self.state = ConnectionState.CONNECTING
        self.last_error = None
        await self._teardown()
        if self.state is not ConnectionState.CONNECTING:
            return ConnectResult(success=False, error=CANCELLED_MESSAGE)

        authorization = PendingAuthorization()
        self._authorization = authorization
        self.transport.clean_stale_auth()
        logger.info(f"Starting {self.transport.name} connection to the remote tool service")

        ready: asyncio.Future[list[Tool]] = asyncio.get_running_loop().create_future()
        ready.add_done_callback(_consume_outcome)
        shutdown = asyncio.Event()
        self._shutdown = shutdown
        task = asyncio.create_task(self._hold_connection(authorization, ready, shutdown))
        self._task = task

        try:
            # The attempt enforces its own deadline, so a cancelled caller cannot strand it
            await asyncio.shield(ready)
        except Exception as e:
            await asyncio.gather(task, return_exceptions=True)
            return ConnectResult(success=False, error=describe_error(e), auth_url=authorization.url, help=RETRY_HELP)
        return ConnectResult(success=True, tools=self.tool_summaries())

    def _expire(self, authorization: PendingAuthorization, ready: asyncio.Future, task: asyncio.Task) -> None:
        if ready.done():
            return
        error = (
            f"Connection timed out. Login was not completed within {self.connect_timeout:.0f} seconds. "
            "Please try again -- stale tokens have been cleaned up."
        )
        logger.error(f"MCP connection failed: {error}")
        ready.set_exception(ConnectionFailedError(error))
        self._release(authorization, error)
        task.cancel()

    async def _hold_connection(
        self,
        authorization: PendingAuthorization,
        ready: asyncio.Future,
        shutdown: asyncio.Event,
    ) -> None:
        deadline = asyncio.get_running_loop().call_later(
            self.connect_timeout, self._expire, authorization, ready, asyncio.current_task()
        )
        try:
            async with self.transport.open_session(authorization) as session:
                result = await session.list_tools()
                if self._authorization is not authorization:
                    return

                deadline.cancel()
                self._session = session
                self.tools = list(result.tools)
                self.state = ConnectionState.CONNECTED
                logger.info(f"Discovered {len(self.tools)} tools from the remote service:")
                for tool in self.tools:
                    logger.info(f"   - {tool.name}: {(tool.description or '')[:80]}")
                ready.set_result(self.tools)

                await self._keep_alive(session, shutdown)
        except Exception as e:
            error = describe_error(e)
            if not ready.done():
                logger.error(f"MCP connection failed: {error}")
                ready.set_exception(e)
            elif not shutdown.is_set():
                logger.error(f"Connection to the remote tool service was lost: {error}")
            self._release(authorization, error)
        finally:
            deadline.cancel()
            if not ready.done():
                ready.set_exception(ConnectionFailedError(CANCELLED_MESSAGE))

    async def _keep_alive(self, session: ClientSession, shutdown: asyncio.Event) -> None:
        """Return on shutdown; raise once the remote side stops answering pings."""
        while True:
            try:
                await asyncio.wait_for(shutdown.wait(), timeout=self.ping_interval)
            except asyncio.TimeoutError:
                pass
            else:
                return
            try:
                await asyncio.wait_for(session.send_ping(), timeout=PING_TIMEOUT)
            except asyncio.TimeoutError as e:
                raise ConnectionFailedError(f"No ping response within {PING_TIMEOUT:.0f} seconds") from e

    def _release(self, authorization: PendingAuthorization, error: str) -> None:
        """Forget a failed or lost connection, unless a newer attempt replaced it."""
        if self._authorization is not authorization:
            return
        authorization.cancel()
        self._authorization = None
        self._session = None
        self._task = None
        self._shutdown = None
        self.tools = []
        self.last_error = error
        self.state = ConnectionState.ERROR

    async def _connection_lost(self, error: str) -> None:
        task, shutdown, authorization = self._task, self._shutdown, self._authorization
        if authorization is None:
            return
        logger.error(f"Connection to the remote tool service was lost: {error}")
        self._release(authorization, error)
        if shutdown:
            shutdown.set()
        if task:
            await asyncio.gather(task, return_exceptions=True)

    async def _teardown(self) -> None:
        task, self._task = self._task, None
        shutdown, self._shutdown = self._shutdown, None
        authorization, self._authorization = self._authorization, None
        was_connected = self._session is not None
        self._session = None
        self.tools = []

        if authorization:
            authorization.cancel()
        if shutdown:
            shutdown.set()
        if task and not task.done():
            if not was_connected:
                task.cancel()
            for result in await asyncio.gather(task, return_exceptions=True):
                if isinstance(result, Exception):
                    logger.warning(f"Error while closing the MCP connection: {describe_error(result)}")

    async def disconnect(self) -> None:
        await self._teardown()
        self.state = ConnectionState.DISCONNECTED
        self.last_error = None
        logger.info("Disconnected from the remote tool service")

    def clean_stale_auth(self) -> None:
        self.transport.clean_stale_auth()

    def complete_authorization(self, code: str, state: str | None = None) -> bool:
        if self._authorization is None:
            return False
        return self._authorization.complete(code, state)

    def reject_authorization(self, reason: str) -> bool:
        if self._authorization is None:
            return False
        return self._authorization.reject(reason)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        if not self.connected:
            raise NotConnectedError()

        arguments = arguments or {}
        logger.info(f"Calling tool {name} {json.dumps(arguments, ensure_ascii=False, default=str)[:200]}")
        try:
            result = await self._session.call_tool(name, arguments)
        except McpError as e:
            if e.error.code != CONNECTION_CLOSED:
                raise
            await self._connection_lost(describe_error(e))
            raise ToolCallError(f"Connection to the remote tool service was lost: {describe_error(e)}") from e
        if result.isError:
            message = "\n".join(c.text for c in result.content if isinstance(c, TextContent))
            raise ToolCallError(message or f"Tool {name} reported an error")
        logger.info(f"Tool {name} returned result")
        return result
