from __future__ import annotations

import asyncio
import os
import re
import webbrowser
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TextIO

from mcp import ClientSession, StdioServerParameters
from mcp.client.auth import OAuthClientProvider
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.auth import OAuthClientMetadata
from pydantic import AnyUrl

from foodchat.config import Config
from foodchat.log import logger
from foodchat.mcp.auth import FileTokenStorage, PendingAuthorization, clean_stale_auth_files

AUTH_URL_PATTERN = re.compile(r"(https?://\S+/authorize\S*)")


class MCPTransport(ABC):
    """How a connection to the remote tool service is opened and authorized."""

    name: str

    @abstractmethod
    def open_session(self, authorization: PendingAuthorization) -> AbstractAsyncContextManager[ClientSession]:
        """Open the transport and yield an initialized session."""

    @abstractmethod
    def clean_stale_auth(self) -> None:
        """Remove locally cached authorization artifacts of an earlier attempt."""


@asynccontextmanager
async def capture_stderr(on_line: Callable[[str], None]) -> AsyncIterator[TextIO]:
    """Yield a writable pipe whose lines are passed to `on_line` as they arrive."""
    loop = asyncio.get_running_loop()
    read_fd, write_fd = os.pipe()
    errlog = os.fdopen(write_fd, "w")
    reader = asyncio.StreamReader()
    pipe_transport, _ = await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), os.fdopen(read_fd, "rb")
    )

    async def watch() -> None:
        while line := await reader.readline():
            on_line(line.decode(errors="replace").strip())

    watcher = asyncio.create_task(watch())
    try:
        yield errlog
    finally:
        errlog.close()
        watcher.cancel()
        pipe_transport.close()


class SubprocessTransport(MCPTransport):
    """
    Runs an auth proxy (by default `npx mcp-remote <url>`) and speaks MCP to it over stdio.

    The proxy performs the OAuth login itself and prints the authorization URL on
    stderr, which is captured line by line.
    """

    name = "subprocess"

    def __init__(self, command: str, args: list[str], auth_dir: str, env: dict[str, str] | None = None) -> None:
        self.server_params = StdioServerParameters(
            command=command,
            args=args,
            env=env if env is not None else dict(os.environ),
        )
        self.auth_dir = auth_dir

    def clean_stale_auth(self) -> None:
        clean_stale_auth_files(self.auth_dir)

    @asynccontextmanager
    async def open_session(self, authorization: PendingAuthorization) -> AsyncIterator[ClientSession]:
        def on_line(line: str) -> None:
            if not line:
                return
            if match := AUTH_URL_PATTERN.search(line):
                authorization.set_url(match.group(1))
            logger.debug(f"[{self.server_params.command}] {line}")

        logger.info(f"Starting MCP subprocess: {self.server_params.command} {' '.join(self.server_params.args)}")
        async with (
            capture_stderr(on_line) as errlog,
            stdio_client(self.server_params, errlog=errlog) as (read, write),
            ClientSession(read, write) as session,
        ):
            await session.initialize()
            yield session


class OAuthTransport(MCPTransport):
    """Streamable HTTP MCP with the OAuth authorization-code flow handled in process."""

    name = "oauth"

    def __init__(
        self,
        server_url: str,
        token_dir: str,
        redirect_uri: str,
        client_name: str,
        callback_timeout: float,
        open_browser: bool = False,
    ) -> None:
        self.server_url = server_url
        self.storage = FileTokenStorage(token_dir)
        self.client_metadata = OAuthClientMetadata(
            client_name=client_name,
            redirect_uris=[AnyUrl(redirect_uri)],
            grant_types=["authorization_code", "refresh_token"],
            response_types=["code"],
        )
        self.callback_timeout = callback_timeout
        self.open_browser = open_browser

    def clean_stale_auth(self) -> None:
        self.storage.clear()

    def build_auth(self, authorization: PendingAuthorization) -> OAuthClientProvider:
        async def redirect_handler(url: str) -> None:
            authorization.set_url(url)
            if self.open_browser:
                webbrowser.open(url)

        async def callback_handler() -> tuple[str, str | None]:
            return await authorization.wait_for_code(self.callback_timeout)

        return OAuthClientProvider(
            server_url=self.server_url,
            client_metadata=self.client_metadata,
            storage=self.storage,
            redirect_handler=redirect_handler,
            callback_handler=callback_handler,
        )

    @asynccontextmanager
    async def open_session(self, authorization: PendingAuthorization) -> AsyncIterator[ClientSession]:
        logger.info(f"Connecting to MCP server at {self.server_url}")
        async with (
            streamablehttp_client(self.server_url, auth=self.build_auth(authorization)) as (read, write, _),
            ClientSession(read, write) as session,
        ):
            await session.initialize()
            yield session


def build_transport(config: Config) -> MCPTransport:
    if config.mcp_transport == "oauth":
        return OAuthTransport(
            server_url=config.mcp_server_url,
            token_dir=config.oauth_token_dir,
            redirect_uri=config.oauth_redirect_uri,
            client_name=config.oauth_client_name,
            callback_timeout=config.connect_timeout,
            open_browser=config.oauth_open_browser,
        )
    return SubprocessTransport(
        command=config.mcp_command,
        args=config.get_mcp_args(),
        auth_dir=config.mcp_auth_dir,
    )
