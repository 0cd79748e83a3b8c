from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from foodchat.schema import CamelModel


class ToolSummary(CamelModel):
    name: str
    description: str | None = None


class ToolInfo(ToolSummary):
    input_schema: dict[str, Any]


class ConnectionStatus(CamelModel):
    state: Literal["disconnected", "connecting", "connected", "error"]
    connected: bool
    connecting: bool
    tool_count: int
    tools: list[ToolSummary]
    error: str | None = None
    auth_url: str | None = None


class ConnectResult(CamelModel):
    success: bool
    connecting: bool = False
    tools: list[ToolSummary] = Field(default_factory=list)
    error: str | None = None
    auth_url: str | None = None
    help: str | None = None
