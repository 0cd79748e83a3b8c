from __future__ import annotations

import json
from typing import Any, Literal

from mcp import Tool
from mcp.types import CallToolResult, TextContent
from pydantic import Field
from pydantic_ai.tools import ToolDefinition

from foodchat.schema import CamelModel

EMPTY_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

# First match wins, so the more specific patterns come first
RENDER_KINDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("cart",), "cart"),
    (("menu", "dish", "item"), "menu"),
    (("offer", "coupon", "promo"), "offers"),
    (("address",), "addresses"),
    (("order", "checkout", "payment", "qr"), "order"),
    (("restaurant", "search", "keyword"), "restaurants"),
)
DEFAULT_RENDER_KIND = "generic"

ToolCallStatus = Literal["calling", "success", "error"]


def render_kind(tool_name: str) -> str:
    name = tool_name.lower()
    for patterns, kind in RENDER_KINDS:
        if any(pattern in name for pattern in patterns):
            return kind
    return DEFAULT_RENDER_KIND


class ToolCall(CamelModel):
    """One tool invocation requested by the model during a turn."""

    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus = "calling"
    result: str | None = None
    data: Any = None
    error: str | None = None
    kind: str = DEFAULT_RENDER_KIND

    def succeed(self, result: str, data: Any = None) -> None:
        self._finish("success")
        self.result = result
        self.data = data

    def fail(self, error: str) -> None:
        self._finish("error")
        self.error = error

    def _finish(self, status: ToolCallStatus) -> None:
        if self.status != "calling":
            raise RuntimeError(f"Tool call {self.id} already finished with status {self.status!r}")
        self.status = status


def to_tool_definition(tool: Tool) -> ToolDefinition:
    return ToolDefinition(
        name=tool.name,
        description=tool.description or f"Remote tool: {tool.name}",
        parameters_json_schema=tool.inputSchema or EMPTY_OBJECT_SCHEMA,
    )


def to_tool_definitions(tools: list[Tool]) -> list[ToolDefinition]:
    return [to_tool_definition(tool) for tool in tools]


def result_text(result: CallToolResult) -> str:
    if not result.content:
        return result.model_dump_json(exclude_none=True)
    return "\n".join(c.text if isinstance(c, TextContent) else c.model_dump_json() for c in result.content)


def parse_result_data(text: str, result: CallToolResult | None = None) -> Any:
    """Best effort: the JSON payload of a tool result, or None."""
    try:
        return json.loads(text)
    except ValueError:
        return getattr(result, "structuredContent", None)


def parse_tool_args(args: str | dict[str, Any] | None) -> dict[str, Any]:
    """Arguments of a model tool call; anything that is not a JSON object becomes {}."""
    if isinstance(args, dict):
        return args
    try:
        parsed = json.loads(args or "{}")
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}
