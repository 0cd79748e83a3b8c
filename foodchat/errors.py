from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from foodchat.llms.tools import ToolCall


class FoodChatError(Exception):
    pass


class ConfigurationError(FoodChatError):
    """Required configuration is missing or still a placeholder."""


class ConnectionFailedError(FoodChatError):
    pass


class AuthorizationError(ConnectionFailedError):
    """The interactive authorization was rejected or aborted."""


class AuthorizationTimeoutError(AuthorizationError):
    pass


class ToolCallError(FoodChatError):
    """A remote tool could not be invoked or reported a failure."""


class NotConnectedError(ToolCallError):
    def __init__(self, message: str = "MCP not connected. Please connect first.") -> None:
        super().__init__(message)


class TurnError(FoodChatError):
    """A chat turn was aborted because the language model call failed."""

    def __init__(self, message: str, tool_calls: list[ToolCall] | None = None) -> None:
        super().__init__(message)
        self.tool_calls = tool_calls or []
