from __future__ import annotations

from collections.abc import Mapping, Sequence

from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition

from foodchat.config import Config, get_config
from foodchat.errors import TurnError
from foodchat.llms.models import init_model
from foodchat.llms.prompts import SYSTEM_PROMPT, build_system_prompt
from foodchat.llms.tools import (
    ToolCall,
    parse_result_data,
    parse_tool_args,
    render_kind,
    result_text,
    to_tool_definitions,
)
from foodchat.log import logger
from foodchat.mcp.manager import ConnectionManager
from foodchat.schema import CamelModel
from foodchat.store.base import ConversationStore, HistoryMessage

FALLBACK_RESPONSE = "I processed your request but did not get a text response."


class TurnResult(CamelModel):
    response: str
    tool_calls: list[ToolCall]
    chat_id: str


def to_model_message(message: HistoryMessage) -> ModelMessage | None:
    if message.role == "user":
        return ModelRequest(parts=[UserPromptPart(content=message.content)])
    if message.role == "assistant":
        return ModelResponse(parts=[TextPart(content=message.content)])
    if message.role == "system":
        return ModelRequest(parts=[SystemPromptPart(content=message.content)])
    # A stored tool result has no call left to answer
    return None


def get_tool_call_parts(response: ModelResponse) -> list[ToolCallPart]:
    return [part for part in response.parts if isinstance(part, ToolCallPart)]


def get_text(response: ModelResponse) -> str:
    return "".join(part.content for part in response.parts if isinstance(part, TextPart)).strip()


class MCPAgent:
    """
    Runs one chat turn: the model is called repeatedly, and every tool it asks for is
    invoked on the remote tool service and fed back, until it answers in plain text.
    """

    def __init__(
        self,
        model: Model | None,
        connection_manager: ConnectionManager,
        store: ConversationStore,
        config: Config | None = None,
        system_prompt: str = SYSTEM_PROMPT,
        model_settings: ModelSettings | None = None,
    ) -> None:
        self.config = config or get_config()
        self.model = model
        self.connection_manager = connection_manager
        self.store = store
        self.system_prompt = system_prompt
        self.model_settings = model_settings

        self.max_iterations = self.config.max_tool_iterations
        self.result_max_chars = self.config.tool_result_max_chars

    def get_model(self) -> Model:
        if self.model is None:
            self.model = init_model(self.config)
        return self.model

    def map_tools(self) -> list[ToolDefinition]:
        if not self.connection_manager.connected:
            return []
        return to_tool_definitions(self.connection_manager.tools)

    def build_messages(
        self,
        history: Sequence[HistoryMessage],
        user_message: str,
        location: Mapping[str, float] | None = None,
    ) -> list[ModelMessage]:
        messages: list[ModelMessage] = [
            ModelRequest(parts=[SystemPromptPart(content=build_system_prompt(location, self.system_prompt))])
        ]
        messages.extend(m for m in map(to_model_message, history) if m is not None)
        messages.append(ModelRequest(parts=[UserPromptPart(content=user_message)]))
        return messages

    async def _request(
        self, model: Model, messages: list[ModelMessage], tool_definitions: list[ToolDefinition]
    ) -> ModelResponse:
        return await model_request(
            model,
            messages,
            model_settings=self.model_settings,
            model_request_parameters=ModelRequestParameters(
                function_tools=tool_definitions,
                allow_text_output=True,
            ),
        )

    async def _execute_tool_call(self, part: ToolCallPart, trace: list[ToolCall]) -> ToolReturnPart:
        args = parse_tool_args(part.args)
        record = ToolCall(id=part.tool_call_id, name=part.tool_name, args=args, kind=render_kind(part.tool_name))
        trace.append(record)

        try:
            result = await self.connection_manager.call_tool(part.tool_name, args)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Tool {part.tool_name} failed: {error}")
            record.fail(error)
            content = f"Error: {error}"
        else:
            content = result_text(result)
            record.succeed(content[: self.result_max_chars], parse_result_data(content, result))

        return ToolReturnPart(tool_name=part.tool_name, content=content, tool_call_id=part.tool_call_id)

    async def run_turn(
        self,
        session_id: str,
        chat_id: str,
        user_message: str,
        history: Sequence[HistoryMessage] | None = None,
        location: Mapping[str, float] | None = None,
    ) -> TurnResult:
        """
        Answer `user_message` in the given chat.

        When `history` is None the earlier messages of the chat are loaded from the store.
        Tool failures are fed back to the model; a failed model call raises `TurnError`
        and leaves only the user message persisted.
        """
        model = self.get_model()
        if history is None:
            history = await self.store.get_messages(session_id, chat_id)
        chat_id = await self.store.add_message(session_id, chat_id, "user", user_message)

        messages = self.build_messages(history, user_message, location)
        tool_definitions = self.map_tools()
        tool_calls: list[ToolCall] = []

        try:
            response = await self._request(model, messages, tool_definitions)
            iterations = 1
            while (tool_call_parts := get_tool_call_parts(response)) and iterations < self.max_iterations:
                messages.append(response)
                tool_returns = []
                for part in tool_call_parts:
                    tool_returns.append(await self._execute_tool_call(part, tool_calls))
                messages.append(ModelRequest(parts=tool_returns))

                response = await self._request(model, messages, tool_definitions)
                iterations += 1
        except Exception as e:
            logger.exception(f"Model call failed: {e}")
            raise TurnError(str(e) or e.__class__.__name__, tool_calls) from e

        if tool_call_parts:
            logger.warning(f"Stopped tool calling after {iterations} model calls")

        final_content = get_text(response) or FALLBACK_RESPONSE
        await self.store.add_message(session_id, chat_id, "assistant", final_content)
        return TurnResult(response=final_content, tool_calls=tool_calls, chat_id=chat_id)
