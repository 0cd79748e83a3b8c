import pytest
from mcp import Tool
from mcp.types import CallToolResult, ImageContent, TextContent

from foodchat.llms.tools import (
    EMPTY_OBJECT_SCHEMA,
    ToolCall,
    parse_result_data,
    parse_tool_args,
    render_kind,
    result_text,
    to_tool_definition,
)


@pytest.mark.parametrize(
    "tool_name,kind",
    [
        ("get_restaurants_for_keyword", "restaurants"),
        ("search_dishes", "menu"),
        ("get_restaurant_menu", "menu"),
        ("add_to_cart", "cart"),
        ("update_cart_item", "cart"),
        ("get_available_offers", "offers"),
        ("apply_coupon", "offers"),
        ("get_saved_addresses", "addresses"),
        ("checkout", "order"),
        ("generate_payment_qr", "order"),
        ("get_order_status", "order"),
        ("ping", "generic"),
    ],
)
def test_render_kind(tool_name, kind):
    assert render_kind(tool_name) == kind


def test_tool_definition():
    schema = {"type": "object", "properties": {"query": {"type": "string"}}, "required": ["query"]}
    definition = to_tool_definition(Tool(name="search", description="Search things", inputSchema=schema))

    assert definition.name == "search"
    assert definition.description == "Search things"
    assert definition.parameters_json_schema == schema


def test_tool_definition_defaults():
    definition = to_tool_definition(Tool(name="ping", inputSchema={}))

    assert definition.description == "Remote tool: ping"
    assert definition.parameters_json_schema == EMPTY_OBJECT_SCHEMA


@pytest.mark.parametrize(
    "args,expected",
    [
        ({"query": "dosa"}, {"query": "dosa"}),
        ('{"query": "dosa"}', {"query": "dosa"}),
        ("", {}),
        (None, {}),
        ("{not json", {}),
        ("[1, 2]", {}),
    ],
)
def test_parse_tool_args(args, expected):
    assert parse_tool_args(args) == expected


def test_result_text():
    result = CallToolResult(
        content=[
            TextContent(type="text", text="first"),
            TextContent(type="text", text="second"),
        ]
    )
    assert result_text(result) == "first\nsecond"


def test_result_text_non_text_content():
    result = CallToolResult(content=[ImageContent(type="image", data="aGk=", mimeType="image/png")])
    assert '"mimeType":"image/png"' in result_text(result)


def test_parse_result_data():
    assert parse_result_data('{"items": [1]}') == {"items": [1]}
    assert parse_result_data("plain text") is None

    result = CallToolResult(content=[TextContent(type="text", text="plain text")], structuredContent={"ok": True})
    assert parse_result_data("plain text", result) == {"ok": True}


def test_tool_call_transitions_once():
    call = ToolCall(id="call_1", name="add_to_cart", args={"item_id": "i1"}, kind="cart")
    assert call.status == "calling"

    call.succeed("added", {"cart": []})
    assert call.status == "success"
    assert call.result == "added"
    assert call.data == {"cart": []}

    with pytest.raises(RuntimeError):
        call.fail("too late")
    assert call.status == "success"
    assert call.error is None


def test_tool_call_failure():
    call = ToolCall(id="call_2", name="checkout")
    call.fail("Restaurant is offline")

    assert call.status == "error"
    assert call.error == "Restaurant is offline"
    assert call.model_dump(by_alias=True)["status"] == "error"
