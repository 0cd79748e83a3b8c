"""A stand-in food ordering MCP server for local development.

Point the subprocess transport at it:

    FOODCHAT_MCP_COMMAND=python FOODCHAT_MCP_ARGS='["dev/mcp_server.py"]' foodchat serve
"""

from typing import Any

from mcp.server.fastmcp import FastMCP

mcp = FastMCP("food-ordering")

RESTAURANTS = [
    {"id": "r1", "name": "Saravana Bhavan", "cuisine": "South Indian", "rating": 4.5, "dishes": ["dosa", "idli"]},
    {"id": "r2", "name": "Dosa Corner", "cuisine": "South Indian", "rating": 4.2, "dishes": ["dosa", "uttapam"]},
    {"id": "r3", "name": "Chaat House", "cuisine": "Street Food", "rating": 4.0, "dishes": ["pani puri", "bhel"]},
]
MENUS = {
    "r1": [{"id": "m1", "name": "Masala Dosa", "price": 120}, {"id": "m2", "name": "Idli Vada", "price": 90}],
    "r2": [{"id": "m3", "name": "Ghee Roast Dosa", "price": 150}, {"id": "m4", "name": "Onion Uttapam", "price": 110}],
    "r3": [{"id": "m5", "name": "Pani Puri", "price": 60}, {"id": "m6", "name": "Bhel Puri", "price": 70}],
}
CART: list[dict[str, Any]] = []


@mcp.tool()
async def get_restaurants_for_keyword(query: str, lat: float | None = None, lng: float | None = None) -> dict:
    """Search restaurants serving a dish or cuisine near the given coordinates"""
    query = query.lower()
    matches = [r for r in RESTAURANTS if query in r["cuisine"].lower() or any(query in d for d in r["dishes"])]
    return {"restaurants": sorted(matches, key=lambda r: -r["rating"])}


@mcp.tool()
async def get_menu(restaurant_id: str) -> dict:
    """Get the menu of a restaurant"""
    if restaurant_id not in MENUS:
        raise ValueError(f"Restaurant {restaurant_id} is offline")
    return {"restaurant_id": restaurant_id, "items": MENUS[restaurant_id]}


@mcp.tool()
async def add_to_cart(item_id: str, quantity: int = 1) -> dict:
    """Add a menu item to the cart"""
    item = next((i for items in MENUS.values() for i in items if i["id"] == item_id), None)
    if item is None:
        raise ValueError(f"Unknown item {item_id}")
    CART.append({**item, "quantity": quantity})
    subtotal = sum(i["price"] * i["quantity"] for i in CART)
    return {"items": CART, "subtotal": subtotal, "tax": round(subtotal * 0.05, 2), "delivery": 30}


if __name__ == "__main__":
    mcp.run("stdio")
