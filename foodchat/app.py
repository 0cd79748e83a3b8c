from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from foodchat.config import get_config
from foodchat.errors import FoodChatError, TurnError
from foodchat.log import logger
from foodchat.mcp.manager import get_connection_manager, init_connection_manager
from foodchat.router.api import routers
from foodchat.router.api.params import ErrorResponse
from foodchat.store import get_conversation_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Honour dependency overrides so tests share one manager and store with the app
    store = app.dependency_overrides.get(get_conversation_store, get_conversation_store)()
    connection_manager = app.dependency_overrides.get(get_connection_manager, get_connection_manager)()
    await store.initialize()
    async with init_connection_manager(connection_manager):
        yield
    await store.close()


app = FastAPI(lifespan=lifespan)


@app.exception_handler(TurnError)
async def turn_error_handler(request: Request, exc: TurnError) -> JSONResponse:
    logger.error(f"Chat turn failed: {exc}")
    content = ErrorResponse(error=str(exc), tool_calls=exc.tool_calls)
    return JSONResponse(status_code=500, content=content.model_dump(mode="json", by_alias=True))


@app.exception_handler(FoodChatError)
async def foodchat_error_handler(request: Request, exc: FoodChatError) -> JSONResponse:
    logger.error(f"Request failed: {exc}")
    content = ErrorResponse(error=str(exc))
    return JSONResponse(status_code=500, content=content.model_dump(mode="json", by_alias=True, exclude_none=True))


for router in routers:
    app.include_router(router)


async def hello():
    return {"message": "Hello World"}


static_dir = get_config().static_dir
if static_dir:
    app.mount("/", StaticFiles(directory=static_dir, html=True), name="ui")
else:
    app.add_api_route("/", hello, methods=["GET"])
