from foodchat.router.api.chat import router as chat_router
from foodchat.router.api.connection import router as connection_router
from foodchat.router.api.oauth import router as oauth_router

routers = [
    connection_router,
    chat_router,
    oauth_router,
]
