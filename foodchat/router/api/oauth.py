from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from foodchat.mcp.manager import ConnectionManager, get_connection_manager

router = APIRouter(
    tags=["oauth"],
    prefix="/oauth",
)

PAGE = "<!doctype html><html><body><h3>{message}</h3><p>You can close this window.</p></body></html>"


@router.get("/callback", response_class=HTMLResponse)
async def oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> HTMLResponse:
    if error or not code:
        connection_manager.reject_authorization(error_description or error or "no authorization code")
        return HTMLResponse(PAGE.format(message="Authorization failed."), status_code=400)

    if not connection_manager.complete_authorization(code, state):
        return HTMLResponse(PAGE.format(message="No authorization is pending."), status_code=409)
    return HTMLResponse(PAGE.format(message="Authorization complete."))
