from fastapi import APIRouter, Depends

from foodchat.mcp.manager import ConnectionManager, get_connection_manager
from foodchat.mcp.models import ConnectionStatus, ConnectResult, ToolInfo
from foodchat.router.api.params import DisconnectResponse, ToolsResponse

router = APIRouter(
    tags=["connection"],
    prefix="/api",
)


@router.get("/status")
async def get_status(
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> ConnectionStatus:
    return connection_manager.get_state()


@router.post("/connect")
async def connect(
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> ConnectResult:
    return await connection_manager.connect()


@router.post("/disconnect")
async def disconnect(
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> DisconnectResponse:
    await connection_manager.disconnect()
    connection_manager.clean_stale_auth()
    return DisconnectResponse(message="Disconnected and cleared stale auth tokens.")


@router.get("/tools")
async def get_tools(
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> ToolsResponse:
    return ToolsResponse(
        connected=connection_manager.connected,
        tools=[
            ToolInfo(name=tool.name, description=tool.description, input_schema=tool.inputSchema)
            for tool in connection_manager.tools
        ],
    )
