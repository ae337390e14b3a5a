import logging

from fastapi import APIRouter, Depends

from portal.api.v1.deps import get_compute, get_permissions, get_principal
from portal.api.v1.schemas.instances import ServerList, ServerSelection
from portal.api.v1.schemas.volumes import ApiResponse
from portal.clients.compute import SERVER_ACTIONS, ComputeClient
from portal.core.errors import ValidationError
from portal.services.permissions import AclKind, PermissionService, Principal

logger = logging.getLogger(__name__)
router = APIRouter()

ACTION_MESSAGES = {
    "start": "Server start initiated.",
    "stop": "Server stop initiated.",
    "reboot": "Reboot initiated.",
}


@router.get("/ecs", response_model=ServerList)
async def list_servers(
    showall: bool = True,
    principal: Principal = Depends(get_principal),
    permissions: PermissionService = Depends(get_permissions),
    compute: ComputeClient = Depends(get_compute),
):
    """Серверы групп пользователя; суперадмин с `showall` видит все."""
    logger.info("ECS list requested user=%s showall=%s", principal.username, showall)
    servers = await permissions.visible_servers(principal, await compute.list_servers(), show_all=showall)
    return ServerList(servers=servers)


@router.post("/ecs/{action}", response_model=ApiResponse)
async def server_action(
    action: str,
    payload: ServerSelection,
    principal: Principal = Depends(get_principal),
    permissions: PermissionService = Depends(get_permissions),
    compute: ComputeClient = Depends(get_compute),
):
    if action not in SERVER_ACTIONS:
        raise ValidationError()
    refs = payload.server_refs
    if not refs or not all(str(ref) for ref in refs):
        raise ValidationError()

    await permissions.check_all(principal, refs, AclKind.directory_group)

    logger.info("ECS %s requested user=%s servers=%s", action, principal.username, [str(ref) for ref in refs])
    for ref in refs:
        server_id = ref.server_id or (await compute.find_server(ref.name))["id"]
        await compute.server_action(server_id, action)
    return ApiResponse(message=ACTION_MESSAGES[action])
