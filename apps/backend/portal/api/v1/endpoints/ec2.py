import logging

from fastapi import APIRouter, Depends

from portal.api.v1.deps import get_ec2, get_permissions, get_principal
from portal.api.v1.schemas.volumes import ApiResponse
from portal.clients.ec2 import Ec2Client
from portal.core.errors import ValidationError
from portal.services.permissions import AclKind, InstanceRef, PermissionService, Principal

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/ec2/{instance_id}/{action}", response_model=ApiResponse)
async def instance_action(
    instance_id: str,
    action: str,
    principal: Principal = Depends(get_principal),
    permissions: PermissionService = Depends(get_permissions),
    ec2: Ec2Client = Depends(get_ec2),
):
    if action not in ("start", "stop"):
        raise ValidationError()

    await permissions.check(principal, InstanceRef(instance_id), AclKind.tag_owner)

    if action == "start":
        await ec2.start(instance_id)
    else:
        await ec2.stop(instance_id)
    return ApiResponse(message=f"Instance {action} initiated.")
