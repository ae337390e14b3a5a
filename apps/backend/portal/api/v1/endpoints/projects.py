import logging

from fastapi import APIRouter, Depends, Query

from portal.api.v1.deps import get_permissions, get_principal
from portal.api.v1.schemas.volumes import AdminList
from portal.core.errors import ValidationError
from portal.services.permissions import PermissionService, Principal, ProjectRef

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/project/admins", response_model=AdminList)
async def project_admins(
    clusterid: str = Query(""),
    project: str = Query(""),
    principal: Principal = Depends(get_principal),
    permissions: PermissionService = Depends(get_permissions),
):
    if not clusterid or not project:
        raise ValidationError()
    logger.info("%s has queried all the admins of project %s on cluster %s", principal.username, project, clusterid)
    return AdminList(admins=await permissions.project_admins(ProjectRef(clusterid, project)))
