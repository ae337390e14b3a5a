import logging

from fastapi import APIRouter, Depends

from portal.api.v1.deps import get_principal, get_volume_workflow
from portal.api.v1.schemas.volumes import (
    ApiResponse,
    GrowVolumeCommand,
    NewVolumeCommand,
    NewVolumeData,
    NewVolumeResponse,
    ProjectCommand,
)
from portal.services.permissions import Principal
from portal.services.volumes import VolumeWorkflow

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/volume", response_model=NewVolumeResponse)
async def new_volume(
    payload: NewVolumeCommand,
    principal: Principal = Depends(get_principal),
    workflow: VolumeWorkflow = Depends(get_volume_workflow),
):
    volume = await workflow.create_volume(
        principal,
        payload.cluster_id,
        payload.project,
        payload.size,
        payload.pvc_name,
        payload.mode,
        payload.technology,
    )
    return NewVolumeResponse(
        message="The volume has been successfully created.",
        data=NewVolumeData(pv_name=volume.pv_name, path=volume.path),
    )


@router.post("/volume/grow", response_model=ApiResponse)
async def grow_volume(
    payload: GrowVolumeCommand,
    principal: Principal = Depends(get_principal),
    workflow: VolumeWorkflow = Depends(get_volume_workflow),
):
    await workflow.grow_volume(principal, payload.cluster_id, payload.pv_name, payload.new_size)
    return ApiResponse(message="Volume has been expanded.")


@router.post("/volume/gluster/fix", response_model=ApiResponse)
async def fix_volume(
    payload: ProjectCommand,
    principal: Principal = Depends(get_principal),
    workflow: VolumeWorkflow = Depends(get_volume_workflow),
):
    await workflow.fix_gluster_objects(principal, payload.cluster_id, payload.project)
    return ApiResponse(message="The GlusterFS objects have been created in the project.")
