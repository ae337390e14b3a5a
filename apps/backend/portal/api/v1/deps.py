from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from portal.clients.compute import ComputeClient
from portal.clients.directory import DirectoryClient
from portal.clients.ec2 import Ec2Client
from portal.clients.gluster import GlusterApiClient
from portal.clients.openshift import OpenShiftClient
from portal.core.config import Settings, get_settings
from portal.core.security import SigningKeyStore, verify_token
from portal.services.permissions import (
    DirectoryGroupResolver,
    PermissionService,
    Principal,
    RoleBindingResolver,
    TagOwnerResolver,
)
from portal.services.volumes import VolumeWorkflow

security_scheme = HTTPBearer()


def get_signing_keys(request: Request) -> SigningKeyStore:
    return request.app.state.signing_keys


async def get_current_username(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
    settings: Settings = Depends(get_settings),
    keys: SigningKeyStore = Depends(get_signing_keys),
) -> str:
    try:
        payload = await verify_token(credentials.credentials, settings, keys)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Неверные учетные данные",
        ) from exc

    username = payload.get("preferred_username") or payload.get("sub")
    if not username:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Токен без subject")
    return str(username)


def get_openshift(settings: Settings = Depends(get_settings)) -> OpenShiftClient:
    return OpenShiftClient(settings.clusters, timeout=settings.upstream_timeout_seconds)


def get_gluster_api(settings: Settings = Depends(get_settings)) -> GlusterApiClient:
    return GlusterApiClient(settings.clusters, timeout=settings.upstream_timeout_seconds)


def get_directory(settings: Settings = Depends(get_settings)) -> DirectoryClient:
    return DirectoryClient(settings)


def get_compute(request: Request) -> ComputeClient:
    # openstack-соединение (и Keystone-токен) одно на процесс
    return request.app.state.compute


def get_ec2(request: Request) -> Ec2Client:
    # boto3-клиент создаётся один раз на процесс
    return request.app.state.ec2


def get_principal(
    username: str = Depends(get_current_username),
    directory: DirectoryClient = Depends(get_directory),
) -> Principal:
    return Principal(username, directory)


def get_permissions(
    settings: Settings = Depends(get_settings),
    openshift: OpenShiftClient = Depends(get_openshift),
    compute: ComputeClient = Depends(get_compute),
    ec2: Ec2Client = Depends(get_ec2),
) -> PermissionService:
    return PermissionService(
        [
            RoleBindingResolver(openshift),
            DirectoryGroupResolver(compute, settings.acl_owner_group_key),
            TagOwnerResolver(ec2, settings.acl_owner_tag),
        ],
        superadmin_group=settings.acl_superadmin_group,
    )


def get_volume_workflow(
    settings: Settings = Depends(get_settings),
    openshift: OpenShiftClient = Depends(get_openshift),
    gluster: GlusterApiClient = Depends(get_gluster_api),
    permissions: PermissionService = Depends(get_permissions),
) -> VolumeWorkflow:
    return VolumeWorkflow(settings, openshift, gluster, permissions)
