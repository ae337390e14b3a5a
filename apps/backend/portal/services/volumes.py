"""Gluster-тома в проектах OpenShift.

Создание: проверки -> том на gluster-кластере (через агент) -> Service и
Endpoints `glusterfs-cluster` в проекте -> PV -> PVC. Шаги последовательные,
отката нет: при ошибке на середине уже созданное остаётся.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from glusterapi import errors as agent_errors
from glusterapi.naming import SizeLimit, pv_name_for_volume, validate_size
from portal.clients.gluster import GlusterApiClient
from portal.clients.openshift import OpenShiftClient
from portal.core.config import Settings
from portal.core.errors import ConfigurationError, ExecutionError, ValidationError
from portal.services.permissions import AclKind, PermissionService, Principal, ProjectRef

logger = logging.getLogger(__name__)

MIN_MEGABYTES = 500
GLUSTER_OBJECT_NAME = "glusterfs-cluster"
TECHNOLOGIES = ("gluster", "nfs")

ALL_FIELDS_REQUIRED = "All fields must be filled out."
WRONG_TECHNOLOGY = "Invalid technology. Must be either nfs or gluster"
NFS_NOT_SUPPORTED = "NFS volumes are not supported by this portal"


@dataclass(frozen=True)
class NewVolume:
    pv_name: str
    path: str


def _object(kind: str, name: str) -> dict[str, Any]:
    return {"kind": kind, "apiVersion": "v1", "metadata": {"name": name}}


def persistent_volume(pv_name: str, size: str, path: str, mode: str, storage_class: str = "") -> dict[str, Any]:
    pv = _object("PersistentVolume", pv_name)
    pv["spec"] = {
        "capacity": {"storage": size},
        "glusterfs": {"endpoints": GLUSTER_OBJECT_NAME, "path": path, "readOnly": False},
        "persistentVolumeReclaimPolicy": "Retain",
        "accessModes": [mode],
    }
    if storage_class:
        pv["spec"]["storageClassName"] = storage_class
    return pv


def persistent_volume_claim(pvc_name: str, size: str, mode: str, storage_class: str = "") -> dict[str, Any]:
    pvc = _object("PersistentVolumeClaim", pvc_name)
    pvc["spec"] = {"resources": {"requests": {"storage": size}}, "accessModes": [mode]}
    if storage_class:
        pvc["spec"]["storageClassName"] = storage_class
    return pvc


def gluster_service() -> dict[str, Any]:
    service = _object("Service", GLUSTER_OBJECT_NAME)
    service["spec"] = {"ports": [{"port": 1}]}
    return service


def gluster_endpoints(ips: list[str]) -> dict[str, Any]:
    endpoints = _object("Endpoints", GLUSTER_OBJECT_NAME)
    endpoints["subsets"] = [{"addresses": [{"ip": ip} for ip in ips], "ports": [{"port": 1}]}]
    return endpoints


class VolumeWorkflow:
    def __init__(
        self,
        settings: Settings,
        openshift: OpenShiftClient,
        gluster: GlusterApiClient,
        permissions: PermissionService,
    ) -> None:
        self.settings = settings
        self.openshift = openshift
        self.gluster = gluster
        self.permissions = permissions

    def check_size(self, size: str, technology: str = "gluster") -> None:
        if self.settings.max_volume_gb <= 0:
            logger.error("MAX_VOLUME_GB must be specified and a valid integer")
            raise ConfigurationError()
        try:
            validate_size(size, SizeLimit(max_gigabytes=self.settings.max_volume_gb), technology, MIN_MEGABYTES)
        except agent_errors.ValidationError as exc:
            raise ValidationError(exc.message) from exc

    async def check_pvc_name(self, cluster_id: str, project: str, pvc_name: str) -> None:
        if pvc_name in await self.openshift.pvc_names(cluster_id, project):
            raise ValidationError(f"The requested persistent volume claim(PVC) name {pvc_name} already exists.")

    async def create_volume(
        self,
        principal: Principal,
        cluster_id: str,
        project: str,
        size: str,
        pvc_name: str,
        mode: str,
        technology: str = "gluster",
    ) -> NewVolume:
        if not (project and pvc_name and size and mode):
            raise ValidationError(ALL_FIELDS_REQUIRED)
        self.check_size(size, technology)

        ref = ProjectRef(cluster_id, project)
        await self.permissions.check(principal, ref, AclKind.role_binding)
        await self.check_pvc_name(cluster_id, project, pvc_name)

        if technology not in TECHNOLOGIES:
            raise ValidationError(WRONG_TECHNOLOGY)
        if technology == "nfs":
            raise ValidationError(NFS_NOT_SUPPORTED)

        storage_class = self.gluster.config(cluster_id).storage_class
        short_name = await self.gluster.create_volume(cluster_id, project, size)
        logger.info("Gluster volume created user=%s cluster=%s project=%s size=%s", principal.username, cluster_id, project, size)

        # `_` недопустим в имени PV; `gl-` отличает от PV других хранилищ
        volume = NewVolume(pv_name=pv_name_for_volume(short_name), path=f"vol_{short_name}")

        await self.ensure_gluster_objects(cluster_id, project)
        await self.openshift.create_pv(cluster_id, persistent_volume(volume.pv_name, size, volume.path, mode, storage_class))
        logger.info("Created pv=%s user=%s cluster=%s", volume.pv_name, principal.username, cluster_id)
        await self.openshift.create_pvc(cluster_id, project, persistent_volume_claim(pvc_name, size, mode, storage_class))
        logger.info("Created pvc=%s user=%s cluster=%s", pvc_name, principal.username, cluster_id)
        return volume

    async def grow_volume(self, principal: Principal, cluster_id: str, pv_name: str, new_size: str) -> None:
        pv = await self.openshift.get_pv(cluster_id, pv_name)
        if not new_size:
            raise ValidationError(ALL_FIELDS_REQUIRED)
        # Технология здесь не важна: размер может только расти
        self.check_size(new_size, "any")

        spec = pv.get("spec") or {}
        project = (spec.get("claimRef") or {}).get("namespace")
        if not project:
            logger.error("spec.claimRef.namespace not found in pv=%s", pv_name)
            raise ExecutionError()
        await self.permissions.check(principal, ProjectRef(cluster_id, project), AclKind.role_binding)

        if "glusterfs" not in spec:
            if "nfs" in spec:
                raise ValidationError(NFS_NOT_SUPPORTED)
            raise ValidationError("Wrong pv name")
        path = spec["glusterfs"].get("path") or ""
        if not path:
            logger.error("spec.glusterfs.path not found in pv=%s", pv_name)
            raise ExecutionError()

        await self.gluster.grow_volume(cluster_id, path.replace("vol_", "", 1), new_size)
        logger.info("Gluster volume grown user=%s pv=%s new_size=%s", principal.username, pv_name, new_size)

    async def fix_gluster_objects(self, principal: Principal, cluster_id: str, project: str) -> None:
        if not project:
            raise ValidationError("Project name must be provided")
        await self.permissions.check(principal, ProjectRef(cluster_id, project), AclKind.role_binding)
        await self.ensure_gluster_objects(cluster_id, project)

    async def ensure_gluster_objects(self, cluster_id: str, project: str) -> None:
        ips = self.gluster.config(cluster_id).ip_list
        if not ips:
            logger.warning("Gluster api ips not configured cluster=%s", cluster_id)
            raise ConfigurationError()
        await self.openshift.create_if_missing(cluster_id, project, "services", gluster_service())
        await self.openshift.create_if_missing(cluster_id, project, "endpoints", gluster_endpoints(ips))
