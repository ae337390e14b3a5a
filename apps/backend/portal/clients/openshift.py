"""Клиент OpenShift REST API (один токен на кластер)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from glusterapi.log import outgoing_headers
from portal.core.config import ClusterConfig
from portal.core.errors import ConfigurationError, ExecutionError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

OPENSHIFT_API_ERROR = "Error when calling the OpenShift API. Please open an issue"


def find_cluster(clusters: list[ClusterConfig], cluster_id: str) -> ClusterConfig:
    if not cluster_id:
        raise ValidationError("clusterid must be provided")
    for cluster in clusters:
        if cluster.id == cluster_id:
            return cluster
    logger.warning("Cluster not found cluster=%s", cluster_id)
    raise NotFoundError(f"Cluster {cluster_id} not found")


class OpenShiftClient:
    def __init__(
        self,
        clusters: list[ClusterConfig],
        *,
        timeout: Optional[float] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.clusters = clusters
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, cluster_id: str, path: str, json: Any = None) -> httpx.Response:
        cluster = find_cluster(self.clusters, cluster_id)
        if not cluster.url or not cluster.token:
            logger.warning("Cluster url or token not configured cluster=%s", cluster_id)
            raise ConfigurationError()

        headers = {"Authorization": f"Bearer {cluster.token}", **outgoing_headers()}
        async with httpx.AsyncClient(
            base_url=cluster.url,
            verify=cluster.verify_tls,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            logger.debug("Calling %s %s/%s", method, cluster.url, path)
            try:
                return await client.request(method, f"/{path}", json=json, headers=headers)
            except httpx.HTTPError as exc:
                logger.error("Error from OpenShift cluster=%s path=%s error=%s", cluster_id, path, exc)
                raise ExecutionError(OPENSHIFT_API_ERROR) from exc

    @staticmethod
    def _body(resp: httpx.Response, what: str) -> dict[str, Any]:
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Error parsing body of %s response error=%s", what, exc)
            raise ExecutionError(OPENSHIFT_API_ERROR) from exc

    @staticmethod
    def _fail(resp: httpx.Response, what: str) -> ExecutionError:
        logger.error("Error %s status=%s body=%s", what, resp.status_code, resp.text[:500])
        return ExecutionError(OPENSHIFT_API_ERROR)

    async def role_bindings(self, cluster_id: str, project: str) -> list[dict[str, Any]]:
        resp = await self._request(
            "GET", cluster_id, f"apis/rbac.authorization.k8s.io/v1/namespaces/{project}/rolebindings"
        )
        if resp.status_code == 404:
            logger.info("Project was not found project=%s", project)
            raise NotFoundError("The project does not exist")
        if resp.status_code != 200:
            raise self._fail(resp, "listing role bindings")
        return self._body(resp, "role bindings").get("items") or []

    async def group_users(self, cluster_id: str, group: str) -> list[str]:
        resp = await self._request("GET", cluster_id, f"apis/user.openshift.io/v1/groups/{group}")
        if resp.status_code != 200:
            raise self._fail(resp, f"getting group {group}")
        return self._body(resp, "group").get("users") or []

    async def pvc_names(self, cluster_id: str, project: str) -> list[str]:
        resp = await self._request("GET", cluster_id, f"api/v1/namespaces/{project}/persistentvolumeclaims")
        if resp.status_code != 200:
            raise self._fail(resp, "listing pvcs")
        items = self._body(resp, "pvc list").get("items") or []
        return [item.get("metadata", {}).get("name", "") for item in items]

    async def get_pv(self, cluster_id: str, pv_name: str) -> dict[str, Any]:
        if not pv_name:
            raise ValidationError("pvName must be provided")
        resp = await self._request("GET", cluster_id, f"api/v1/persistentvolumes/{pv_name}")
        if resp.status_code == 404:
            raise NotFoundError("Persistent Volume not found")
        if resp.status_code != 200:
            raise self._fail(resp, "getting pv")
        return self._body(resp, "pv")

    async def create_pv(self, cluster_id: str, body: dict[str, Any]) -> None:
        resp = await self._request("POST", cluster_id, "api/v1/persistentvolumes", json=body)
        if resp.status_code != 201:
            raise self._fail(resp, "creating pv")

    async def create_pvc(self, cluster_id: str, project: str, body: dict[str, Any]) -> None:
        resp = await self._request("POST", cluster_id, f"api/v1/namespaces/{project}/persistentvolumeclaims", json=body)
        if resp.status_code != 201:
            raise self._fail(resp, "creating pvc")

    async def create_if_missing(self, cluster_id: str, project: str, resource: str, body: dict[str, Any]) -> bool:
        """POST в `namespaces/<project>/<resource>`; 409 (уже есть) не ошибка.

        Возвращает True, если объект создан.
        """
        resp = await self._request("POST", cluster_id, f"api/v1/namespaces/{project}/{resource}", json=body)
        if resp.status_code == 409:
            logger.info("Object already existed, skipping project=%s resource=%s", project, resource)
            return False
        if resp.status_code != 201:
            raise self._fail(resp, f"creating {resource}")
        return True
