"""Клиент `/sec/volume*` gluster-агента кластера."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from glusterapi.log import outgoing_headers
from glusterapi.peers import API_USER
from portal.clients.openshift import find_cluster
from portal.core.config import ClusterConfig, GlusterApiConfig
from portal.core.errors import ConfigurationError, ExecutionError

logger = logging.getLogger(__name__)


class GlusterApiClient:
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

    def config(self, cluster_id: str) -> GlusterApiConfig:
        api = find_cluster(self.clusters, cluster_id).gluster_api
        if api is None or not api.url or not api.secret:
            logger.warning("Gluster api url or secret not configured cluster=%s", cluster_id)
            raise ConfigurationError()
        return api

    async def _post(self, cluster_id: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        api = self.config(cluster_id)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.post(
                    f"{api.url.rstrip('/')}/{path}",
                    json=payload,
                    auth=(API_USER, api.secret),
                    headers=outgoing_headers(),
                )
            except httpx.HTTPError as exc:
                logger.error("Error from gluster api cluster=%s path=%s error=%s", cluster_id, path, exc)
                raise ExecutionError() from exc

        if resp.status_code != 200:
            try:
                detail = resp.json().get("message") or resp.text
            except ValueError:
                detail = resp.text
            logger.error("Gluster api failed cluster=%s path=%s status=%s body=%s", cluster_id, path, resp.status_code, detail)
            raise ExecutionError(f"Error message from GlusterFS API: {detail}")
        return resp.json()

    async def create_volume(self, cluster_id: str, project: str, size: str) -> str:
        """Возвращает `<project>_pv<N>`."""
        body = await self._post(cluster_id, "sec/volume", {"project": project, "size": size})
        return body["message"]

    async def grow_volume(self, cluster_id: str, pv_name: str, new_size: str) -> None:
        await self._post(cluster_id, "sec/volume/grow", {"pvName": pv_name, "newSize": new_size})
