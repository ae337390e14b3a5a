"""OTC ECS через openstacksdk (в отдельном потоке).

Соединение одно на процесс: Keystone-токен, его продление и каталог
сервисов ведёт сессия openstacksdk.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import openstack.connection
from openstack import exceptions as os_exceptions

from portal.core.config import Settings
from portal.core.errors import ConfigurationError, ExecutionError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

OTC_API_ERROR = "Error when calling the OTC API. Please create an issue"

# action -> (метод compute proxy, доп. аргументы)
SERVER_ACTIONS: dict[str, tuple[str, tuple[Any, ...]]] = {
    "start": ("start_server", ()),
    "stop": ("stop_server", ()),
    "reboot": ("reboot_server", ("SOFT",)),
}
ACTION_FAILED = {
    "start": "At least one server couldn't be started.",
    "stop": "At least one server couldn't be stopped.",
    "reboot": "At least one server couldn't be rebooted.",
}


def server_summary(server: Any) -> dict[str, Any]:
    return {
        "id": server.id,
        "name": server.name,
        "status": server.status,
        "metadata": dict(server.metadata or {}),
    }


class ComputeClient:
    def __init__(self, settings: Settings, connection: Optional[Any] = None) -> None:
        self.settings = settings
        self._connection = connection

    @property
    def connection(self) -> Any:
        if self._connection is None:
            s = self.settings
            if not (s.otc_auth_url and s.otc_username and s.otc_password and s.otc_project_id):
                logger.warning("OTC credentials not configured")
                raise ConfigurationError()
            self._connection = openstack.connection.Connection(
                region_name=s.otc_region or None,
                auth={
                    "auth_url": s.otc_auth_url,
                    "username": s.otc_username,
                    "password": s.otc_password,
                    "project_id": s.otc_project_id,
                    "user_domain_name": s.otc_user_domain_name,
                },
                app_name="ssp-portal",
            )
        return self._connection

    async def _call(self, fn: Callable[[], Any], what: str, error: str = OTC_API_ERROR) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except os_exceptions.ResourceNotFound as exc:
            raise NotFoundError(f"Server {what} not found") from exc
        except os_exceptions.SDKException as exc:
            logger.error("Compute call failed target=%s error=%s", what, exc)
            raise ExecutionError(error) from exc

    async def list_servers(self) -> list[dict[str, Any]]:
        compute = self.connection.compute
        servers = await self._call(lambda: list(compute.servers(details=True)), "list")
        return [server_summary(server) for server in servers]

    async def get_server(self, server_id: str) -> dict[str, Any]:
        compute = self.connection.compute
        return server_summary(await self._call(lambda: compute.get_server(server_id), server_id))

    async def find_server(self, name: str) -> dict[str, Any]:
        """Сервер по имени; имя должно быть уникальным в проекте."""
        matches = [server for server in await self.list_servers() if server["name"] == name]
        if not matches:
            logger.error("No server found with that name name=%s", name)
            raise NotFoundError(f"Server {name} not found")
        if len(matches) > 1:
            logger.error("Server name is ambiguous name=%s ids=%s", name, [server["id"] for server in matches])
            raise ExecutionError(OTC_API_ERROR)
        return matches[0]

    async def server_action(self, server_id: str, action: str) -> None:
        if action not in SERVER_ACTIONS:
            raise ValidationError(f"Unknown server action: {action}")
        method_name, args = SERVER_ACTIONS[action]
        method = getattr(self.connection.compute, method_name)
        await self._call(lambda: method(server_id, *args), server_id, ACTION_FAILED[action])
        logger.info("Server action initiated server=%s action=%s", server_id, action)
