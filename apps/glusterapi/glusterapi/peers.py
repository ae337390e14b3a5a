"""Соседние узлы gluster-кластера и рассылка изменений по ним.

Порядок рассылки:
1. список соседей берём заново на каждый вызов (`gluster peer status`);
2. соседей вызываем по одному, в порядке списка, без параллелизма;
3. первая ошибка прерывает операцию, уже изменённые соседи не откатываются;
4. локальный узел меняем последним, только если все соседи ответили 200.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Any, Awaitable, Callable, Optional

import httpx

from glusterapi.errors import ExecutionError, PeerFanOutError
from glusterapi.log import outgoing_headers
from glusterapi.runner import CommandFailed, CommandRunner

logger = logging.getLogger(__name__)

API_USER = "GLUSTER_API"
PEER_STATUS_CMD = "gluster peer status | grep Hostname"


def parse_peer_status(output: str) -> list[str]:
    servers = []
    for line in output.splitlines():
        if not line.strip():
            continue
        servers.append(line.replace("Hostname: ", "").strip())
    return servers


async def discover_peers(runner: CommandRunner) -> list[str]:
    try:
        out = await runner.run("bash", "-c", PEER_STATUS_CMD)
    except CommandFailed as exc:
        logger.error("Error getting other gluster servers error=%s", exc)
        raise ExecutionError() from exc
    return parse_peer_status(out.decode(errors="replace"))


def local_address() -> str:
    """Первый не-loopback IPv4 адрес локального хоста."""
    try:
        host = socket.gethostname()
        infos = socket.getaddrinfo(host, None, socket.AF_INET)
    except OSError as exc:
        logger.error("Failed to lookup ip for local hostname error=%s", exc)
        raise ExecutionError() from exc

    for info in infos:
        addr = info[4][0]
        if not ipaddress.ip_address(addr).is_loopback:
            return addr

    logger.error("IPv4 address of local server not found host=%s", host)
    raise ExecutionError()


class PeerClient:
    """HTTP-клиент к `/sec/*` соседних агентов (basic auth общим секретом)."""

    def __init__(
        self,
        port: int,
        secret: str,
        *,
        timeout: Optional[float] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.port = port
        self.secret = secret
        self.timeout = timeout
        self.transport = transport

    def url(self, peer: str, path: str) -> str:
        return f"http://{peer}:{self.port}{path}"

    async def post(self, peer: str, path: str, payload: dict[str, Any]) -> None:
        url = self.url(peer, path)
        logger.info("Sending change to remote peer=%s path=%s", peer, path)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.post(
                    url,
                    json=payload,
                    auth=(API_USER, self.secret),
                    headers=outgoing_headers(),
                )
            except httpx.HTTPError as exc:
                logger.error("Connection to remote not possible peer=%s error=%s", peer, exc)
                raise ExecutionError() from exc
        if resp.status_code != 200:
            logger.error(
                "Remote did not respond with OK peer=%s status=%s body=%s",
                peer,
                resp.status_code,
                resp.text[:200],
            )
            raise ExecutionError()


class FanOut:
    def __init__(self, runner: CommandRunner, client: PeerClient) -> None:
        self.runner = runner
        self.client = client

    async def apply(
        self,
        path: str,
        payload: dict[str, Any],
        local: Callable[[], Awaitable[None]],
    ) -> list[str]:
        """Применяет изменение на всех соседях, затем локально.

        Возвращает список соседей, на которых изменение применено.
        При ошибке соседа бросает `PeerFanOutError` со списком уже изменённых узлов.
        """
        peers = await discover_peers(self.runner)
        done: list[str] = []
        for peer in peers:
            try:
                await self.client.post(peer, path, payload)
            except ExecutionError as exc:
                logger.error(
                    "Aborting fan-out path=%s failed_peer=%s already_changed=%s",
                    path,
                    peer,
                    done,
                )
                raise PeerFanOutError(failed_peer=peer, succeeded_peers=done) from exc
            done.append(peer)

        await local()
        return peers
