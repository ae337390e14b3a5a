import json
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest
from jose import jwt

CLUSTERS = [
    {
        "id": "dev",
        "url": "https://ose.dev.example",
        "token": "ose-token",
        "gluster_api": {
            "url": "http://gluster.dev.example:8080",
            "secret": "gluster-secret",
            "ips": "10.0.0.1,10.0.0.2",
        },
    }
]

# Настраиваем окружение до импорта portal.* модулей (conftest импортируется на старте pytest).
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MAX_VOLUME_GB", "100")
os.environ.setdefault("OPENSHIFT_CLUSTERS", json.dumps(CLUSTERS))

# Гарантируем, что `import portal` и `import glusterapi` работают независимо от текущей директории запуска pytest.
backend_root = Path(__file__).resolve().parents[1]
agent_root = backend_root.parent / "glusterapi"
for path in (backend_root, agent_root):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from portal.core.config import Settings  # noqa: E402
from portal.core.errors import NotFoundError  # noqa: E402


class UpstreamStub:
    """Обработчик для httpx.MockTransport.

    `routes`: (method, path) -> (status, json body). Остальное отвечает 404.
    """

    def __init__(self, routes=None, fail_with: Exception | None = None):
        self.routes: dict[tuple[str, str], tuple[int, object]] = dict(routes or {})
        self.fail_with = fail_with
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        status, body = self.routes.get((request.method, request.url.path), (404, {"message": "not found"}))
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def sent(self, method: str, path: str) -> list[dict]:
        return [
            json.loads(r.content or b"null")
            for r in self.requests
            if r.method == method and r.url.path == path
        ]


class FakeDirectory:
    def __init__(self, groups=None):
        self.groups: dict[str, list[str]] = dict(groups or {})
        self.calls: list[str] = []

    async def get_groups_of_user(self, username: str) -> list[str]:
        self.calls.append(username)
        return self.groups.get(username, [])


class FakeServers:
    def __init__(self, servers=None):
        self.servers: dict[str, dict] = dict(servers or {})
        self.actions: list[tuple[str, str]] = []

    async def list_servers(self) -> list[dict]:
        return list(self.servers.values())

    async def get_server(self, server_id: str) -> dict:
        return self.servers[server_id]

    async def find_server(self, name: str) -> dict:
        for server in self.servers.values():
            if server.get("name") == name:
                return server
        raise NotFoundError(f"Server {name} not found")

    async def server_action(self, server_id: str, action: str) -> None:
        self.actions.append((server_id, action))


class FakeTags:
    def __init__(self, tags=None):
        self.tags: dict[str, dict[str, list[str]]] = dict(tags or {})
        self.started: list[str] = []
        self.stopped: list[str] = []

    async def get_tags(self, instance_id: str) -> dict[str, list[str]]:
        return self.tags.get(instance_id, {})

    async def start(self, instance_id: str) -> None:
        self.started.append(instance_id)

    async def stop(self, instance_id: str) -> None:
        self.stopped.append(instance_id)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        secret_key="test-secret-key",
        max_volume_gb=100,
        openshift_clusters=json.dumps(CLUSTERS),
        acl_superadmin_group="DG_PORTAL_ADMINS",
    )


@pytest.fixture
def make_upstream():
    return UpstreamStub


@pytest.fixture
def make_directory():
    return FakeDirectory


@pytest.fixture
def make_servers():
    return FakeServers


@pytest.fixture
def make_tags():
    return FakeTags


@pytest.fixture
def make_token():
    """HS256-токен, как выдают внутренние клиенты портала."""

    def make(subject: str, secret_key: str = "test-secret-key", **claims) -> str:
        payload = {"sub": subject, "exp": datetime.now(timezone.utc) + timedelta(hours=1), **claims}
        return jwt.encode(payload, secret_key, algorithm="HS256")

    return make
