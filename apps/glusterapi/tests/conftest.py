import json
import sys
from pathlib import Path

import httpx
import pytest

# Гарантируем, что `import glusterapi` работает независимо от текущей директории запуска pytest.
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from glusterapi.config import GlusterSettings  # noqa: E402
from glusterapi.runner import CommandFailed  # noqa: E402

LOCAL_IP = "192.168.125.240"


class FakeRunner:
    """Записывает команды и отдаёт заранее заданный вывод по очереди.

    `failures`: подстрока команды -> код выхода.
    """

    def __init__(self, outputs=None, failures=None):
        self.commands: list[str] = []
        self.outputs: list[str] = list(outputs or [])
        self.failures: dict[str, int] = dict(failures or {})

    async def run(self, command: str, *args: str) -> bytes:
        line = " ".join((command, *args))
        self.commands.append(line)
        for marker, code in self.failures.items():
            if marker in line:
                raise CommandFailed(line, code, b"", f"failed with {code}".encode())
        current = self.outputs.pop(0) if self.outputs else ""
        return current.encode()


class PeerRecorder:
    """Обработчик для httpx.MockTransport: пишет вызовы, отвечает заданным статусом."""

    def __init__(self, statuses=None, unreachable=(), timeline=None):
        self.timeline = timeline
        self.calls: list[tuple[str, str, dict]] = []
        self.statuses: dict[str, int] = dict(statuses or {})
        self.unreachable = set(unreachable)
        self.auth_headers: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        self.calls.append((host, request.url.path, json.loads(request.content or b"{}")))
        if self.timeline is not None:
            self.timeline.append(f"POST {host}{request.url.path}")
        self.auth_headers.append(request.headers.get("authorization", ""))
        return httpx.Response(self.statuses.get(host, 200), json={"message": "ok"})


@pytest.fixture
def settings() -> GlusterSettings:
    return GlusterSettings(
        port=8080,
        max_gb=100,
        replicas=2,
        pool_name="pool",
        vg_name="vgname",
        base_path="/basepath",
        secret="s3cret",
    )


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture
def make_peers():
    return PeerRecorder


@pytest.fixture
def local_ip() -> str:
    return LOCAL_IP
