"""Shared fakes for kubeproxy unit tests."""

import asyncio

import pytest

from kubeproxy.core.errors import DirectoryUnavailable
from kubeproxy.core.interfaces import ClusterDirectory
from kubeproxy.utils.config import ProxyConfig


class FakeProcess:
    """Stands in for asyncio.subprocess.Process."""

    def __init__(self, pid: int, returncode: int | None = None, exits_on_terminate: bool = True):
        self.pid = pid
        self.returncode = returncode
        self.exits_on_terminate = exits_on_terminate
        self.terminate_calls = 0
        self.kill_calls = 0
        self._exited = asyncio.Event()
        if returncode is not None:
            self._exited.set()

    def exit(self, code: int) -> None:
        self.returncode = code
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode

    def terminate(self) -> None:
        self.terminate_calls += 1
        if self.exits_on_terminate:
            self.exit(-15)

    def kill(self) -> None:
        self.kill_calls += 1
        self.exit(-9)


class FakeLauncher:
    """Process factory and readiness probe backed by FakeProcess."""

    def __init__(
        self,
        tunnel_returncode: int | None = None,
        proxy_returncode: int | None = None,
        tunnel_exits_on_terminate: bool = True,
    ):
        self.tunnel_returncode = tunnel_returncode
        self.proxy_returncode = proxy_returncode
        self.tunnel_exits_on_terminate = tunnel_exits_on_terminate
        self.commands: list[list[str]] = []
        self.tunnel: FakeProcess | None = None
        self.proxy: FakeProcess | None = None

    async def __call__(self, *command: str) -> FakeProcess:
        self.commands.append(list(command))
        if command[0] == "kubectl":
            self.tunnel = FakeProcess(
                100, self.tunnel_returncode, exits_on_terminate=self.tunnel_exits_on_terminate
            )
            return self.tunnel
        self.proxy = FakeProcess(200, self.proxy_returncode)
        return self.proxy

    async def probe(self, host: str, port: int) -> bool:
        return self.tunnel is not None and self.tunnel.returncode is None


class FakeDirectory(ClusterDirectory):
    """In-memory cluster directory."""

    def __init__(self, services=(), pods=(), current_context="dev", fail=False):
        self.services = list(services)
        self.pods = list(pods)
        self.current_context = current_context
        self.fail = fail
        self.calls: list[str] = []
        self.closed = False

    async def resolve_context(self, context):
        self.calls.append("resolve_context")
        return context or self.current_context

    async def list_services(self, context, namespace):
        self.calls.append("list_services")
        if self.fail:
            raise DirectoryUnavailable("connection refused")
        return list(self.services)

    async def list_pods(self, context, namespace):
        self.calls.append("list_pods")
        if self.fail:
            raise DirectoryUnavailable("connection refused")
        return list(self.pods)

    async def close(self):
        self.closed = True


@pytest.fixture
def fast_config(tmp_path):
    """ProxyConfig with short timings and artifacts under tmp_path."""
    return ProxyConfig(
        namespace="staging",
        context="dev",
        output_dir=str(tmp_path),
        readiness_timeout=1.0,
        poll_interval=0.01,
        shutdown_timeout=0.1,
    )


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def fake_launcher_cls():
    return FakeLauncher


@pytest.fixture
def fake_directory_cls():
    return FakeDirectory
