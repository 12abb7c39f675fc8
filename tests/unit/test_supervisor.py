"""Unit tests for the process supervisor state machine."""

import asyncio
import dataclasses

import pytest

from kubeproxy.core.errors import MissingDependency, TunnelStartupFailed
from kubeproxy.core.models import ProcessState, SupervisorState, TerminationReason
from kubeproxy.runtime import ProcessSupervisor, check_dependencies
from kubeproxy.runtime.probe import port_is_open

S = SupervisorState


def make_supervisor(config, launcher, **kwargs):
    return ProcessSupervisor(
        config, process_factory=launcher, probe=launcher.probe, handle_signals=False, **kwargs
    )


async def wait_for_state(supervisor, state):
    for _ in range(1000):
        if supervisor.state == state:
            return
        await asyncio.sleep(0.001)
    raise AssertionError(f"supervisor never reached {state}")


class TestCommands:
    """Test collaborator command lines."""

    def test_tunnel_command(self, fast_config, launcher):
        """Test kubectl proxy arguments."""
        supervisor = make_supervisor(fast_config, launcher)

        assert supervisor.tunnel_command() == [
            "kubectl", "--context", "dev", "proxy", "--port=8001",
            r"--accept-hosts=^localhost$,^127\.0\.0\.1$",
        ]

    def test_tunnel_command_without_context(self, fast_config, launcher):
        """Test that no context means kubectl's current context."""
        supervisor = make_supervisor(dataclasses.replace(fast_config, context=None), launcher)

        assert "--context" not in supervisor.tunnel_command()

    def test_edge_proxy_command(self, fast_config, launcher):
        """Test caddy arguments."""
        supervisor = make_supervisor(fast_config, launcher)

        assert supervisor.edge_proxy_command() == [
            "caddy", "run", "--config", fast_config.caddyfile_path, "--adapter", "caddyfile",
        ]


class TestLifecycle:
    """Test the run lifecycle."""

    def test_proxy_exit_drives_teardown(self, fast_config, fake_launcher_cls):
        """Test that the edge proxy exiting stops the tunnel."""
        launcher = fake_launcher_cls(proxy_returncode=0)
        supervisor = make_supervisor(fast_config, launcher)

        reason = asyncio.run(supervisor.run())

        assert reason == TerminationReason.PROXY_EXITED
        assert supervisor.history == [
            S.IDLE, S.TUNNEL_STARTING, S.TUNNEL_READY, S.PROXY_RUNNING, S.TERMINATING, S.TERMINATED,
        ]
        assert supervisor.edge_proxy.state == ProcessState.EXITED
        assert supervisor.tunnel.state == ProcessState.KILLED
        assert launcher.tunnel.terminate_calls == 1
        assert launcher.proxy.terminate_calls == 0

    def test_stop_request_stops_both(self, fast_config, launcher):
        """Test an operator interrupt while the proxy is running."""
        supervisor = make_supervisor(fast_config, launcher)

        async def scenario():
            task = asyncio.create_task(supervisor.run())
            await wait_for_state(supervisor, S.PROXY_RUNNING)
            supervisor.request_stop()
            return await task

        reason = asyncio.run(scenario())

        assert reason == TerminationReason.SIGNAL
        assert supervisor.state == S.TERMINATED
        assert supervisor.tunnel.state == ProcessState.KILLED
        assert supervisor.edge_proxy.state == ProcessState.KILLED
        assert launcher.tunnel.returncode is not None
        assert launcher.proxy.returncode is not None

    def test_tunnel_death_drives_teardown(self, fast_config, launcher):
        """Test that a tunnel found dead later ends the run."""
        supervisor = make_supervisor(fast_config, launcher)

        async def scenario():
            task = asyncio.create_task(supervisor.run())
            await wait_for_state(supervisor, S.PROXY_RUNNING)
            launcher.tunnel.exit(1)
            return await task

        reason = asyncio.run(scenario())

        assert reason == TerminationReason.TUNNEL_DIED
        assert supervisor.tunnel.state == ProcessState.EXITED
        assert supervisor.edge_proxy.state == ProcessState.KILLED

    def test_on_ready_called_before_proxy(self, fast_config, fake_launcher_cls):
        """Test the readiness hook."""
        launcher = fake_launcher_cls(proxy_returncode=0)
        seen = []
        supervisor = make_supervisor(
            fast_config, launcher, on_ready=lambda: seen.append((supervisor.state, launcher.proxy))
        )

        asyncio.run(supervisor.run())

        assert seen == [(S.TUNNEL_READY, None)]

    def test_stop_before_tunnel_ready(self, fast_config, fake_launcher_cls):
        """Test that a stop during readiness skips the edge proxy."""
        launcher = fake_launcher_cls()

        async def never_ready(host, port):
            return False

        supervisor = ProcessSupervisor(
            fast_config, process_factory=launcher, probe=never_ready, handle_signals=False
        )

        async def scenario():
            task = asyncio.create_task(supervisor.run())
            await wait_for_state(supervisor, S.TUNNEL_STARTING)
            await asyncio.sleep(0.02)
            supervisor.request_stop()
            return await task

        reason = asyncio.run(scenario())

        assert reason == TerminationReason.SIGNAL
        assert launcher.proxy is None
        assert S.PROXY_RUNNING not in supervisor.history
        assert supervisor.tunnel.state == ProcessState.KILLED


class TestTunnelStartup:
    """Test tunnel readiness failures."""

    def test_tunnel_exits_during_startup(self, fast_config, fake_launcher_cls):
        """Test a tunnel that dies immediately, e.g. on a port conflict."""
        launcher = fake_launcher_cls(tunnel_returncode=1)
        supervisor = make_supervisor(fast_config, launcher)

        with pytest.raises(TunnelStartupFailed, match="exit code 1"):
            asyncio.run(supervisor.run())

        assert [cmd[0] for cmd in launcher.commands] == ["kubectl"]
        assert supervisor.edge_proxy is None
        assert supervisor.tunnel.state == ProcessState.EXITED
        assert supervisor.termination_reason == TerminationReason.FAILURE
        assert supervisor.state == S.TERMINATED
        assert S.PROXY_RUNNING not in supervisor.history

    def test_port_already_in_use(self, fast_config, launcher):
        """Test that a listener on the tunnel port fails before spawning."""

        async def always_open(host, port):
            return True

        supervisor = ProcessSupervisor(
            fast_config, process_factory=launcher, probe=always_open, handle_signals=False
        )

        with pytest.raises(TunnelStartupFailed, match="already in use"):
            asyncio.run(supervisor.run())

        assert launcher.commands == []
        assert supervisor.state == S.TERMINATED

    def test_readiness_timeout(self, fast_config, launcher):
        """Test a tunnel that never accepts connections."""

        async def never_ready(host, port):
            return False

        config = dataclasses.replace(fast_config, readiness_timeout=0.05)
        supervisor = ProcessSupervisor(config, process_factory=launcher, probe=never_ready, handle_signals=False)

        with pytest.raises(TunnelStartupFailed, match="did not become ready"):
            asyncio.run(supervisor.run())

        assert launcher.proxy is None
        assert supervisor.tunnel.state == ProcessState.KILLED

    def test_missing_binary_at_spawn(self, fast_config):
        """Test a binary vanishing between the dependency check and spawn."""

        async def factory(*command):
            raise FileNotFoundError(command[0])

        async def probe(host, port):
            return False

        supervisor = ProcessSupervisor(fast_config, process_factory=factory, probe=probe, handle_signals=False)

        with pytest.raises(MissingDependency) as exc_info:
            asyncio.run(supervisor.run())

        assert exc_info.value.binary == "kubectl"
        assert supervisor.state == S.TERMINATED


class TestTeardown:
    """Test the single teardown path."""

    def test_teardown_twice_is_noop(self, fast_config, fake_launcher_cls):
        """Test that a second teardown changes nothing."""
        launcher = fake_launcher_cls(proxy_returncode=0)
        supervisor = make_supervisor(fast_config, launcher)

        async def scenario():
            await supervisor.run()
            before = (list(supervisor.history), supervisor.tunnel.state, supervisor.edge_proxy.state)
            await supervisor.teardown()
            return before

        history, tunnel_state, proxy_state = asyncio.run(scenario())

        assert supervisor.history == history
        assert supervisor.tunnel.state == tunnel_state
        assert supervisor.edge_proxy.state == proxy_state
        assert launcher.tunnel.terminate_calls == 1

    def test_external_teardown_while_running(self, fast_config, launcher):
        """Test teardown reached from outside and again by fall-through."""
        supervisor = make_supervisor(fast_config, launcher)

        async def scenario():
            task = asyncio.create_task(supervisor.run())
            await wait_for_state(supervisor, S.PROXY_RUNNING)
            await supervisor.teardown()
            return await task

        asyncio.run(scenario())

        assert supervisor.history.count(S.TERMINATING) == 1
        assert supervisor.history.count(S.TERMINATED) == 1
        assert launcher.tunnel.terminate_calls == 1
        assert launcher.proxy.terminate_calls == 1
        assert supervisor.tunnel.state == ProcessState.KILLED
        assert supervisor.edge_proxy.state == ProcessState.KILLED

    def test_teardown_before_start(self, fast_config, launcher):
        """Test teardown with no processes."""
        supervisor = make_supervisor(fast_config, launcher)

        asyncio.run(supervisor.teardown())
        asyncio.run(supervisor.teardown())

        assert supervisor.history == [S.IDLE, S.TERMINATING, S.TERMINATED]

    def test_kill_after_shutdown_timeout(self, fast_config, fake_launcher_cls):
        """Test escalation to kill for a tunnel ignoring terminate."""
        launcher = fake_launcher_cls(proxy_returncode=0, tunnel_exits_on_terminate=False)
        supervisor = make_supervisor(fast_config, launcher)

        asyncio.run(supervisor.run())

        assert launcher.tunnel.terminate_calls == 1
        assert launcher.tunnel.kill_calls == 1
        assert supervisor.tunnel.state == ProcessState.KILLED

    def test_artifacts_removed_when_not_kept(self, fast_config, fake_launcher_cls, tmp_path):
        """Test artifact release."""
        launcher = fake_launcher_cls(proxy_returncode=0)
        config = dataclasses.replace(fast_config, keep_artifacts=False)
        paths = [tmp_path / "proxy.hosts", tmp_path / "Caddyfile.dynamic"]
        for path in paths:
            path.write_text("x")
        supervisor = make_supervisor(config, launcher)

        asyncio.run(supervisor.run([str(p) for p in paths]))
        asyncio.run(supervisor.teardown())

        assert not any(p.exists() for p in paths)
        assert supervisor.artifact_paths == []

    def test_artifacts_kept_by_default(self, fast_config, fake_launcher_cls, tmp_path):
        """Test that generated files survive for debugging."""
        launcher = fake_launcher_cls(proxy_returncode=0)
        path = tmp_path / "proxy.hosts"
        path.write_text("x")
        supervisor = make_supervisor(fast_config, launcher)

        asyncio.run(supervisor.run([str(path)]))

        assert path.exists()


class TestCheckDependencies:
    """Test collaborator binary checks."""

    def test_missing_caddy(self, fast_config, monkeypatch):
        """Test that caddy is checked first."""
        monkeypatch.setattr("kubeproxy.runtime.supervisor.shutil.which", lambda binary: None)

        with pytest.raises(MissingDependency) as exc_info:
            check_dependencies(fast_config)

        assert exc_info.value.binary == "caddy"
        assert "caddyserver.com" in exc_info.value.hint

    def test_missing_kubectl(self, fast_config, monkeypatch):
        """Test a missing kubectl."""
        monkeypatch.setattr(
            "kubeproxy.runtime.supervisor.shutil.which",
            lambda binary: None if binary == "kubectl" else f"/usr/bin/{binary}",
        )

        with pytest.raises(MissingDependency, match="kubectl is not installed"):
            check_dependencies(fast_config)

    def test_all_present(self, fast_config, monkeypatch):
        """Test that nothing is raised when both binaries exist."""
        monkeypatch.setattr("kubeproxy.runtime.supervisor.shutil.which", lambda binary: f"/usr/bin/{binary}")

        check_dependencies(fast_config)


class TestPortProbe:
    """Test the TCP readiness probe."""

    def test_open_and_closed_port(self):
        """Test a listening port, then the same port after closing."""

        async def scenario():
            server = await asyncio.start_server(lambda reader, writer: writer.close(), "127.0.0.1", 0)
            port = server.sockets[0].getsockname()[1]
            is_open = await port_is_open("127.0.0.1", port)
            server.close()
            await server.wait_closed()
            return is_open, await port_is_open("127.0.0.1", port)

        assert asyncio.run(scenario()) == (True, False)
