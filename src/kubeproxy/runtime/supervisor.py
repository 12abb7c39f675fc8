"""Supervise the cluster-API tunnel and the edge proxy as one unit."""

import asyncio
import logging
import os
import shutil
import signal
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from kubeproxy.core.errors import KubeProxyError, MissingDependency, TunnelStartupFailed
from kubeproxy.core.models import ProcessState, SupervisedProcess, SupervisorState, TerminationReason
from kubeproxy.runtime.probe import port_is_open
from kubeproxy.utils.config import ProxyConfig

logger = logging.getLogger(__name__)

ProcessFactory = Callable[..., Awaitable[Any]]
ReadinessProbe = Callable[[str, int], Awaitable[bool]]

ACCEPT_HOSTS = r"^localhost$,^127\.0\.0\.1$"


def check_dependencies(config: ProxyConfig) -> None:
    """Raise MissingDependency for the first collaborator binary not on PATH."""
    for binary in (config.caddy_bin, config.kubectl_bin):
        if shutil.which(binary) is None:
            raise MissingDependency(binary)


class ProcessSupervisor:
    """
    Lifecycle state machine for the tunnel and edge proxy processes.

    Flow: Idle -> TunnelStarting -> TunnelReady -> ProxyRunning ->
    Terminating -> Terminated, with Terminating reachable from any state.

    The supervisor is the only owner of both process handles. ``teardown`` is
    the single exit path; it runs at most once no matter how many times it is
    reached (signal, proxy exit, tunnel death, or failure).
    """

    def __init__(
        self,
        config: ProxyConfig,
        process_factory: ProcessFactory | None = None,
        probe: ReadinessProbe | None = None,
        handle_signals: bool = True,
        on_ready: Callable[[], None] | None = None,
    ) -> None:
        self.config = config
        self.state = SupervisorState.IDLE
        self.history: list[SupervisorState] = [SupervisorState.IDLE]
        self.tunnel: SupervisedProcess | None = None
        self.edge_proxy: SupervisedProcess | None = None
        self.termination_reason: TerminationReason | None = None
        self.artifact_paths: list[str] = []

        self._process_factory = process_factory or asyncio.create_subprocess_exec
        self._probe = probe or port_is_open
        self._handle_signals = handle_signals
        self._on_ready = on_ready
        self._stop_requested = asyncio.Event()
        self._installed_signals: list[signal.Signals] = []

    def tunnel_command(self) -> list[str]:
        cmd = [self.config.kubectl_bin]
        if self.config.context:
            cmd += ["--context", self.config.context]
        if self.config.kubeconfig:
            cmd += ["--kubeconfig", self.config.kubeconfig]
        cmd += ["proxy", f"--port={self.config.tunnel_port}", f"--accept-hosts={ACCEPT_HOSTS}"]
        return cmd

    def edge_proxy_command(self) -> list[str]:
        return [self.config.caddy_bin, "run", "--config", self.config.caddyfile_path, "--adapter", "caddyfile"]

    def request_stop(self) -> None:
        """Ask a running supervisor to tear down. Safe to call from a signal handler."""
        logger.info("Stop requested")
        self._set_reason(TerminationReason.SIGNAL)
        self._stop_requested.set()

    async def run(self, artifact_paths: Iterable[str] = ()) -> TerminationReason:
        """
        Start the tunnel, then the edge proxy, and block until either exits
        or a stop is requested.

        Args:
            artifact_paths: Generated files released on teardown

        Returns:
            Why the run ended

        Raises:
            TunnelStartupFailed: if the tunnel never became ready
            KubeProxyError: if a process could not be launched
        """
        self.artifact_paths = list(artifact_paths)
        self._install_signal_handlers()
        try:
            await self._start_tunnel()
            if await self._wait_for_tunnel():
                if self._on_ready is not None:
                    self._on_ready()
                await self._start_edge_proxy()
                await self._wait_for_exit()
        except Exception:
            self._set_reason(TerminationReason.FAILURE)
            raise
        finally:
            await self.teardown()
            self._remove_signal_handlers()

        assert self.termination_reason is not None
        return self.termination_reason

    async def teardown(self) -> None:
        """Stop every live child process and release artifacts, once."""
        if self.state in (SupervisorState.TERMINATING, SupervisorState.TERMINATED):
            logger.debug("Teardown already in progress or done")
            return

        self._transition(SupervisorState.TERMINATING)
        self._set_reason(TerminationReason.SIGNAL)

        for proc in (self.edge_proxy, self.tunnel):
            if proc is not None:
                await self._stop_process(proc)

        self._release_artifacts()
        self._transition(SupervisorState.TERMINATED)

    async def _start_tunnel(self) -> None:
        self._transition(SupervisorState.TUNNEL_STARTING)

        if await self._probe(self.config.tunnel_host, self.config.tunnel_port):
            raise TunnelStartupFailed(f"Port {self.config.tunnel_port} is already in use.")

        self.tunnel = await self._spawn("tunnel", self.tunnel_command(), TunnelStartupFailed)

    async def _wait_for_tunnel(self) -> bool:
        """Poll until the tunnel accepts connections.

        Returns False if a stop was requested first.
        """
        assert self.tunnel is not None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.readiness_timeout

        while not self._stop_requested.is_set():
            if not self.tunnel.is_alive():
                self.tunnel.state = ProcessState.EXITED
                raise TunnelStartupFailed(
                    f"kubectl proxy failed to start (exit code {self.tunnel.returncode})."
                )

            if await self._probe(self.config.tunnel_host, self.config.tunnel_port):
                self.tunnel.state = ProcessState.RUNNING
                self._transition(SupervisorState.TUNNEL_READY)
                return True

            if loop.time() >= deadline:
                raise TunnelStartupFailed(
                    f"kubectl proxy did not become ready on {self.config.tunnel_address} "
                    f"within {self.config.readiness_timeout:g}s."
                )

            try:
                await asyncio.wait_for(self._stop_requested.wait(), timeout=self.config.poll_interval)
            except asyncio.TimeoutError:
                pass

        return False

    async def _start_edge_proxy(self) -> None:
        self.edge_proxy = await self._spawn("edge proxy", self.edge_proxy_command(), KubeProxyError)
        # Caddy runs in the foreground for the rest of the run
        self.edge_proxy.state = ProcessState.RUNNING
        self._transition(SupervisorState.PROXY_RUNNING)

    async def _wait_for_exit(self) -> None:
        assert self.tunnel is not None and self.edge_proxy is not None

        waiters = {
            asyncio.ensure_future(self._stop_requested.wait()): TerminationReason.SIGNAL,
            asyncio.ensure_future(self.edge_proxy.handle.wait()): TerminationReason.PROXY_EXITED,
            asyncio.ensure_future(self.tunnel.handle.wait()): TerminationReason.TUNNEL_DIED,
        }
        done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task, reason in waiters.items():
            if task in done:
                self._set_reason(reason)
                break

        if self.termination_reason == TerminationReason.PROXY_EXITED:
            logger.info("Edge proxy exited with code %s", self.edge_proxy.returncode)
        elif self.termination_reason == TerminationReason.TUNNEL_DIED:
            logger.warning("kubectl proxy exited unexpectedly with code %s", self.tunnel.returncode)

    async def _spawn(
        self, name: str, command: list[str], error_cls: type[KubeProxyError]
    ) -> SupervisedProcess:
        proc = SupervisedProcess(name=name, command=command)
        logger.info("Starting %s: %s", name, " ".join(command))
        try:
            proc.handle = await self._process_factory(*command)
        except FileNotFoundError as e:
            raise MissingDependency(command[0]) from e
        except OSError as e:
            raise error_cls(f"Failed to start {name}: {e}") from e
        logger.debug("%s started with pid %s", name, proc.pid)
        return proc

    async def _stop_process(self, proc: SupervisedProcess) -> None:
        """Terminate a process, escalating to kill after the shutdown timeout."""
        if not proc.is_alive():
            if proc.handle is not None and proc.state != ProcessState.KILLED:
                proc.state = ProcessState.EXITED
            return

        assert proc.handle is not None
        logger.info("Stopping %s (pid %s)", proc.name, proc.pid)
        try:
            proc.handle.terminate()
        except ProcessLookupError:
            proc.state = ProcessState.EXITED
            return

        try:
            await asyncio.wait_for(proc.handle.wait(), timeout=self.config.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning("%s did not stop within %gs, killing", proc.name, self.config.shutdown_timeout)
            try:
                proc.handle.kill()
            except ProcessLookupError:
                pass
            await proc.handle.wait()
        proc.state = ProcessState.KILLED

    def _release_artifacts(self) -> None:
        if not self.config.keep_artifacts:
            for path in self.artifact_paths:
                try:
                    os.remove(path)
                    logger.debug("Removed %s", path)
                except FileNotFoundError:
                    pass
        self.artifact_paths = []

    def _transition(self, new_state: SupervisorState) -> None:
        logger.debug("Supervisor %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)

    def _set_reason(self, reason: TerminationReason) -> None:
        if self.termination_reason is None:
            self.termination_reason = reason

    def _install_signal_handlers(self) -> None:
        if not self._handle_signals:
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                self._installed_signals.append(sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.debug("Cannot handle %s here: %s", sig.name, e)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            loop.remove_signal_handler(sig)
        self._installed_signals = []
