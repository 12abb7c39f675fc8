"""Supervised process and lifecycle models."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum


class ProcessState(Enum):
    """Lifecycle of a supervised child process."""

    STARTING = "Starting"
    RUNNING = "Running"
    EXITED = "Exited"
    KILLED = "Killed"


class SupervisorState(Enum):
    """States of the supervisor lifecycle state machine."""

    IDLE = "Idle"
    TUNNEL_STARTING = "TunnelStarting"
    TUNNEL_READY = "TunnelReady"
    PROXY_RUNNING = "ProxyRunning"
    TERMINATING = "Terminating"
    TERMINATED = "Terminated"


class TerminationReason(Enum):
    """What drove the supervisor into teardown."""

    SIGNAL = "signal"
    PROXY_EXITED = "proxy_exited"
    TUNNEL_DIED = "tunnel_died"
    FAILURE = "failure"


@dataclass
class SupervisedProcess:
    """A child process owned by the supervisor."""

    name: str
    command: list[str]
    handle: asyncio.subprocess.Process | None = field(default=None, repr=False)
    state: ProcessState = ProcessState.STARTING

    @property
    def pid(self) -> int | None:
        return self.handle.pid if self.handle is not None else None

    @property
    def returncode(self) -> int | None:
        return self.handle.returncode if self.handle is not None else None

    def is_alive(self) -> bool:
        """Check if the process was started and has not exited yet."""
        return self.handle is not None and self.handle.returncode is None
