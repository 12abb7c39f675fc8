"""Core domain models for kubeproxy."""

from kubeproxy.core.models.artifacts import (
    LOOPBACK_IP,
    ConfigurationArtifacts,
    FallbackRule,
    HostsRecord,
    ProxyRule,
)
from kubeproxy.core.models.process import ProcessState, SupervisedProcess, SupervisorState, TerminationReason
from kubeproxy.core.models.routing import ResourceKind, RouteEntry, RoutingTable

__all__ = [
    "LOOPBACK_IP",
    "ConfigurationArtifacts",
    "FallbackRule",
    "HostsRecord",
    "ProcessState",
    "ProxyRule",
    "ResourceKind",
    "RouteEntry",
    "RoutingTable",
    "SupervisedProcess",
    "SupervisorState",
    "TerminationReason",
]
