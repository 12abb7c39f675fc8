"""Core domain models and interfaces for kubeproxy."""

from kubeproxy.core.interfaces import ClusterDirectory
from kubeproxy.core.models import ConfigurationArtifacts, RouteEntry, RoutingTable

__all__ = ["ClusterDirectory", "ConfigurationArtifacts", "RouteEntry", "RoutingTable"]
