"""Core interfaces for kubeproxy."""

from abc import ABC, abstractmethod


class ClusterDirectory(ABC):
    """Interface for listing routable resources in a namespace.

    Implementations raise ``DirectoryUnavailable`` when the cluster cannot be
    queried. An empty list is a valid, successful answer.
    """

    @abstractmethod
    async def resolve_context(self, context: str | None) -> str:
        """Return the context to use, defaulting to the current one."""
        pass

    @abstractmethod
    async def list_services(self, context: str, namespace: str) -> list[str]:
        """List Service names in a namespace."""
        pass

    @abstractmethod
    async def list_pods(self, context: str, namespace: str) -> list[str]:
        """List Pod names in a namespace."""
        pass
