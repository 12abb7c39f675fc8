"""Routing table models."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum


class ResourceKind(Enum):
    """Kubernetes resource kinds that can be routed to."""

    SERVICE = "Service"
    POD = "Pod"

    @property
    def suffix(self) -> str:
        """Hostname suffix that always addresses this kind."""
        return ".svc" if self is ResourceKind.SERVICE else ".pod"

    @property
    def plural(self) -> str:
        """Resource plural used in API paths."""
        return "services" if self is ResourceKind.SERVICE else "pods"


@dataclass(frozen=True)
class RouteEntry:
    """A single routable resource and the hostnames that reach it."""

    name: str
    kind: ResourceKind
    host_aliases: tuple[str, ...]
    upstream_path: str

    @property
    def qualified_alias(self) -> str:
        """The suffixed alias, which never collides across kinds."""
        return f"{self.name}{self.kind.suffix}"

    def has_bare_alias(self) -> bool:
        """Check if this entry also answers to its unsuffixed name."""
        return self.name in self.host_aliases


@dataclass(frozen=True)
class RoutingTable:
    """Ordered, immutable snapshot of every route in one namespace."""

    namespace: str
    entries: tuple[RouteEntry, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def aliases(self) -> list[str]:
        """All host aliases in table order."""
        return [alias for entry in self.entries for alias in entry.host_aliases]

    def lookup(self, host: str) -> RouteEntry | None:
        """Get the entry that owns a host alias."""
        host = host.lower()
        for entry in self.entries:
            if host in entry.host_aliases:
                return entry
        return None

    def get_entries_by_kind(self, kind: ResourceKind) -> list[RouteEntry]:
        """Get all entries of a specific kind."""
        return [e for e in self.entries if e.kind == kind]
