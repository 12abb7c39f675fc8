"""Build the routing table from discovered Services and Pods."""

import logging
from collections.abc import Iterable

from kubeproxy.core.errors import RoutingConflict
from kubeproxy.core.models import ResourceKind, RouteEntry, RoutingTable

logger = logging.getLogger(__name__)

UPSTREAM_PATH_TEMPLATE = "/api/v1/namespaces/{namespace}/{plural}/{name}/proxy"

QUALIFIED_SUFFIXES = tuple(kind.suffix for kind in ResourceKind)


def upstream_path(namespace: str, kind: ResourceKind, name: str) -> str:
    """API server proxy sub-path for a resource."""
    return UPSTREAM_PATH_TEMPLATE.format(namespace=namespace, plural=kind.plural, name=name)


def build_routing_table(namespace: str, services: Iterable[str], pods: Iterable[str]) -> RoutingTable:
    """
    Build a routing table for one namespace.

    Services are enumerated before Pods and the bare name is first-seen-wins:
    a Pod named like an existing Service keeps only its ``.pod`` alias.
    Names that already end in ``.svc`` or ``.pod`` get no bare alias, so a
    bare name can never shadow another entry's suffixed alias.

    Args:
        namespace: Namespace the names were discovered in
        services: Service names in discovery order
        pods: Pod names in discovery order

    Returns:
        RoutingTable in discovery order

    Raises:
        RoutingConflict: if a suffixed alias is claimed twice
    """
    claimed: dict[str, RouteEntry] = {}
    entries: list[RouteEntry] = []

    discovered = [(ResourceKind.SERVICE, name) for name in services]
    discovered += [(ResourceKind.POD, name) for name in pods]

    for kind, name in discovered:
        qualified = f"{name}{kind.suffix}"
        aliases = [name, qualified]
        if name.endswith(QUALIFIED_SUFFIXES):
            logger.info("%s %s looks like a suffixed hostname; only %s is routed to it",
                        kind.value, name, qualified)
            aliases = [qualified]
        elif name in claimed:
            owner = claimed[name]
            logger.info("%s %s shares its name with %s %s; only %s is routed to it",
                        kind.value, name, owner.kind.value, owner.name, qualified)
            aliases = [qualified]

        entry = RouteEntry(
            name=name,
            kind=kind,
            host_aliases=tuple(aliases),
            upstream_path=upstream_path(namespace, kind, name),
        )
        for alias in entry.host_aliases:
            if alias in claimed:
                owner = claimed[alias]
                raise RoutingConflict(alias, f"{owner.kind.value} {owner.name}", f"{kind.value} {name}")
            claimed[alias] = entry
        entries.append(entry)

    return RoutingTable(namespace=namespace, entries=tuple(entries))


def validate_routing_table(table: RoutingTable) -> None:
    """Assert that no host alias appears twice in the table."""
    seen: dict[str, RouteEntry] = {}
    for entry in table:
        for alias in entry.host_aliases:
            if alias in seen:
                owner = seen[alias]
                raise RoutingConflict(
                    alias, f"{owner.kind.value} {owner.name}", f"{entry.kind.value} {entry.name}"
                )
            seen[alias] = entry
