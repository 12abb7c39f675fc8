"""Routing table and artifact services."""

from kubeproxy.core.services.emitter import ArtifactEmitter, render_caddyfile, render_hosts
from kubeproxy.core.services.routing import build_routing_table, upstream_path, validate_routing_table

__all__ = [
    "ArtifactEmitter",
    "build_routing_table",
    "render_caddyfile",
    "render_hosts",
    "upstream_path",
    "validate_routing_table",
]
