"""CLI command implementations."""

import dataclasses
import logging
import os

from rich.console import Console

from kubeproxy.core.errors import ConfigError, KubeProxyError
from kubeproxy.core.interfaces import ClusterDirectory
from kubeproxy.core.models import ConfigurationArtifacts, RoutingTable
from kubeproxy.core.services import ArtifactEmitter, build_routing_table, render_caddyfile, render_hosts
from kubeproxy.k8s.client import K8sDirectoryClient
from kubeproxy.runtime import ProcessSupervisor, check_dependencies
from kubeproxy.utils.config import ProxyConfig

logger = logging.getLogger(__name__)

console = Console()


async def run_proxy_async(
    config: ProxyConfig,
    dry_run: bool = False,
    directory: ClusterDirectory | None = None,
    supervisor: ProcessSupervisor | None = None,
) -> int:
    """Discover routes, write artifacts and run the proxies. Returns the exit code."""
    try:
        if not dry_run:
            check_dependencies(config)

        context, table = await discover_routes(config, directory)
        artifacts = ArtifactEmitter(config.tunnel_address, config.listen_port, context).emit(table)
        paths = write_artifacts(artifacts, config)

        if dry_run:
            return 0

        # kubectl proxy must use the context the routes were discovered in
        config = dataclasses.replace(config, context=context)
        supervisor = supervisor or ProcessSupervisor(config, on_ready=lambda: _print_access_hints(config))

        console.print(f"🚀 Starting kubectl proxy on port {config.tunnel_port}...")
        reason = await supervisor.run(paths)
        console.print("")
        console.print(f"Stopped background processes ({reason.value}).")
        return 0

    except KubeProxyError as e:
        print_error(e)
        return 1


async def discover_routes(
    config: ProxyConfig, directory: ClusterDirectory | None = None
) -> tuple[str, RoutingTable]:
    """Query the cluster directory and build the routing table."""
    if directory is None:
        client = K8sDirectoryClient(config.kubeconfig, request_timeout=config.request_timeout)
        try:
            return await discover_routes(config, client)
        finally:
            await client.close()

    context = await directory.resolve_context(config.context)

    console.print("=== Local K8s Service Proxy ===")
    console.print(f"Target Context:   {context}")
    console.print(f"Target Namespace: {config.namespace}")

    console.print("📝 Generating configuration files...")
    console.print("   - Fetching Services...")
    services = await directory.list_services(context, config.namespace)
    console.print("   - Fetching Pods...")
    pods = await directory.list_pods(context, config.namespace)

    table = build_routing_table(config.namespace, services, pods)
    logger.info("Routing %d services and %d pods", len(services), len(pods))
    return context, table


def write_artifacts(artifacts: ConfigurationArtifacts, config: ProxyConfig) -> list[str]:
    """Write the hosts file and Caddyfile, returning their paths."""
    hint = "Choose a writable directory with --output-dir."
    try:
        os.makedirs(config.output_dir, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"Cannot create output directory {config.output_dir}: {e}", hint=hint) from e

    written = []
    for path, content in (
        (config.hosts_path, render_hosts(artifacts)),
        (config.caddyfile_path, render_caddyfile(artifacts)),
    ):
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise ConfigError(f"Cannot write {path}: {e}", hint=hint) from e
        written.append(path)

    console.print(f"✅ Hosts file generated at: {config.hosts_path}")
    console.print(f"✅ Caddyfile generated at: {config.caddyfile_path}")
    return written


def print_error(error: KubeProxyError) -> None:
    """Print an error and its hint."""
    console.print(f"[red]❌ Error: {error}[/red]", highlight=False)
    if error.hint:
        for line in error.hint.splitlines():
            console.print(f"   {line}", highlight=False)


def _print_access_hints(config: ProxyConfig) -> None:
    console.print(f"🚀 Starting Caddy on port {config.listen_port}...")
    if config.listen_port < 1024:
        console.print("ℹ️  Note: If this fails with 'permission denied', run this command with 'sudo -E'.")
    console.print("")
    console.print("🔗 Access Services via: http://<service-name> or http://<service-name>.svc")
    console.print("🔗 Access Pods via:     http://<pod-name> or http://<pod-name>.pod")
    console.print("")

