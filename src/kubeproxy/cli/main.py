"""Main CLI entry point."""

import asyncio
import sys

import click

from kubeproxy.cli.commands import print_error, run_proxy_async
from kubeproxy.core.errors import ConfigError
from kubeproxy.utils import load_config, setup_logging


@click.command()
@click.version_option()
@click.argument("namespace", required=False)
@click.argument("context", required=False)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML file with run settings")
@click.option("--kubeconfig", type=click.Path(dir_okay=False), help="Path to the kubeconfig file")
@click.option("--tunnel-port", type=int, help="Local port for kubectl proxy (default 8001)")
@click.option("--listen-port", type=int, help="Port Caddy listens on (default 80)")
@click.option("--output-dir", type=click.Path(file_okay=False), help="Where to write the hosts file and Caddyfile")
@click.option("--readiness-timeout", type=float, help="Seconds to wait for kubectl proxy to come up")
@click.option("--dry-run", is_flag=True, help="Only discover resources and write the generated files")
@click.option("--clean", is_flag=True, help="Delete the generated files on exit")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
def cli(
    namespace: str | None,
    context: str | None,
    config_path: str | None,
    kubeconfig: str | None,
    tunnel_port: int | None,
    listen_port: int | None,
    output_dir: str | None,
    readiness_timeout: float | None,
    dry_run: bool,
    clean: bool,
    verbose: int,
    log_file: str | None,
) -> None:
    """Reach every Service and Pod of NAMESPACE (default: default) by short
    hostname, using CONTEXT (default: the current kubeconfig context)."""
    try:
        setup_logging(verbose, log_file)
    except OSError as e:
        print_error(ConfigError(f"Cannot open log file {log_file}: {e}"))
        sys.exit(1)

    try:
        config = load_config(
            config_path,
            namespace=namespace,
            context=context,
            kubeconfig=kubeconfig,
            tunnel_port=tunnel_port,
            listen_port=listen_port,
            output_dir=output_dir,
            readiness_timeout=readiness_timeout,
            keep_artifacts=False if clean else None,
        )
    except ConfigError as e:
        print_error(e)
        sys.exit(1)

    try:
        exit_code = asyncio.run(run_proxy_async(config, dry_run=dry_run))
    except KeyboardInterrupt:
        exit_code = 0

    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
