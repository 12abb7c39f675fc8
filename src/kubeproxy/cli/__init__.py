"""Command line interface."""

from kubeproxy.cli.main import cli

__all__ = ["cli"]
