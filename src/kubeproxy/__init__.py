"""kubeproxy - Reach Kubernetes Services and Pods by short hostname from a workstation."""

from kubeproxy.cli import cli

__version__ = "0.1.0"
__all__ = ["cli"]
