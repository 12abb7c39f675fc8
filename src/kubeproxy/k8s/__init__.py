"""Kubernetes cluster directory adapter."""

from kubeproxy.k8s.client import K8sDirectoryClient

__all__ = ["K8sDirectoryClient"]
