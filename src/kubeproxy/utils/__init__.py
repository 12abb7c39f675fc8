"""Utility functions."""

from kubeproxy.utils.config import ProxyConfig, load_config
from kubeproxy.utils.logging import setup_logging

__all__ = ["ProxyConfig", "load_config", "setup_logging"]
