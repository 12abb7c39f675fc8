"""Run configuration."""

import dataclasses
import os
import types
import typing
from dataclasses import dataclass
from typing import Any

import yaml

from kubeproxy.core.errors import ConfigError

# kubectl proxy binds 127.0.0.1 and only accepts this Host header
TUNNEL_HOST = "localhost"


@dataclass(frozen=True)
class ProxyConfig:
    """Settings for one kubeproxy run, passed by value into each component."""

    # Target
    namespace: str = "default"
    context: str | None = None  # None means the kubeconfig's current context
    kubeconfig: str | None = None

    # Cluster-API tunnel
    tunnel_port: int = 8001

    # Edge proxy
    listen_port: int = 80

    # Artifacts
    output_dir: str = "."
    hosts_filename: str = "proxy.hosts"
    caddyfile_filename: str = "Caddyfile.dynamic"
    keep_artifacts: bool = True

    # Collaborator binaries
    kubectl_bin: str = "kubectl"
    caddy_bin: str = "caddy"

    # Timing, in seconds
    readiness_timeout: float = 10.0
    poll_interval: float = 0.25
    shutdown_timeout: float = 5.0
    request_timeout: float = 10.0

    @property
    def tunnel_host(self) -> str:
        return TUNNEL_HOST

    @property
    def tunnel_address(self) -> str:
        return f"{self.tunnel_host}:{self.tunnel_port}"

    @property
    def hosts_path(self) -> str:
        return os.path.join(self.output_dir, self.hosts_filename)

    @property
    def caddyfile_path(self) -> str:
        return os.path.join(self.output_dir, self.caddyfile_filename)


def load_config(path: str | None = None, **overrides: Any) -> ProxyConfig:
    """
    Load a ProxyConfig.

    Values come from the defaults, then the optional YAML file, then any
    override that is not None.

    Args:
        path: Optional YAML file with a mapping of ProxyConfig fields
        **overrides: Field values taking precedence over the file

    Returns:
        ProxyConfig

    Raises:
        ConfigError: if the file cannot be read or names unknown fields
    """
    values: dict[str, Any] = {}

    if path:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config file {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        values.update(data)

    values.update({k: v for k, v in overrides.items() if v is not None})

    fields = {f.name: f for f in dataclasses.fields(ProxyConfig)}
    unknown = sorted(set(values) - set(fields))
    if unknown:
        raise ConfigError(f"Unknown config option(s): {', '.join(unknown)}")

    checked = {name: _check_type(name, fields[name].type, value) for name, value in values.items()}
    return ProxyConfig(**checked)


def _check_type(name: str, field_type: Any, value: Any) -> Any:
    """Validate a config value against its field type, widening int to float."""
    if isinstance(field_type, types.UnionType) or typing.get_origin(field_type) is typing.Union:
        allowed = typing.get_args(field_type)
    else:
        allowed = (field_type,)

    if value is None and type(None) in allowed:
        return None
    # bool is an int subclass, so it is only accepted for bool fields
    if bool in allowed and isinstance(value, bool):
        return value
    if not isinstance(value, bool):
        if int in allowed and isinstance(value, int):
            return value
        if float in allowed and isinstance(value, (int, float)):
            return float(value)
        if str in allowed and isinstance(value, str):
            return value

    expected = " or ".join(t.__name__ for t in allowed)
    raise ConfigError(f"Config option '{name}' must be {expected}, got {value!r}")
