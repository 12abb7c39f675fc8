"""Errors raised while discovering routes and supervising the proxies."""


class KubeProxyError(Exception):
    """Base class for fatal kubeproxy errors.

    Every subclass carries a ``hint`` describing the likely cause, which the
    CLI prints below the error message.
    """

    hint = ""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        if hint is not None:
            self.hint = hint


class ConfigError(KubeProxyError):
    """Configuration file or option is invalid."""

    hint = "Check the configuration file and command line options."


class MissingDependency(KubeProxyError):
    """A required collaborator binary is not on PATH."""

    INSTALL_HINTS = {
        "caddy": "Please install Caddy first: https://caddyserver.com/docs/install\nOr via Homebrew: brew install caddy",
        "kubectl": "Please install kubectl first: https://kubernetes.io/docs/tasks/tools/",
    }

    def __init__(self, binary: str):
        self.binary = binary
        super().__init__(f"{binary} is not installed.", hint=self.INSTALL_HINTS.get(binary, ""))


class DirectoryUnavailable(KubeProxyError):
    """The cluster directory could not be queried."""

    hint = "Check that the cluster is reachable and the context and namespace exist."


class RoutingConflict(KubeProxyError):
    """Two routing entries claimed the same host alias."""

    hint = "This is a bug in the routing table builder."

    def __init__(self, alias: str, existing: str, incoming: str):
        self.alias = alias
        super().__init__(f"Host alias '{alias}' claimed by both {existing} and {incoming}")


class TunnelStartupFailed(KubeProxyError):
    """The cluster-API tunnel did not come up."""

    hint = "Check if the tunnel port is already in use or if your kubeconfig is valid."
