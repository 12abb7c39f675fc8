"""Configuration artifact models consumed by the hosts file and the edge proxy."""

from dataclasses import dataclass, field

LOOPBACK_IP = "127.0.0.1"


@dataclass(frozen=True)
class HostsRecord:
    """One hostname mapped to an address."""

    hostname: str
    ip: str = LOOPBACK_IP

    def to_line(self) -> str:
        return f"{self.ip}\t{self.hostname}"


@dataclass(frozen=True)
class ProxyRule:
    """Route requests for a set of hosts to an upstream path prefix."""

    name: str  # Matcher name, unique within a rule set
    match_hosts: tuple[str, ...]
    rewrite_to: str
    comment: str = ""

    def matches(self, host: str) -> bool:
        """Check if a Host header value is handled by this rule."""
        return _normalize_host(host) in self.match_hosts

    def rewrite(self, uri: str) -> str:
        """Prefix the original request URI (path and query) with the upstream path."""
        if not uri.startswith("/"):
            uri = f"/{uri}"
        return f"{self.rewrite_to}{uri}"


@dataclass(frozen=True)
class FallbackRule:
    """Catch-all response for hosts matching no explicit rule."""

    namespace: str
    status: int = 404

    def message_for(self, host: str) -> str:
        """Diagnostic body for an unresolved host."""
        return self.template.replace("{host}", host)

    @property
    def template(self) -> str:
        """Response body using the edge proxy's {host} placeholder."""
        return f"Host {{host}} not recognized as a valid Service or Pod in namespace {self.namespace}"


@dataclass(frozen=True)
class ConfigurationArtifacts:
    """Hosts records and proxy rules derived from one routing table."""

    namespace: str
    context: str
    upstream: str  # host:port of the cluster-API tunnel
    listen_port: int
    fallback_rule: FallbackRule
    hosts_records: tuple[HostsRecord, ...] = field(default_factory=tuple)
    proxy_rules: tuple[ProxyRule, ...] = field(default_factory=tuple)

    def match(self, host: str) -> ProxyRule | FallbackRule:
        """Evaluate rules in emission order, first match wins, fallback last."""
        for rule in self.proxy_rules:
            if rule.matches(host):
                return rule
        return self.fallback_rule


def _normalize_host(host: str) -> str:
    """Lowercase a Host header value and drop any port."""
    host = host.strip().lower()
    if host.startswith("["):
        return host
    return host.rsplit(":", 1)[0] if ":" in host else host
