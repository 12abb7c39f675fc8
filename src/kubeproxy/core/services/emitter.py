"""Turn a routing table into hosts records and edge proxy configuration."""

import re

from kubeproxy.core.models import (
    ConfigurationArtifacts,
    FallbackRule,
    HostsRecord,
    ProxyRule,
    ResourceKind,
    RoutingTable,
)
from kubeproxy.core.services.routing import validate_routing_table

_MATCHER_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9_-]")

_MATCHER_PREFIX = {ResourceKind.SERVICE: "svc", ResourceKind.POD: "pod"}


class ArtifactEmitter:
    """Emit configuration artifacts for a routing table.

    Emission is pure: the same table always yields equal artifacts, and the
    renderers below turn them into byte-identical text.
    """

    def __init__(self, upstream: str, listen_port: int = 80, context: str = ""):
        self.upstream = upstream
        self.listen_port = listen_port
        self.context = context

    def emit(self, table: RoutingTable) -> ConfigurationArtifacts:
        """Emit one hosts record per alias and one proxy rule per entry."""
        validate_routing_table(table)

        hosts_records: list[HostsRecord] = []
        proxy_rules: list[ProxyRule] = []
        matcher_names: set[str] = set()

        for entry in table:
            hosts_records.extend(HostsRecord(hostname=alias) for alias in entry.host_aliases)

            matcher = self._matcher_name(entry.kind, entry.name, matcher_names)
            matcher_names.add(matcher)
            proxy_rules.append(
                ProxyRule(
                    name=matcher,
                    match_hosts=entry.host_aliases,
                    rewrite_to=entry.upstream_path,
                    comment=f"{entry.kind.value}: {entry.name}",
                )
            )

        return ConfigurationArtifacts(
            namespace=table.namespace,
            context=self.context,
            upstream=self.upstream,
            listen_port=self.listen_port,
            fallback_rule=FallbackRule(namespace=table.namespace),
            hosts_records=tuple(hosts_records),
            proxy_rules=tuple(proxy_rules),
        )

    def _matcher_name(self, kind: ResourceKind, name: str, taken: set[str]) -> str:
        base = f"{_MATCHER_PREFIX[kind]}_{_MATCHER_UNSAFE_RE.sub('_', name)}"
        candidate = base
        n = 1
        while candidate in taken:
            n += 1
            candidate = f"{base}_{n}"
        return candidate


def render_hosts(artifacts: ConfigurationArtifacts) -> str:
    """Render hosts records in /etc/hosts format."""
    lines = [f"# Kubernetes Hosts for Context: {artifacts.context} Namespace: {artifacts.namespace}"]
    lines.extend(record.to_line() for record in artifacts.hosts_records)
    return "\n".join(lines) + "\n"


def render_caddyfile(artifacts: ConfigurationArtifacts) -> str:
    """Render the rule set as a Caddyfile.

    Each rule becomes a named host matcher with its own ``handle`` block.
    ``handle`` blocks are mutually exclusive and the unmatched fallback block
    is written last.
    """
    upstream = artifacts.upstream
    out = [
        "{",
        "\tauto_https off",
        "}",
        "",
        f":{artifacts.listen_port} {{",
    ]
    for rule in artifacts.proxy_rules:
        out.extend([
            f"\t# {rule.comment}",
            f"\t@{rule.name} host {' '.join(rule.match_hosts)}",
            f"\thandle @{rule.name} {{",
            f"\t\trewrite * {rule.rewrite_to}{{uri}}",
            f"\t\treverse_proxy {upstream} {{",
            f"\t\t\theader_up Host {upstream}",
            "\t\t}",
            "\t}",
        ])

    fallback = artifacts.fallback_rule
    body = fallback.template.replace("\\", "\\\\").replace('"', '\\"')
    out.extend([
        "\t# Fallback",
        "\thandle {",
        f'\t\trespond "{body}" {fallback.status}',
        "\t}",
        "}",
    ])
    return "\n".join(out) + "\n"
