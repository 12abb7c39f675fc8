"""Kubernetes client implementation."""

import asyncio
import logging

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from kubeproxy.core.errors import DirectoryUnavailable
from kubeproxy.core.interfaces import ClusterDirectory

logger = logging.getLogger(__name__)

_QUERY_ERRORS = (ApiException, config.ConfigException, urllib3.exceptions.HTTPError, OSError)


class K8sDirectoryClient(ClusterDirectory):
    """Lists Services and Pods through the Kubernetes API."""

    def __init__(self, kubeconfig_path: str | None = None, request_timeout: float = 10.0):
        """Initialize Kubernetes client."""
        self.kubeconfig_path = kubeconfig_path
        self.request_timeout = request_timeout
        self._core_v1: dict[str, client.CoreV1Api] = {}

    async def resolve_context(self, context: str | None) -> str:
        """Return ``context`` or the kubeconfig's current context."""
        if context:
            return context
        try:
            _, active_context = config.list_kube_config_contexts(config_file=self.kubeconfig_path)
        except (config.ConfigException, OSError) as e:
            raise DirectoryUnavailable(f"Failed to read kubeconfig: {e}") from e
        if not active_context:
            raise DirectoryUnavailable("No current context set in kubeconfig")
        return active_context["name"]

    def _api(self, context: str) -> client.CoreV1Api:
        """Get a CoreV1Api bound to a context, loading it on first use."""
        if context not in self._core_v1:
            try:
                configuration = client.Configuration()
                config.load_kube_config(
                    config_file=self.kubeconfig_path,
                    context=context,
                    client_configuration=configuration,
                )
                # Fail fast: a single failed query aborts startup
                configuration.retries = 0
                self._core_v1[context] = client.CoreV1Api(client.ApiClient(configuration))
            except (config.ConfigException, OSError) as e:
                raise DirectoryUnavailable(f"Failed to load context '{context}': {e}") from e
        return self._core_v1[context]

    async def list_services(self, context: str, namespace: str) -> list[str]:
        """List Service names in a namespace."""
        return await self._list_names("services", context, namespace)

    async def list_pods(self, context: str, namespace: str) -> list[str]:
        """List Pod names in a namespace."""
        return await self._list_names("pods", context, namespace)

    async def _list_names(self, plural: str, context: str, namespace: str) -> list[str]:
        core_v1 = self._api(context)

        # Run blocking k8s API call in thread pool
        loop = asyncio.get_running_loop()

        def list_items() -> list[str]:
            if plural == "services":
                response = core_v1.list_namespaced_service(
                    namespace=namespace, _request_timeout=self.request_timeout
                )
            else:
                response = core_v1.list_namespaced_pod(
                    namespace=namespace, _request_timeout=self.request_timeout
                )
            return [item.metadata.name for item in response.items]

        try:
            names = await loop.run_in_executor(None, list_items)
        except _QUERY_ERRORS as e:
            raise DirectoryUnavailable(
                f"Failed to list {plural} in namespace '{namespace}' (context '{context}'): {e}"
            ) from e

        logger.debug("Found %d %s in %s/%s", len(names), plural, context, namespace)
        return names

    async def close(self) -> None:
        """Close the client connections."""
        for core_v1 in self._core_v1.values():
            core_v1.api_client.close()
        self._core_v1 = {}
