"""Metrics store (Prometheus) manager."""

from __future__ import annotations

from mesh_harness.cluster.client import ClusterClient, NotFoundError
from mesh_harness.components.base import (
    BaseComponentManager,
    Step,
    delete_namespace,
    deployment_exists,
    ensure_namespace,
    namespace_exists,
    placeholder,
    stateful_set_exists,
)
from mesh_harness.models import ComponentConfig, ComponentType, Environment

MONITORING_NAMESPACE = "monitoring"
PROMETHEUS_NAME = "prometheus"
HEALTH_NAMESPACES = ("prometheus", "monitoring", "istio-system")


class PrometheusManager(BaseComponentManager):
    """Installs Prometheus into ``monitoring``.

    Prometheus may run as a deployment or a stateful set depending on how
    it was installed; both are accepted by the probe and the health check.
    """

    component_type = ComponentType.PROMETHEUS

    def _is_installed(self, client: ClusterClient, target: str | None) -> bool:
        for namespace in ("prometheus", MONITORING_NAMESPACE):
            if namespace_exists(client, namespace):
                return True
        return deployment_exists(
            client, MONITORING_NAMESPACE, PROMETHEUS_NAME,
        ) or stateful_set_exists(client, MONITORING_NAMESPACE, PROMETHEUS_NAME)

    def _is_healthy(self, client: ClusterClient, target: str | None) -> bool:
        for namespace in HEALTH_NAMESPACES:
            for get in (client.get_deployment, client.get_stateful_set):
                try:
                    workload = get(namespace, PROMETHEUS_NAME)
                except NotFoundError:
                    continue
                return workload.is_serving
        return False

    def _install_steps(
        self, env: Environment, config: ComponentConfig, client: ClusterClient,
    ) -> list[Step]:
        retention = config.config.get("retention", "15d")
        return [
            Step(
                f"create {MONITORING_NAMESPACE} namespace",
                lambda: ensure_namespace(client, MONITORING_NAMESPACE),
            ),
            Step(
                "deploy prometheus server",
                placeholder(self.name, f"deploy server (retention={retention})"),
            ),
            Step("configure mesh scraping", placeholder(self.name, "configure scrape targets")),
        ]

    def _uninstall_steps(
        self, env: Environment, name: str, client: ClusterClient,
    ) -> list[Step]:
        return [
            Step(
                f"delete {MONITORING_NAMESPACE} namespace",
                lambda: delete_namespace(client, MONITORING_NAMESPACE),
            ),
        ]
