"""Mesh control-plane (Istio) manager."""

from __future__ import annotations

from mesh_harness.cluster.client import ClusterClient
from mesh_harness.components.base import (
    BaseComponentManager,
    Step,
    delete_namespace,
    deployment_exists,
    deployment_ready,
    ensure_namespace,
    namespace_exists,
    placeholder,
)
from mesh_harness.models import ComponentConfig, ComponentType, Environment

ISTIO_NAMESPACE = "istio-system"
OPERATOR_NAMESPACE = "istio-operator"
CONTROL_PLANE_DEPLOYMENT = "istiod"
INGRESS_DEPLOYMENT = "istio-ingressgateway"


class IstioManager(BaseComponentManager):
    """Installs the Istio control plane into ``istio-system``.

    Installed when either Istio namespace exists or the control-plane /
    ingress deployments are present.  Healthy when ``istiod`` has all of its
    replicas ready.
    """

    component_type = ComponentType.ISTIO

    def _is_installed(self, client: ClusterClient, target: str | None) -> bool:
        for namespace in (ISTIO_NAMESPACE, OPERATOR_NAMESPACE):
            if namespace_exists(client, namespace):
                return True
        return any(
            deployment_exists(client, ISTIO_NAMESPACE, name)
            for name in (CONTROL_PLANE_DEPLOYMENT, INGRESS_DEPLOYMENT)
        )

    def _is_healthy(self, client: ClusterClient, target: str | None) -> bool:
        return deployment_ready(client, ISTIO_NAMESPACE, CONTROL_PLANE_DEPLOYMENT)

    def _install_steps(
        self, env: Environment, config: ComponentConfig, client: ClusterClient,
    ) -> list[Step]:
        profile = config.config.get("profile", "default")
        return [
            Step(
                f"create {ISTIO_NAMESPACE} namespace",
                lambda: ensure_namespace(client, ISTIO_NAMESPACE),
            ),
            Step("install istio CRDs", placeholder(self.name, "install CRDs")),
            Step(
                "install istio control plane",
                placeholder(self.name, f"install control plane (profile={profile})"),
            ),
            Step("install ingress gateway", placeholder(self.name, "install ingress gateway")),
            Step("wait for istio to be ready", placeholder(self.name, "wait for ready")),
        ]

    def _uninstall_steps(
        self, env: Environment, name: str, client: ClusterClient,
    ) -> list[Step]:
        return [
            Step("remove ingress gateway", placeholder(self.name, "remove ingress gateway")),
            Step(
                f"delete {ISTIO_NAMESPACE} namespace",
                lambda: delete_namespace(client, ISTIO_NAMESPACE),
            ),
        ]
