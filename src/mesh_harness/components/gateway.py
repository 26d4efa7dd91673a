"""East-west gateway manager.

Supports Istio gateways plus NGINX, Traefik and Contour ingress
controllers.  After the controller is in place the gateway is configured
for cross-cluster (federated) traffic.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from typing import Any, assert_never

from mesh_harness.cluster.client import ClusterClient, NotFoundError
from mesh_harness.components.base import (
    BaseComponentManager,
    Step,
    deployment_exists,
    placeholder,
)
from mesh_harness.errors import ConfigInvalidError
from mesh_harness.models import ComponentConfig, ComponentType, Environment

MESH_NAMESPACE = "istio-system"
CONTROLLER_NAMESPACE = "default"
ISTIO_GATEWAYS = ("istio-ingressgateway", "istio-eastwestgateway")


class GatewayType(enum.StrEnum):
    ISTIO = "istio"
    NGINX = "nginx"
    TRAEFIK = "traefik"
    CONTOUR = "contour"


# Controller deployment (in ``default``) for the non-Istio gateway types.
CONTROLLER_DEPLOYMENTS: dict[GatewayType, str] = {
    GatewayType.NGINX: "nginx-ingress-controller",
    GatewayType.TRAEFIK: "traefik-controller",
    GatewayType.CONTOUR: "contour-controller",
}


class GatewayManager(BaseComponentManager):
    """Installs and configures the gateway used for cross-cluster traffic."""

    component_type = ComponentType.GATEWAY

    def _validate_component_config(self, config: dict[str, Any]) -> None:
        gateway = config.get("gateway")
        if gateway is None:
            raise ConfigInvalidError("gateway configuration is required")
        if not isinstance(gateway, dict):
            raise ConfigInvalidError("gateway configuration must be a map")
        if "type" in gateway:
            gateway_type = gateway["type"]
            if not isinstance(gateway_type, str) or not gateway_type:
                raise ConfigInvalidError("gateway type must be a non-empty string")
            if gateway_type not in {t.value for t in GatewayType}:
                valid = ", ".join(t.value for t in GatewayType)
                raise ConfigInvalidError(f"gateway type must be one of: {valid}")

    def _is_installed(self, client: ClusterClient, target: str | None) -> bool:
        if any(deployment_exists(client, MESH_NAMESPACE, name) for name in ISTIO_GATEWAYS):
            return True
        return any(
            deployment_exists(client, CONTROLLER_NAMESPACE, name)
            for name in CONTROLLER_DEPLOYMENTS.values()
        )

    def _is_healthy(self, client: ClusterClient, target: str | None) -> bool:
        candidates = [(MESH_NAMESPACE, name) for name in ISTIO_GATEWAYS]
        candidates += [(CONTROLLER_NAMESPACE, name) for name in CONTROLLER_DEPLOYMENTS.values()]
        for namespace, name in candidates:
            try:
                workload = client.get_deployment(namespace, name)
            except NotFoundError:
                continue
            return workload.is_ready
        return False

    def _install_steps(
        self, env: Environment, config: ComponentConfig, client: ClusterClient,
    ) -> list[Step]:
        gateway = config.config["gateway"]
        gateway_type = GatewayType(gateway.get("type", GatewayType.ISTIO))
        return [
            Step("install gateway CRDs", placeholder(self.name, "install gateway CRDs")),
            Step(f"install {gateway_type} gateway", self._installer(gateway_type)),
            Step(
                "configure gateway for federation",
                placeholder(
                    self.name,
                    f"configure listeners for {len(env.remote_clusters())} remote clusters",
                ),
            ),
        ]

    def _uninstall_steps(
        self, env: Environment, name: str, client: ClusterClient,
    ) -> list[Step]:
        return [
            Step(
                "remove gateway configuration",
                placeholder(self.name, "remove gateway and virtual service resources"),
            ),
            Step("remove gateway controller", placeholder(self.name, "remove gateway controller")),
        ]

    def _installer(self, gateway_type: GatewayType) -> Callable[[], None]:
        match gateway_type:
            case GatewayType.ISTIO:
                return placeholder(self.name, "install istio east-west gateway")
            case GatewayType.NGINX:
                return placeholder(self.name, "install NGINX ingress controller")
            case GatewayType.TRAEFIK:
                return placeholder(self.name, "install Traefik ingress controller")
            case GatewayType.CONTOUR:
                return placeholder(self.name, "install Contour ingress controller")
            case _:
                assert_never(gateway_type)
