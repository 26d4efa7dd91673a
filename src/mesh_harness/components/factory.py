"""ManagerFactory: component type -> fresh ComponentManager."""

from __future__ import annotations

import logging
from typing import assert_never

from mesh_harness.cluster.client import ClientFactory
from mesh_harness.components.base import ComponentManager
from mesh_harness.components.connectivity.manager import NetworkConnectivityManager
from mesh_harness.components.federation import IstioFederationManager, RemoteFederationManager
from mesh_harness.components.gateway import GatewayManager
from mesh_harness.components.mesh import IstioManager
from mesh_harness.components.metrics import PrometheusManager
from mesh_harness.components.observability import KialiManager
from mesh_harness.errors import InternalError, InvalidParameterError
from mesh_harness.models import ComponentType

logger = logging.getLogger(__name__)

SUPPORTED_COMPONENTS: tuple[ComponentType, ...] = (
    ComponentType.ISTIO,
    ComponentType.KIALI,
    ComponentType.PROMETHEUS,
    ComponentType.ISTIO_FEDERATION,
    ComponentType.REMOTE_FEDERATION,
    ComponentType.GATEWAY,
    ComponentType.NETWORK_CONNECTIVITY,
)


class ManagerFactory:
    """Builds a new manager per call. Every manager shares the factory's client factory."""

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self._client_factory = client_factory

    def create_manager(self, component_type: ComponentType | str) -> ComponentManager:
        try:
            kind = ComponentType(component_type)
        except ValueError:
            raise InvalidParameterError(
                f"unsupported component type: {component_type}",
            ) from None

        logger.debug("Creating manager for %s", kind)
        factory = self._client_factory
        match kind:
            case ComponentType.ISTIO:
                return IstioManager(factory)
            case ComponentType.KIALI:
                return KialiManager(factory)
            case ComponentType.PROMETHEUS:
                return PrometheusManager(factory)
            case ComponentType.ISTIO_FEDERATION:
                return IstioFederationManager(factory)
            case ComponentType.REMOTE_FEDERATION:
                return RemoteFederationManager(factory)
            case ComponentType.GATEWAY:
                return GatewayManager(factory)
            case ComponentType.NETWORK_CONNECTIVITY:
                return NetworkConnectivityManager(factory)
            case ComponentType.JAEGER | ComponentType.GRAFANA:
                raise InternalError(f"{kind} manager not implemented yet")
            case _:
                assert_never(kind)

    def get_supported_components(self) -> list[ComponentType]:
        return list(SUPPORTED_COMPONENTS)

    def is_component_supported(self, component_type: ComponentType | str) -> bool:
        return component_type in SUPPORTED_COMPONENTS
