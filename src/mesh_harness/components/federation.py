"""Mesh federation managers.

``IstioFederationManager`` runs on the primary cluster and owns the
``istio-federation`` namespace, the federation controller and the
east-west gateway.  ``RemoteFederationManager`` runs on one named remote
and joins it to the primary.  Both require a multi-cluster environment.
"""

from __future__ import annotations

import logging
from typing import Any

from mesh_harness.cluster.client import ClusterClient, NotFoundError
from mesh_harness.components.base import (
    BaseComponentManager,
    Step,
    config_map_exists,
    delete_namespace,
    deployment_exists,
    deployment_ready,
    ensure_namespace,
    namespace_exists,
    placeholder,
)
from mesh_harness.errors import ConfigInvalidError, InvalidParameterError
from mesh_harness.models import (
    ClusterConfig,
    Component,
    ComponentConfig,
    ComponentStatus,
    ComponentType,
    Environment,
)

logger = logging.getLogger(__name__)

FEDERATION_NAMESPACE = "istio-federation"
MESH_NAMESPACE = "istio-system"
CONTROLLER_DEPLOYMENT = "federation-controller"
GATEWAY_DEPLOYMENT = "federation-gateway"
AGENT_DEPLOYMENT = "remote-federation-agent"
FEDERATION_CONFIG_MAP = "federation-config"


def _optional_string(section: dict[str, Any], key: str, label: str) -> None:
    if key in section:
        value = section[key]
        if not isinstance(value, str) or not value:
            raise ConfigInvalidError(f"{label} must be a non-empty string")


def _require_section(config: dict[str, Any], key: str, label: str) -> dict[str, Any]:
    section = config.get(key)
    if section is None:
        raise ConfigInvalidError(f"{label} configuration is required")
    if not isinstance(section, dict):
        raise ConfigInvalidError(f"{label} configuration must be a map")
    return section


class IstioFederationManager(BaseComponentManager):
    """Primary-side federation: controller, trust, east-west gateway, policies."""

    component_type = ComponentType.ISTIO_FEDERATION
    requires_multi_cluster = True

    def _validate_component_config(self, config: dict[str, Any]) -> None:
        federation = _require_section(config, "federation", "federation")
        _optional_string(federation, "trustDomain", "federation trustDomain")

    def _is_installed(self, client: ClusterClient, target: str | None) -> bool:
        if namespace_exists(client, FEDERATION_NAMESPACE):
            return True
        return any(
            deployment_exists(client, MESH_NAMESPACE, name)
            for name in (CONTROLLER_DEPLOYMENT, GATEWAY_DEPLOYMENT)
        )

    def _is_healthy(self, client: ClusterClient, target: str | None) -> bool:
        return deployment_ready(client, MESH_NAMESPACE, CONTROLLER_DEPLOYMENT)

    def _install_steps(
        self, env: Environment, config: ComponentConfig, client: ClusterClient,
    ) -> list[Step]:
        federation = env.federation_config()
        ca_type = federation.certificate_authority.type or "istiod"
        policies = env.network_config().policies
        return [
            Step(
                "create federation namespace",
                lambda: ensure_namespace(
                    client, FEDERATION_NAMESPACE, {"istio.io/rev": "federation"},
                ),
            ),
            Step(
                "install federation controller",
                placeholder(self.name, "install federation controller"),
            ),
            Step(
                "configure certificate authority",
                placeholder(self.name, f"configure certificate authority ({ca_type})"),
            ),
            Step("install east-west gateway", placeholder(self.name, "install east-west gateway")),
            Step(
                "configure network policies",
                placeholder(self.name, f"configure {len(policies)} network policies"),
            ),
        ]

    def _uninstall_steps(
        self, env: Environment, name: str, client: ClusterClient,
    ) -> list[Step]:
        return [
            Step(
                "delete federation namespace",
                lambda: delete_namespace(client, FEDERATION_NAMESPACE),
            ),
        ]


class RemoteFederationManager(BaseComponentManager):
    """Remote-side federation: agent, primary link, certificates, gateway, discovery.

    The target remote is named by ``remote.name`` in the component config
    and must be one of the environment's remotes.
    """

    component_type = ComponentType.REMOTE_FEDERATION
    requires_multi_cluster = True

    def _validate_component_config(self, config: dict[str, Any]) -> None:
        remote = _require_section(config, "remote", "remote")
        _optional_string(remote, "primaryEndpoint", "remote primaryEndpoint")
        _optional_string(remote, "name", "remote name")

    def get_status(self, env: Environment, component: Component) -> ComponentStatus:
        if not env.is_multi_cluster():
            return self._record_status(component, ComponentStatus.NOT_INSTALLED)
        remote = component.config.get("remote")
        name = remote.get("name") if isinstance(remote, dict) else None
        if not name or _find_remote(env, name) is None:
            return self._record_status(component, ComponentStatus.NOT_INSTALLED)
        return self._record_status(component, self._status_on(env, name))

    def _component_name(self, config: dict[str, Any]) -> str:
        remote = config.get("remote")
        if isinstance(remote, dict) and remote.get("name"):
            return str(remote["name"])
        return self.name

    def _target_cluster(self, env: Environment, config: dict[str, Any]) -> str | None:
        name = self._component_name(config)
        if _find_remote(env, name) is None:
            raise InvalidParameterError(f"remote cluster {name} not found in environment")
        return name

    def _uninstall_target(self, env: Environment, name: str) -> str | None:
        if _find_remote(env, name) is None:
            raise InvalidParameterError(f"remote cluster {name} not found in environment")
        return name

    def _is_installed(self, client: ClusterClient, target: str | None) -> bool:
        if any(
            deployment_exists(client, MESH_NAMESPACE, name)
            for name in (AGENT_DEPLOYMENT, GATEWAY_DEPLOYMENT)
        ):
            return True
        return config_map_exists(client, MESH_NAMESPACE, FEDERATION_CONFIG_MAP)

    def _is_healthy(self, client: ClusterClient, target: str | None) -> bool:
        return deployment_ready(client, MESH_NAMESPACE, AGENT_DEPLOYMENT)

    def _install_steps(
        self, env: Environment, config: ComponentConfig, client: ClusterClient,
    ) -> list[Step]:
        remote_name = self._component_name(config.config)
        remote = config.config["remote"]
        endpoint = remote.get("primaryEndpoint") or _default_endpoint(env.primary_cluster())
        trust_domain = env.federation_config().trust_domain or "cluster.local"

        def connect_to_primary() -> None:
            client.create_config_map(
                MESH_NAMESPACE,
                FEDERATION_CONFIG_MAP,
                {
                    "cluster-name": remote_name,
                    "primary-endpoint": endpoint,
                    "trust-domain": trust_domain,
                },
                labels={"app.kubernetes.io/managed-by": "mesh-harness"},
            )
            logger.info("Remote %s linked to primary at %s", remote_name, endpoint)

        return [
            Step("install federation agent", placeholder(self.name, "install federation agent")),
            Step("configure primary connection", connect_to_primary),
            Step(
                "exchange certificates",
                placeholder(self.name, f"exchange certificates ({trust_domain})"),
            ),
            Step("install federation gateway", placeholder(self.name, "install federation gateway")),
            Step(
                "configure service discovery",
                placeholder(self.name, "configure service discovery"),
            ),
        ]

    def _uninstall_steps(
        self, env: Environment, name: str, client: ClusterClient,
    ) -> list[Step]:
        def remove_primary_connection() -> None:
            try:
                client.delete_config_map(MESH_NAMESPACE, FEDERATION_CONFIG_MAP)
            except NotFoundError:
                logger.debug("Config map %s already gone", FEDERATION_CONFIG_MAP)

        return [
            Step("remove federation gateway", placeholder(self.name, "remove federation gateway")),
            Step("remove federation agent", placeholder(self.name, "remove federation agent")),
            Step("remove primary connection", remove_primary_connection),
        ]


# --- Private: helpers ---


def _find_remote(env: Environment, name: str) -> ClusterConfig | None:
    for key, remote in env.remote_clusters().items():
        if name in (key, remote.name):
            return remote
    return None


def _default_endpoint(primary: ClusterConfig) -> str:
    return f"https://{primary.name}-federation-gateway.{MESH_NAMESPACE}:15443"
