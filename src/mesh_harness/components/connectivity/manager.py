"""Network connectivity component manager.

Drives a ConnectivityFramework: either installs a named template (config
key ``template``) or hands the ``connectivity`` section to the provider
named by ``connectivity.type`` (default ``kubernetes``).
"""

from __future__ import annotations

import logging
from typing import Any

from mesh_harness.cluster.client import ClientFactory, ClusterClient
from mesh_harness.components.base import BaseComponentManager, Step
from mesh_harness.components.connectivity.framework import ConnectivityFramework
from mesh_harness.components.connectivity.providers import remove_managed_objects
from mesh_harness.components.connectivity.types import (
    COMPONENT_SELECTOR,
    ConnectivityType,
)
from mesh_harness.errors import ConfigInvalidError
from mesh_harness.models import ComponentConfig, ComponentType, Environment

logger = logging.getLogger(__name__)


class NetworkConnectivityManager(BaseComponentManager):
    component_type = ComponentType.NETWORK_CONNECTIVITY

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        framework: ConnectivityFramework | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(client_factory, **kwargs)
        self.framework = framework or ConnectivityFramework.with_defaults()

    def _validate_component_config(self, config: dict[str, Any]) -> None:
        connectivity = config.get("connectivity")
        if connectivity is None:
            raise ConfigInvalidError("connectivity configuration is required")
        if not isinstance(connectivity, dict):
            raise ConfigInvalidError("connectivity configuration must be a map")

        if "type" in connectivity:
            kind = connectivity["type"]
            if not isinstance(kind, str) or not kind:
                raise ConfigInvalidError("connectivity type must be a non-empty string")
            if kind not in {t.value for t in ConnectivityType}:
                raise ConfigInvalidError(f"unsupported connectivity type: {kind}")

        if "template" in config:
            self.framework.get_template(str(config["template"]))
        else:
            self.framework.get_provider(self._connectivity_type(connectivity)).validate_config(
                connectivity,
            )

    def _is_installed(self, client: ClusterClient, target: str | None) -> bool:
        return bool(
            client.list_network_policies(label_selector=COMPONENT_SELECTOR)
            or client.list_services(label_selector=COMPONENT_SELECTOR)
            or client.list_config_maps(label_selector=COMPONENT_SELECTOR)
        )

    def _is_healthy(self, client: ClusterClient, target: str | None) -> bool:
        workloads = client.list_deployments(label_selector=COMPONENT_SELECTOR)
        return all(w.is_ready for w in workloads)

    def _install_steps(
        self, env: Environment, config: ComponentConfig, client: ClusterClient,
    ) -> list[Step]:
        settings = config.config
        if "template" in settings:
            template = str(settings["template"])
            overrides = {k: v for k, v in settings.items() if k != "template"}
            return [
                Step(
                    f"install connectivity template {template}",
                    lambda: self.framework.install_template(client, template, overrides),
                ),
            ]

        connectivity = settings["connectivity"]
        kind = self._connectivity_type(connectivity)
        provider = self.framework.get_provider(kind)
        return [
            Step(
                f"install {kind} connectivity",
                lambda: provider.install(client, connectivity),
            ),
        ]

    def _uninstall_steps(
        self, env: Environment, name: str, client: ClusterClient,
    ) -> list[Step]:
        return [
            Step("remove connectivity resources", lambda: remove_managed_objects(client)),
        ]

    @staticmethod
    def _connectivity_type(connectivity: dict[str, Any]) -> ConnectivityType:
        return ConnectivityType(connectivity.get("type") or ConnectivityType.KUBERNETES)
