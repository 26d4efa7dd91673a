"""Observability UI (Kiali) manager."""

from __future__ import annotations

from typing import Any

from mesh_harness.cluster.client import ClusterClient, NotFoundError
from mesh_harness.components.base import (
    BaseComponentManager,
    Step,
    delete_namespace,
    deployment_exists,
    ensure_namespace,
    namespace_exists,
    placeholder,
)
from mesh_harness.errors import ConfigInvalidError
from mesh_harness.models import ComponentConfig, ComponentType, Environment

KIALI_NAMESPACE = "kiali"
KIALI_DEPLOYMENT = "kiali"
# Searched in order; the first namespace holding the deployment decides health.
HEALTH_NAMESPACES = ("kiali", "istio-system", "kiali-operator")
AUTH_STRATEGIES = ("anonymous", "token", "openid", "header")


class KialiManager(BaseComponentManager):
    """Installs the Kiali observability UI."""

    component_type = ComponentType.KIALI

    def _validate_component_config(self, config: dict[str, Any]) -> None:
        auth = config.get("auth")
        if auth is None:
            return
        if not isinstance(auth, dict):
            raise ConfigInvalidError("kiali auth configuration must be a map")
        strategy = auth.get("strategy")
        if strategy is not None and strategy not in AUTH_STRATEGIES:
            raise ConfigInvalidError(
                f"unsupported kiali auth strategy: {strategy} "
                f"(must be one of: {', '.join(AUTH_STRATEGIES)})",
            )

    def _is_installed(self, client: ClusterClient, target: str | None) -> bool:
        if namespace_exists(client, KIALI_NAMESPACE):
            return True
        return deployment_exists(client, "istio-system", KIALI_DEPLOYMENT)

    def _is_healthy(self, client: ClusterClient, target: str | None) -> bool:
        for namespace in HEALTH_NAMESPACES:
            try:
                workload = client.get_deployment(namespace, KIALI_DEPLOYMENT)
            except NotFoundError:
                continue
            return workload.is_serving
        return False

    def _install_steps(
        self, env: Environment, config: ComponentConfig, client: ClusterClient,
    ) -> list[Step]:
        auth = config.config.get("auth") or {}
        strategy = auth.get("strategy", "token")
        return [
            Step(
                f"create {KIALI_NAMESPACE} namespace",
                lambda: ensure_namespace(client, KIALI_NAMESPACE),
            ),
            Step(
                "deploy kiali server",
                placeholder(self.name, f"deploy server (auth strategy={strategy})"),
            ),
            Step("wait for kiali to be ready", placeholder(self.name, "wait for ready")),
        ]

    def _uninstall_steps(
        self, env: Environment, name: str, client: ClusterClient,
    ) -> list[Step]:
        return [
            Step(
                f"delete {KIALI_NAMESPACE} namespace",
                lambda: delete_namespace(client, KIALI_NAMESPACE),
            ),
        ]
