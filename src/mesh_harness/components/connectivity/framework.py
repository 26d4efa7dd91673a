"""Registry of connectivity providers and templates."""

from __future__ import annotations

import copy
import logging
from typing import Any

from mesh_harness.cluster.client import ClusterClient
from mesh_harness.components.connectivity.types import (
    ConnectivityProvider,
    ConnectivityStatus,
    ConnectivityTemplate,
    ConnectivityType,
)
from mesh_harness.errors import ConfigNotFoundError, InvalidParameterError

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES: list[ConnectivityTemplate] = [
    ConnectivityTemplate(
        name="kubernetes-basic",
        type=ConnectivityType.KUBERNETES,
        description="Basic Kubernetes connectivity for cross-cluster communication",
        config={
            "networkPolicies": True,
            "allowCIDRs": ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"],
            "serviceDiscovery": True,
            "dns": {"enabled": True, "searchDomains": ["cluster.local"]},
        },
        tags=["kubernetes", "basic", "networking"],
    ),
    ConnectivityTemplate(
        name="istio-service-mesh",
        type=ConnectivityType.ISTIO,
        description="Istio service mesh connectivity for advanced traffic management",
        config={
            "serviceMesh": {
                "enabled": True,
                "discoverySelectors": [{"istio.io/tag": "cross-cluster"}],
            },
            "trafficManagement": {"loadBalancing": "ROUND_ROBIN", "circuitBreaker": True},
        },
        tags=["istio", "service-mesh", "traffic-management"],
    ),
    ConnectivityTemplate(
        name="linkerd-service-mesh",
        type=ConnectivityType.LINKERD,
        description="Linkerd service mesh connectivity for lightweight traffic management",
        config={
            "serviceMesh": {"enabled": True},
            "trafficManagement": {"loadBalancing": "ewma", "retries": 3},
        },
        tags=["linkerd", "service-mesh", "lightweight"],
    ),
    ConnectivityTemplate(
        name="manual-configuration",
        type=ConnectivityType.MANUAL,
        description="Manual connectivity configuration for custom setups",
        config={"manual": {"enabled": True, "validateConfig": True}},
        tags=["manual", "custom", "configuration"],
    ),
]


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge *override* onto *base*. Nested maps merge, everything else replaces."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class ConnectivityFramework:
    """Providers keyed by ConnectivityType, templates keyed by name."""

    def __init__(self) -> None:
        self._providers: dict[ConnectivityType, ConnectivityProvider] = {}
        self._templates: dict[str, ConnectivityTemplate] = {}

    @classmethod
    def with_defaults(cls) -> ConnectivityFramework:
        """A framework with all built-in providers and templates registered."""
        from mesh_harness.components.connectivity.providers import default_providers

        framework = cls()
        for provider in default_providers():
            framework.register_provider(provider)
        for template in DEFAULT_TEMPLATES:
            framework.register_template(template)
        return framework

    def register_provider(self, provider: ConnectivityProvider) -> None:
        self._providers[provider.type] = provider
        logger.debug("Registered connectivity provider: %s", provider.type)

    def get_provider(self, connectivity_type: ConnectivityType | str) -> ConnectivityProvider:
        provider = self._providers.get(connectivity_type)
        if provider is None:
            raise InvalidParameterError(f"connectivity provider not found: {connectivity_type}")
        return provider

    def register_template(self, template: ConnectivityTemplate) -> None:
        self._templates[template.name] = template
        logger.debug("Registered connectivity template: %s", template.name)

    def get_template(self, name: str) -> ConnectivityTemplate:
        template = self._templates.get(name)
        if template is None:
            raise ConfigNotFoundError(f"connectivity template not found: {name}")
        return template

    def list_templates(self) -> dict[str, ConnectivityTemplate]:
        return dict(self._templates)

    def install_template(
        self, client: ClusterClient, name: str, overrides: dict[str, Any] | None = None,
    ) -> None:
        """Install template *name*, with *overrides* merged over its config."""
        template = self.get_template(name)
        provider = self.get_provider(template.type)
        merged = merge_configs(template.config, overrides or {})
        provider.validate_config(merged)
        logger.info("Installing connectivity template %s (%s)", name, template.type)
        provider.install(client, merged)

    def uninstall(self, client: ClusterClient, connectivity_type: ConnectivityType) -> None:
        self.get_provider(connectivity_type).uninstall(client)

    def status(
        self, client: ClusterClient, connectivity_type: ConnectivityType,
    ) -> ConnectivityStatus:
        return self.get_provider(connectivity_type).status(client)
