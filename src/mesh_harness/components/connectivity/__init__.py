"""Cross-cluster network connectivity: providers, templates and the component manager."""

from mesh_harness.components.connectivity.framework import (
    DEFAULT_TEMPLATES,
    ConnectivityFramework,
    merge_configs,
)
from mesh_harness.components.connectivity.manager import NetworkConnectivityManager
from mesh_harness.components.connectivity.providers import (
    IstioProvider,
    KubernetesProvider,
    LinkerdProvider,
    ManualProvider,
    default_providers,
)
from mesh_harness.components.connectivity.types import (
    ConnectivityProvider,
    ConnectivityStatus,
    ConnectivityTemplate,
    ConnectivityType,
)

__all__ = [
    "DEFAULT_TEMPLATES",
    "ConnectivityFramework",
    "ConnectivityProvider",
    "ConnectivityStatus",
    "ConnectivityTemplate",
    "ConnectivityType",
    "IstioProvider",
    "KubernetesProvider",
    "LinkerdProvider",
    "ManualProvider",
    "NetworkConnectivityManager",
    "default_providers",
    "merge_configs",
]
