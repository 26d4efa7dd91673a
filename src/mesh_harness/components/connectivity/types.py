"""Connectivity provider protocol and shared records."""

from __future__ import annotations

import enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from mesh_harness.cluster.client import ClusterClient

MANAGED_BY = "mesh-harness"
FRAMEWORK_LABEL = "connectivity-framework"
COMPONENT_LABEL = "app.kubernetes.io/component"
# Uninstall removes everything carrying this selector.
FRAMEWORK_SELECTOR = f"{FRAMEWORK_LABEL}=true"
# The install-state probe looks for objects carrying this selector.
COMPONENT_SELECTOR = f"{COMPONENT_LABEL}=connectivity"


def managed_labels(**extra: str) -> dict[str, str]:
    """Labels stamped on every object a connectivity provider creates."""
    labels = {
        "app.kubernetes.io/managed-by": MANAGED_BY,
        COMPONENT_LABEL: "connectivity",
        FRAMEWORK_LABEL: "true",
    }
    labels.update(extra)
    return labels


class ConnectivityType(enum.StrEnum):
    KUBERNETES = "kubernetes"
    ISTIO = "istio"
    LINKERD = "linkerd"
    MANUAL = "manual"


class ConnectivityStatus(BaseModel):
    type: ConnectivityType
    state: str = "unknown"
    healthy: bool = False
    error_message: str = ""
    policies_count: int = 0
    services_count: int = 0
    config_maps_count: int = 0


class ConnectivityTemplate(BaseModel):
    """Named, reusable connectivity configuration for one provider."""

    name: str
    type: ConnectivityType
    description: str = ""
    version: str = "1.0.0"
    config: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)


@runtime_checkable
class ConnectivityProvider(Protocol):
    """One way of wiring clusters together (native policies, a mesh, manual)."""

    @property
    def type(self) -> ConnectivityType: ...

    def validate_config(self, config: dict[str, Any]) -> None: ...

    def install(self, client: ClusterClient, config: dict[str, Any]) -> None: ...

    def uninstall(self, client: ClusterClient) -> None: ...

    def status(self, client: ClusterClient) -> ConnectivityStatus: ...
