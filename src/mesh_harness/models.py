"""Core data models for mesh-harness.

Defines the schemas for:
- Cluster topology (single cluster, or primary + named remotes)
- Component configs and runtime component records
- Single-cluster and multi-cluster test configs
- Test results (per cluster, cross cluster, federation report)
"""

from __future__ import annotations

import enum
import os
import tempfile
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mesh_harness.errors import ConfigInvalidError

# --- Enums ---


class ClusterProvider(enum.StrEnum):
    KIND = "kind"
    MINIKUBE = "minikube"
    K3S = "k3s"


class ComponentType(enum.StrEnum):
    ISTIO = "istio"
    KIALI = "kiali"
    PROMETHEUS = "prometheus"
    JAEGER = "jaeger"
    GRAFANA = "grafana"
    ISTIO_FEDERATION = "istio-federation"
    REMOTE_FEDERATION = "remote-federation"
    GATEWAY = "gateway"
    NETWORK_CONNECTIVITY = "network-connectivity"


class ComponentStatus(enum.StrEnum):
    NOT_INSTALLED = "not_installed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    FAILED = "failed"
    UNINSTALLING = "uninstalling"


class TestType(enum.StrEnum):
    __test__ = False

    CYPRESS = "cypress"
    GO = "go"
    CUSTOM = "custom"


class MultiClusterTestType(enum.StrEnum):
    FEDERATION = "federation"
    TRAFFIC = "traffic"
    DISCOVERY = "discovery"
    FAILOVER = "failover"
    LOAD_BALANCE = "load-balance"


class TestStatus(enum.StrEnum):
    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


# --- Cluster topology ---


class ClusterConfig(BaseModel):
    """A single cluster: how it is provisioned and what it is called."""

    provider: ClusterProvider = ClusterProvider.KIND
    name: str = ""
    version: str = ""
    config: dict[str, Any] = Field(default_factory=dict)


class ServiceMeshConfig(BaseModel):
    type: str = ""
    version: str = ""
    config: dict[str, Any] = Field(default_factory=dict)


class CertificateAuthorityConfig(BaseModel):
    type: str = ""
    config: dict[str, Any] = Field(default_factory=dict)


class FederationConfig(BaseModel):
    """Cross-cluster trust settings. Read-only to component managers."""

    enabled: bool = False
    service_mesh: ServiceMeshConfig = Field(default_factory=ServiceMeshConfig)
    trust_domain: str = ""
    certificate_authority: CertificateAuthorityConfig = Field(
        default_factory=CertificateAuthorityConfig,
    )


class GatewayConfig(BaseModel):
    type: str = ""
    version: str = ""
    config: dict[str, Any] = Field(default_factory=dict)


class ServiceDiscoveryConfig(BaseModel):
    type: str = ""
    config: dict[str, Any] = Field(default_factory=dict)


class PolicyRule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: list[str] = Field(default_factory=list, alias="from")
    to: list[str] = Field(default_factory=list)
    ports: list[str] = Field(default_factory=list)
    protocol: str = ""
    action: str = ""


class NetworkPolicyConfig(BaseModel):
    name: str
    namespace: str = ""
    rules: list[PolicyRule] = Field(default_factory=list)


class NetworkConfig(BaseModel):
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    service_discovery: ServiceDiscoveryConfig = Field(default_factory=ServiceDiscoveryConfig)
    policies: list[NetworkPolicyConfig] = Field(default_factory=list)


class ClusterTopology(BaseModel):
    """Primary cluster plus named remotes."""

    primary: ClusterConfig = Field(default_factory=ClusterConfig)
    remotes: dict[str, ClusterConfig] = Field(default_factory=dict)
    federation: FederationConfig = Field(default_factory=FederationConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)


# --- Components ---


class ComponentConfig(BaseModel):
    """Desired state of one component, as declared in the environment."""

    type: ComponentType
    version: str = ""
    enabled: bool = True
    config: dict[str, Any] = Field(default_factory=dict)


class Component(BaseModel):
    """Runtime record of a component on a cluster."""

    name: str
    type: ComponentType
    status: ComponentStatus = ComponentStatus.NOT_INSTALLED
    version: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    install_time: datetime | None = None
    last_check: datetime | None = None
    error_message: str = ""


# --- Tests ---


class TestConfig(BaseModel):
    __test__ = False

    type: TestType
    enabled: bool = True
    config: dict[str, Any] = Field(default_factory=dict)


class RetryPolicy(BaseModel):
    max_retries: int = 0
    retry_delay: float = 0.0


class MultiClusterTestConfig(BaseModel):
    """One multi-cluster campaign.

    ``max_concurrency``, ``timeout`` and ``retry_policy`` left at zero are
    normalized to defaults by the coordinator before dispatch.
    """

    type: MultiClusterTestType | None = None
    enabled: bool = True
    config: dict[str, Any] = Field(default_factory=dict)
    clusters: list[str] = Field(default_factory=list)
    exclude_clusters: list[str] = Field(default_factory=list)
    parallel: bool = False
    max_concurrency: int = 0
    timeout: float = 0.0
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)


# --- Results ---


class TestResults(BaseModel):
    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: float = 0.0
    artifacts: dict[str, str] = Field(default_factory=dict)


class CrossClusterTestResult(BaseModel):
    test_name: str
    source_cluster: str
    target_clusters: list[str] = Field(default_factory=list)
    status: TestStatus = TestStatus.PENDING
    duration: float = 0.0
    error: str = ""
    traffic_validated: bool = False
    service_discovery: bool = False


class FederationServiceResult(BaseModel):
    service_name: str
    namespace: str = "default"
    clusters: list[str] = Field(default_factory=list)
    connectivity_test: bool = False
    load_balancing: bool = False
    failover_test: bool = False
    duration: float = 0.0
    start_time: datetime | None = None
    error: str = ""


class FederationTestResults(BaseModel):
    trust_domain_validation: bool = False
    certificate_exchange: bool = False
    service_mesh_connectivity: bool = False
    gateway_configuration: bool = False
    cross_cluster_services: list[FederationServiceResult] = Field(default_factory=list)
    traffic_patterns: dict[str, bool] = Field(default_factory=dict)


class MultiClusterTestResults(BaseModel):
    overall_results: TestResults = Field(default_factory=TestResults)
    cluster_results: dict[str, TestResults] = Field(default_factory=dict)
    cross_cluster_results: list[CrossClusterTestResult] = Field(default_factory=list)
    federation_results: FederationTestResults | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    total_duration: float = 0.0


# --- Environment ---


def _default_temp_dir() -> str:
    return os.path.join(tempfile.gettempdir(), "mesh-harness")


class GlobalConfig(BaseModel):
    log_level: str = "info"
    timeout: float = 300.0
    verbose: bool = False
    working_dir: str = "."
    temp_dir: str = Field(default_factory=_default_temp_dir)


class Environment(BaseModel):
    """Everything the harness knows about the environment under test."""

    model_config = ConfigDict(populate_by_name=True)

    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    clusters: ClusterTopology = Field(default_factory=ClusterTopology)
    components: dict[str, ComponentConfig] = Field(default_factory=dict)
    tests: dict[str, TestConfig] = Field(default_factory=dict)
    multi_cluster_tests: dict[str, MultiClusterTestConfig] = Field(default_factory=dict)
    global_settings: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")

    def is_multi_cluster(self) -> bool:
        return bool(self.clusters.primary.name) or bool(self.clusters.remotes)

    def primary_cluster(self) -> ClusterConfig:
        """The primary cluster, or the single cluster outside multi-cluster mode."""
        if self.is_multi_cluster():
            return self.clusters.primary
        return self.cluster

    def remote_clusters(self) -> dict[str, ClusterConfig]:
        if not self.is_multi_cluster():
            return {}
        return dict(self.clusters.remotes)

    def all_clusters(self) -> dict[str, ClusterConfig]:
        """Clusters keyed by name, primary first, remotes in declaration order."""
        if not self.is_multi_cluster():
            return {self.cluster.name: self.cluster}
        clusters = {self.clusters.primary.name: self.clusters.primary}
        for key, remote in self.clusters.remotes.items():
            clusters[remote.name or key] = remote
        return clusters

    def cluster_names(self) -> list[str]:
        return list(self.all_clusters())

    def federation_config(self) -> FederationConfig:
        if not self.is_multi_cluster():
            return FederationConfig(enabled=False)
        return self.clusters.federation

    def network_config(self) -> NetworkConfig:
        return self.clusters.network

    def validate_environment(self) -> None:
        """Check structural invariants. Raises ConfigInvalidError."""
        if self.is_multi_cluster():
            self._validate_topology()
        elif not self.cluster.name:
            raise ConfigInvalidError("cluster name is required")

        for name, component in self.components.items():
            if component.enabled and not component.version:
                raise ConfigInvalidError(f"component {name} version is required")

    def _validate_topology(self) -> None:
        if not self.clusters.primary.name:
            raise ConfigInvalidError("primary cluster name is required in multi-cluster mode")

        seen = {self.clusters.primary.name}
        for key, remote in self.clusters.remotes.items():
            name = remote.name or key
            if name in seen:
                raise ConfigInvalidError(f"duplicate cluster name: {name}")
            seen.add(name)

        federation = self.clusters.federation
        if federation.enabled and not federation.trust_domain:
            raise ConfigInvalidError("trust domain is required when federation is enabled")
