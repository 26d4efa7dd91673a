"""Shared fixtures: an in-memory ClusterClient and sample environments.

No real cluster is needed; managers are given a client factory that
always returns the same ``FakeClusterClient``.
"""

from __future__ import annotations

from typing import Any

import pytest

from mesh_harness.cluster.client import (
    AlreadyExistsError,
    ClusterClientError,
    NotFoundError,
    ObjectRef,
    WorkloadStatus,
)
from mesh_harness.models import (
    ClusterConfig,
    ClusterTopology,
    Environment,
    FederationConfig,
)

# ---------------------------------------------------------------------------
# In-memory cluster
# ---------------------------------------------------------------------------


def _matches(labels: dict[str, str], selector: str | None) -> bool:
    if not selector:
        return True
    for term in selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class FakeClusterClient:
    """Dict-backed ClusterClient. Set ``fail_with`` to make every call raise."""

    def __init__(self) -> None:
        self.namespaces: dict[str, ObjectRef] = {}
        self.deployments: dict[tuple[str, str], WorkloadStatus] = {}
        self.stateful_sets: dict[tuple[str, str], WorkloadStatus] = {}
        self.config_maps: dict[tuple[str, str], ObjectRef] = {}
        self.services: dict[tuple[str, str], ObjectRef] = {}
        self.network_policies: dict[tuple[str, str], ObjectRef] = {}
        self.specs: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.fail_with: ClusterClientError | None = None

    # --- helpers for tests ---

    def add_deployment(
        self,
        namespace: str,
        name: str,
        replicas: int = 1,
        ready: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        self.deployments[(namespace, name)] = WorkloadStatus(
            name=name, namespace=namespace, replicas=replicas,
            ready_replicas=ready, labels=dict(labels or {}),
        )

    def add_stateful_set(
        self, namespace: str, name: str, replicas: int = 1, ready: int = 1,
    ) -> None:
        self.stateful_sets[(namespace, name)] = WorkloadStatus(
            name=name, namespace=namespace, replicas=replicas, ready_replicas=ready,
        )

    def _check(self, op: str, *args: str) -> None:
        self.calls.append((op, *args))
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _get(store: dict[Any, Any], key: Any, kind: str) -> Any:
        if key not in store:
            raise NotFoundError(f"{kind} not found: {key}")
        return store[key]

    @staticmethod
    def _list(
        store: dict[tuple[str, str], Any], namespace: str | None, selector: str | None,
    ) -> list[Any]:
        return [
            obj for (ns, _), obj in store.items()
            if (namespace is None or ns == namespace) and _matches(obj.labels, selector)
        ]

    @staticmethod
    def _put(store: dict[Any, Any], key: Any, obj: Any, kind: str) -> None:
        if key in store:
            raise AlreadyExistsError(f"{kind} already exists: {key}")
        store[key] = obj

    # --- namespaces ---

    def get_namespace(self, name: str) -> ObjectRef:
        self._check("get_namespace", name)
        return self._get(self.namespaces, name, "namespace")

    def list_namespaces(self, label_selector: str | None = None) -> list[ObjectRef]:
        self._check("list_namespaces")
        return [ns for ns in self.namespaces.values() if _matches(ns.labels, label_selector)]

    def create_namespace(self, name: str, labels: dict[str, str] | None = None) -> None:
        self._check("create_namespace", name)
        self._put(self.namespaces, name, ObjectRef(name=name, labels=dict(labels or {})), "namespace")

    def delete_namespace(self, name: str) -> None:
        self._check("delete_namespace", name)
        self._get(self.namespaces, name, "namespace")
        del self.namespaces[name]
        for store in (self.deployments, self.stateful_sets, self.config_maps,
                      self.services, self.network_policies):
            for key in [k for k in store if k[0] == name]:
                del store[key]

    # --- workloads ---

    def get_deployment(self, namespace: str, name: str) -> WorkloadStatus:
        self._check("get_deployment", namespace, name)
        return self._get(self.deployments, (namespace, name), "deployment")

    def list_deployments(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[WorkloadStatus]:
        self._check("list_deployments")
        return self._list(self.deployments, namespace, label_selector)

    def create_deployment(self, namespace: str, body: dict[str, Any]) -> None:
        name = body["metadata"]["name"]
        self._check("create_deployment", namespace, name)
        self.add_deployment(namespace, name)

    def delete_deployment(self, namespace: str, name: str) -> None:
        self._check("delete_deployment", namespace, name)
        self._get(self.deployments, (namespace, name), "deployment")
        del self.deployments[(namespace, name)]

    def get_stateful_set(self, namespace: str, name: str) -> WorkloadStatus:
        self._check("get_stateful_set", namespace, name)
        return self._get(self.stateful_sets, (namespace, name), "statefulset")

    def list_stateful_sets(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[WorkloadStatus]:
        self._check("list_stateful_sets")
        return self._list(self.stateful_sets, namespace, label_selector)

    # --- config maps ---

    def get_config_map(self, namespace: str, name: str) -> ObjectRef:
        self._check("get_config_map", namespace, name)
        return self._get(self.config_maps, (namespace, name), "configmap")

    def list_config_maps(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]:
        self._check("list_config_maps")
        return self._list(self.config_maps, namespace, label_selector)

    def create_config_map(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        labels: dict[str, str] | None = None,
    ) -> None:
        self._check("create_config_map", namespace, name)
        ref = ObjectRef(name=name, namespace=namespace, labels=dict(labels or {}), data=dict(data))
        self._put(self.config_maps, (namespace, name), ref, "configmap")

    def delete_config_map(self, namespace: str, name: str) -> None:
        self._check("delete_config_map", namespace, name)
        self._get(self.config_maps, (namespace, name), "configmap")
        del self.config_maps[(namespace, name)]

    # --- services ---

    def get_service(self, namespace: str, name: str) -> ObjectRef:
        self._check("get_service", namespace, name)
        return self._get(self.services, (namespace, name), "service")

    def list_services(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]:
        self._check("list_services")
        return self._list(self.services, namespace, label_selector)

    def create_service(
        self,
        namespace: str,
        name: str,
        spec: dict[str, Any],
        labels: dict[str, str] | None = None,
        annotations: dict[str, str] | None = None,
    ) -> None:
        self._check("create_service", namespace, name)
        ref = ObjectRef(name=name, namespace=namespace, labels=dict(labels or {}))
        self._put(self.services, (namespace, name), ref, "service")
        self.specs[("service", namespace, name)] = spec

    def delete_service(self, namespace: str, name: str) -> None:
        self._check("delete_service", namespace, name)
        self._get(self.services, (namespace, name), "service")
        del self.services[(namespace, name)]

    # --- network policies ---

    def get_network_policy(self, namespace: str, name: str) -> ObjectRef:
        self._check("get_network_policy", namespace, name)
        return self._get(self.network_policies, (namespace, name), "networkpolicy")

    def list_network_policies(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]:
        self._check("list_network_policies")
        return self._list(self.network_policies, namespace, label_selector)

    def create_network_policy(
        self,
        namespace: str,
        name: str,
        spec: dict[str, Any],
        labels: dict[str, str] | None = None,
    ) -> None:
        self._check("create_network_policy", namespace, name)
        ref = ObjectRef(name=name, namespace=namespace, labels=dict(labels or {}))
        self._put(self.network_policies, (namespace, name), ref, "networkpolicy")
        self.specs[("networkpolicy", namespace, name)] = spec

    def delete_network_policy(self, namespace: str, name: str) -> None:
        self._check("delete_network_policy", namespace, name)
        self._get(self.network_policies, (namespace, name), "networkpolicy")
        del self.network_policies[(namespace, name)]

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)


class RecordingFactory:
    """ClientFactory returning one shared fake and recording requested targets."""

    def __init__(self, client: FakeClusterClient) -> None:
        self.client = client
        self.targets: list[str | None] = []

    def __call__(self, env: Environment, target: str | None = None) -> FakeClusterClient:
        self.targets.append(target)
        return self.client


# ---------------------------------------------------------------------------
# Environments
# ---------------------------------------------------------------------------


def make_single_env(**kwargs: Any) -> Environment:
    return Environment(cluster=ClusterConfig(name="mesh-test", version="1.27.0"), **kwargs)


def make_multi_env(
    remotes: tuple[str, ...] = ("remote-1", "remote-2"),
    federation: bool = True,
    trust_domain: str = "mesh.local",
    **kwargs: Any,
) -> Environment:
    return Environment(
        clusters=ClusterTopology(
            primary=ClusterConfig(name="primary"),
            remotes={name: ClusterConfig(name=name) for name in remotes},
            federation=FederationConfig(enabled=federation, trust_domain=trust_domain),
        ),
        **kwargs,
    )


@pytest.fixture
def fake_client() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture
def client_factory(fake_client: FakeClusterClient) -> RecordingFactory:
    return RecordingFactory(fake_client)


@pytest.fixture
def single_env() -> Environment:
    return make_single_env()


@pytest.fixture
def multi_env() -> Environment:
    return make_multi_env()
