"""Cluster access for component managers.

The ``ClusterClient`` protocol is the only view of the cluster control
plane the managers use.  ``KubernetesClusterClient`` implements it on the
official ``kubernetes`` Python client with dict request bodies.

``get_*`` methods raise ``NotFoundError`` when the object does not exist.
Every other failure is a ``ClusterClientError`` (transport, auth, 5xx).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from mesh_harness.models import ClusterConfig, ClusterProvider, Environment


class ClusterClientError(Exception):
    """Raised when a cluster API call fails for any reason but not-found."""


class NotFoundError(ClusterClientError):
    """Raised when the requested object does not exist."""


class AlreadyExistsError(ClusterClientError):
    """Raised when creating an object that already exists."""


@dataclass
class ObjectRef:
    """Name, labels and (for config maps) data of a cluster object."""

    name: str
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] = field(default_factory=dict)


@dataclass
class WorkloadStatus:
    """Declared vs. ready replica counts of a deployment or stateful set."""

    name: str
    namespace: str
    replicas: int = 0
    ready_replicas: int = 0
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def is_ready(self) -> bool:
        return self.ready_replicas == self.replicas

    @property
    def is_serving(self) -> bool:
        """Ready and scaled above zero."""
        return self.is_ready and self.replicas > 0


@runtime_checkable
class ClusterClient(Protocol):
    """Get/list/create/delete for the object kinds the managers touch."""

    def get_namespace(self, name: str) -> ObjectRef: ...

    def list_namespaces(self, label_selector: str | None = None) -> list[ObjectRef]: ...

    def create_namespace(self, name: str, labels: dict[str, str] | None = None) -> None: ...

    def delete_namespace(self, name: str) -> None: ...

    def get_deployment(self, namespace: str, name: str) -> WorkloadStatus: ...

    def list_deployments(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[WorkloadStatus]: ...

    def create_deployment(self, namespace: str, body: dict[str, Any]) -> None: ...

    def delete_deployment(self, namespace: str, name: str) -> None: ...

    def get_stateful_set(self, namespace: str, name: str) -> WorkloadStatus: ...

    def list_stateful_sets(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[WorkloadStatus]: ...

    def get_config_map(self, namespace: str, name: str) -> ObjectRef: ...

    def list_config_maps(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]: ...

    def create_config_map(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        labels: dict[str, str] | None = None,
    ) -> None: ...

    def delete_config_map(self, namespace: str, name: str) -> None: ...

    def get_service(self, namespace: str, name: str) -> ObjectRef: ...

    def list_services(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]: ...

    def create_service(
        self,
        namespace: str,
        name: str,
        spec: dict[str, Any],
        labels: dict[str, str] | None = None,
        annotations: dict[str, str] | None = None,
    ) -> None: ...

    def delete_service(self, namespace: str, name: str) -> None: ...

    def get_network_policy(self, namespace: str, name: str) -> ObjectRef: ...

    def list_network_policies(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]: ...

    def create_network_policy(
        self,
        namespace: str,
        name: str,
        spec: dict[str, Any],
        labels: dict[str, str] | None = None,
    ) -> None: ...

    def delete_network_policy(self, namespace: str, name: str) -> None: ...


ClientFactory = Callable[[Environment, "str | None"], ClusterClient]


@dataclass
class ResourceKind:
    """Maps an object kind to the kubernetes client API methods."""

    api_class: str
    read_method: str
    list_method: str
    list_all_method: str
    create_method: str
    delete_method: str
    namespaced: bool = True


RESOURCE_KINDS: dict[str, ResourceKind] = {
    "namespace": ResourceKind(
        api_class="CoreV1Api",
        read_method="read_namespace",
        list_method="list_namespace",
        list_all_method="list_namespace",
        create_method="create_namespace",
        delete_method="delete_namespace",
        namespaced=False,
    ),
    "deployment": ResourceKind(
        api_class="AppsV1Api",
        read_method="read_namespaced_deployment",
        list_method="list_namespaced_deployment",
        list_all_method="list_deployment_for_all_namespaces",
        create_method="create_namespaced_deployment",
        delete_method="delete_namespaced_deployment",
    ),
    "statefulset": ResourceKind(
        api_class="AppsV1Api",
        read_method="read_namespaced_stateful_set",
        list_method="list_namespaced_stateful_set",
        list_all_method="list_stateful_set_for_all_namespaces",
        create_method="create_namespaced_stateful_set",
        delete_method="delete_namespaced_stateful_set",
    ),
    "configmap": ResourceKind(
        api_class="CoreV1Api",
        read_method="read_namespaced_config_map",
        list_method="list_namespaced_config_map",
        list_all_method="list_config_map_for_all_namespaces",
        create_method="create_namespaced_config_map",
        delete_method="delete_namespaced_config_map",
    ),
    "service": ResourceKind(
        api_class="CoreV1Api",
        read_method="read_namespaced_service",
        list_method="list_namespaced_service",
        list_all_method="list_service_for_all_namespaces",
        create_method="create_namespaced_service",
        delete_method="delete_namespaced_service",
    ),
    "networkpolicy": ResourceKind(
        api_class="NetworkingV1Api",
        read_method="read_namespaced_network_policy",
        list_method="list_namespaced_network_policy",
        list_all_method="list_network_policy_for_all_namespaces",
        create_method="create_namespaced_network_policy",
        delete_method="delete_namespaced_network_policy",
    ),
}


class KubernetesClusterClient:
    """ClusterClient backed by the official kubernetes Python client.

    Configuration, in order of precedence:
    - ``in_cluster=True`` loads the service-account config
    - ``kubeconfig`` / ``context`` select a kubeconfig file and context
    - otherwise the default kubeconfig and current context are used
    """

    def __init__(
        self,
        kubeconfig: str | None = None,
        context: str | None = None,
        in_cluster: bool = False,
    ) -> None:
        self._kubeconfig = kubeconfig
        self._context = context
        self._in_cluster = in_cluster
        self._api_client: Any = None

    # --- Namespaces ---

    def get_namespace(self, name: str) -> ObjectRef:
        return _to_ref(self._call("namespace", "read", name=name))

    def list_namespaces(self, label_selector: str | None = None) -> list[ObjectRef]:
        return [_to_ref(item) for item in self._list("namespace", None, label_selector)]

    def create_namespace(self, name: str, labels: dict[str, str] | None = None) -> None:
        body = {"metadata": {"name": name, "labels": dict(labels or {})}}
        self._call("namespace", "create", body=body)

    def delete_namespace(self, name: str) -> None:
        self._call("namespace", "delete", name=name)

    # --- Workloads ---

    def get_deployment(self, namespace: str, name: str) -> WorkloadStatus:
        return _to_workload(self._call("deployment", "read", name=name, namespace=namespace))

    def list_deployments(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[WorkloadStatus]:
        return [_to_workload(i) for i in self._list("deployment", namespace, label_selector)]

    def create_deployment(self, namespace: str, body: dict[str, Any]) -> None:
        self._call("deployment", "create", namespace=namespace, body=body)

    def delete_deployment(self, namespace: str, name: str) -> None:
        self._call("deployment", "delete", name=name, namespace=namespace)

    def get_stateful_set(self, namespace: str, name: str) -> WorkloadStatus:
        return _to_workload(self._call("statefulset", "read", name=name, namespace=namespace))

    def list_stateful_sets(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[WorkloadStatus]:
        return [_to_workload(i) for i in self._list("statefulset", namespace, label_selector)]

    # --- Config maps ---

    def get_config_map(self, namespace: str, name: str) -> ObjectRef:
        return _to_ref(self._call("configmap", "read", name=name, namespace=namespace))

    def list_config_maps(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]:
        return [_to_ref(item) for item in self._list("configmap", namespace, label_selector)]

    def create_config_map(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        labels: dict[str, str] | None = None,
    ) -> None:
        body = {
            "metadata": {"name": name, "namespace": namespace, "labels": dict(labels or {})},
            "data": dict(data),
        }
        self._call("configmap", "create", namespace=namespace, body=body)

    def delete_config_map(self, namespace: str, name: str) -> None:
        self._call("configmap", "delete", name=name, namespace=namespace)

    # --- Services ---

    def get_service(self, namespace: str, name: str) -> ObjectRef:
        return _to_ref(self._call("service", "read", name=name, namespace=namespace))

    def list_services(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]:
        return [_to_ref(item) for item in self._list("service", namespace, label_selector)]

    def create_service(
        self,
        namespace: str,
        name: str,
        spec: dict[str, Any],
        labels: dict[str, str] | None = None,
        annotations: dict[str, str] | None = None,
    ) -> None:
        body = {
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": dict(labels or {}),
                "annotations": dict(annotations or {}),
            },
            "spec": spec,
        }
        self._call("service", "create", namespace=namespace, body=body)

    def delete_service(self, namespace: str, name: str) -> None:
        self._call("service", "delete", name=name, namespace=namespace)

    # --- Network policies ---

    def get_network_policy(self, namespace: str, name: str) -> ObjectRef:
        return _to_ref(self._call("networkpolicy", "read", name=name, namespace=namespace))

    def list_network_policies(
        self, namespace: str | None = None, label_selector: str | None = None,
    ) -> list[ObjectRef]:
        return [_to_ref(i) for i in self._list("networkpolicy", namespace, label_selector)]

    def create_network_policy(
        self,
        namespace: str,
        name: str,
        spec: dict[str, Any],
        labels: dict[str, str] | None = None,
    ) -> None:
        body = {
            "metadata": {"name": name, "namespace": namespace, "labels": dict(labels or {})},
            "spec": spec,
        }
        self._call("networkpolicy", "create", namespace=namespace, body=body)

    def delete_network_policy(self, namespace: str, name: str) -> None:
        self._call("networkpolicy", "delete", name=name, namespace=namespace)

    # --- Private: client setup ---

    def _get_api_client(self) -> Any:
        """Build (once) a kubernetes ApiClient from the constructor config."""
        if self._api_client is not None:
            return self._api_client

        from kubernetes import client, config

        if self._in_cluster:
            config.load_incluster_config()
        else:
            kwargs: dict[str, Any] = {}
            if self._kubeconfig:
                kwargs["config_file"] = self._kubeconfig
            if self._context:
                kwargs["context"] = self._context
            config.load_kube_config(**kwargs)
        self._api_client = client.ApiClient()
        return self._api_client

    def _get_api_instance(self, api_class_name: str) -> Any:
        from kubernetes import client

        api_cls = getattr(client, api_class_name)
        return api_cls(self._get_api_client())

    # --- Private: calls ---

    def _list(
        self, kind: str, namespace: str | None, label_selector: str | None,
    ) -> list[Any]:
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        if namespace is None:
            result = self._call(kind, "list_all", **kwargs)
        else:
            result = self._call(kind, "list", namespace=namespace, **kwargs)
        return list(result.items or [])

    def _call(self, kind: str, op: str, **kwargs: Any) -> Any:
        mapping = RESOURCE_KINDS[kind]
        try:
            api = self._get_api_instance(mapping.api_class)
            method = getattr(api, getattr(mapping, f"{op}_method"))
            return method(**kwargs)
        except ClusterClientError:
            raise
        except Exception as exc:
            # Detect kubernetes ApiException by class name to avoid import
            if type(exc).__name__ == "ApiException":
                status = getattr(exc, "status", None)
                if status == 404:
                    raise NotFoundError(f"{kind} not found: {_describe(kwargs)}") from exc
                if status == 409:
                    raise AlreadyExistsError(
                        f"{kind} already exists: {_describe(kwargs)}",
                    ) from exc
                raise ClusterClientError(
                    f"K8s API error ({status}): {getattr(exc, 'reason', exc)}",
                ) from exc
            raise ClusterClientError(f"K8s client error: {exc}") from exc


def kubernetes_client_factory(env: Environment, cluster_name: str | None = None) -> ClusterClient:
    """Default ClientFactory: one KubernetesClusterClient per target cluster."""
    cluster = _resolve_cluster(env, cluster_name)
    return KubernetesClusterClient(
        kubeconfig=cluster.config.get("kubeconfig"),
        context=cluster.config.get("context") or _default_context(cluster),
        in_cluster=bool(cluster.config.get("inCluster", False)),
    )


# --- Private: helpers ---


def _resolve_cluster(env: Environment, cluster_name: str | None) -> ClusterConfig:
    if cluster_name is None:
        return env.primary_cluster()
    clusters = env.all_clusters()
    if cluster_name in clusters:
        return clusters[cluster_name]
    remotes = env.remote_clusters()
    if cluster_name in remotes:
        return remotes[cluster_name]
    raise ClusterClientError(f"cluster not found in environment: {cluster_name}")


def _default_context(cluster: ClusterConfig) -> str | None:
    if not cluster.name:
        return None
    if cluster.provider == ClusterProvider.KIND:
        return f"kind-{cluster.name}"
    return cluster.name


def _describe(kwargs: dict[str, Any]) -> str:
    if "namespace" in kwargs and "name" in kwargs:
        return f"{kwargs['namespace']}/{kwargs['name']}"
    return str(kwargs.get("name", ""))


def _to_ref(obj: Any) -> ObjectRef:
    meta = obj.metadata
    return ObjectRef(
        name=meta.name or "",
        namespace=meta.namespace or "",
        labels=dict(meta.labels or {}),
        data=dict(getattr(obj, "data", None) or {}),
    )


def _to_workload(obj: Any) -> WorkloadStatus:
    meta = obj.metadata
    spec_replicas = obj.spec.replicas if obj.spec is not None else None
    ready = obj.status.ready_replicas if obj.status is not None else None
    return WorkloadStatus(
        name=meta.name or "",
        namespace=meta.namespace or "",
        replicas=spec_replicas if spec_replicas is not None else 1,
        ready_replicas=ready or 0,
        labels=dict(meta.labels or {}),
    )
