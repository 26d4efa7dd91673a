from mesh_harness.cluster.client import (
    AlreadyExistsError,
    ClientFactory,
    ClusterClient,
    ClusterClientError,
    KubernetesClusterClient,
    NotFoundError,
    ObjectRef,
    WorkloadStatus,
    kubernetes_client_factory,
)

__all__ = [
    "AlreadyExistsError",
    "ClientFactory",
    "ClusterClient",
    "ClusterClientError",
    "KubernetesClusterClient",
    "NotFoundError",
    "ObjectRef",
    "WorkloadStatus",
    "kubernetes_client_factory",
]
