"""Built-in connectivity providers.

- kubernetes: native NetworkPolicy, discovery Service and DNS ConfigMap
- istio: mesh and traffic-management ConfigMaps in ``istio-system``
- linkerd: mesh and traffic-management ConfigMaps in ``linkerd``
- manual: user-supplied ConfigMaps and Services

Every object created carries ``managed_labels()`` so uninstall can find it
by label.  Cleanup failures are logged and skipped.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Any

from mesh_harness.cluster.client import ClusterClient, ClusterClientError, NotFoundError
from mesh_harness.components.connectivity.types import (
    FRAMEWORK_SELECTOR,
    ConnectivityStatus,
    ConnectivityType,
    managed_labels,
)
from mesh_harness.errors import ConfigInvalidError

logger = logging.getLogger(__name__)

DEFAULT_ALLOW_CIDRS = ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]
DEFAULT_SEARCH_DOMAINS = ["cluster.local"]


def is_valid_cidr(cidr: str) -> bool:
    try:
        ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        return False
    return "/" in cidr


def _enabled(section: Any) -> bool:
    return isinstance(section, dict) and section.get("enabled") is True


# --- Object builders ---


def create_network_policy(
    client: ClusterClient, name: str, namespace: str, allow_cidrs: list[str],
) -> None:
    peers = [{"ipBlock": {"cidr": cidr}} for cidr in allow_cidrs]
    spec = {
        "podSelector": {},
        "policyTypes": ["Ingress", "Egress"],
        "ingress": [{"from": peers}],
        "egress": [{"to": peers}],
    }
    client.create_network_policy(namespace, name, spec, labels=managed_labels())
    logger.info("Created network policy: %s/%s", namespace, name)


def create_service_entry(
    client: ClusterClient,
    name: str,
    namespace: str,
    hosts: list[str],
    ports: list[dict[str, Any]],
) -> None:
    spec = {"type": "ClusterIP", "ports": ports}
    client.create_service(
        namespace,
        name,
        spec,
        labels=managed_labels(**{"connectivity-type": "service-discovery"}),
        annotations={"connectivity-framework/hosts": ",".join(hosts)},
    )
    logger.info("Created service entry: %s/%s", namespace, name)


def create_config_map(
    client: ClusterClient,
    name: str,
    namespace: str,
    data: dict[str, str],
    **extra_labels: str,
) -> None:
    client.create_config_map(namespace, name, data, labels=managed_labels(**extra_labels))
    logger.info("Created config map: %s/%s", namespace, name)


def remove_managed_objects(
    client: ClusterClient, namespace: str | None = None, selector: str = FRAMEWORK_SELECTOR,
) -> None:
    """Delete managed policies, services and config maps. Failures are only logged."""
    kinds = (
        ("network policy", client.list_network_policies, client.delete_network_policy),
        ("service", client.list_services, client.delete_service),
        ("config map", client.list_config_maps, client.delete_config_map),
    )
    for kind, list_fn, delete_fn in kinds:
        try:
            items = list_fn(namespace, selector)
        except NotFoundError:
            continue
        for item in items:
            try:
                delete_fn(item.namespace, item.name)
            except ClusterClientError as exc:
                logger.warning(
                    "Failed to delete %s %s/%s: %s", kind, item.namespace, item.name, exc,
                )


def _count_status(
    client: ClusterClient,
    connectivity_type: ConnectivityType,
    namespace: str | None,
    selector: str = FRAMEWORK_SELECTOR,
) -> ConnectivityStatus:
    status = ConnectivityStatus(type=connectivity_type)
    try:
        status.policies_count = len(client.list_network_policies(namespace, selector))
        status.services_count = len(client.list_services(namespace, selector))
        status.config_maps_count = len(client.list_config_maps(namespace, selector))
    except ClusterClientError as exc:
        status.state = "error"
        status.error_message = str(exc)
        return status
    total = status.policies_count + status.services_count + status.config_maps_count
    status.state = "active" if total else "inactive"
    status.healthy = total > 0
    return status


# --- Providers ---


class KubernetesProvider:
    """Plain Kubernetes networking: policy, discovery service, DNS settings."""

    type = ConnectivityType.KUBERNETES

    def validate_config(self, config: dict[str, Any]) -> None:
        if config.get("networkPolicies") is not True or "allowCIDRs" not in config:
            return
        cidrs = config["allowCIDRs"]
        if not isinstance(cidrs, list):
            raise ConfigInvalidError("allowCIDRs must be a list")
        if not cidrs:
            raise ConfigInvalidError("allowCIDRs cannot be empty when networkPolicies is enabled")
        for cidr in cidrs:
            if not isinstance(cidr, str) or not is_valid_cidr(cidr):
                raise ConfigInvalidError(f"invalid CIDR format: {cidr}")

    def install(self, client: ClusterClient, config: dict[str, Any]) -> None:
        if config.get("networkPolicies") is True:
            cidrs = [c for c in config.get("allowCIDRs") or [] if isinstance(c, str)]
            create_network_policy(
                client, "cross-cluster-traffic", "default", cidrs or list(DEFAULT_ALLOW_CIDRS),
            )
        if config.get("serviceDiscovery") is True:
            create_service_entry(
                client,
                "cross-cluster-discovery",
                "default",
                ["*.cluster.local"],
                [{"name": "http", "port": 80}, {"name": "https", "port": 443}],
            )
        dns = config.get("dns")
        if _enabled(dns):
            domains = [d for d in dns.get("searchDomains") or [] if isinstance(d, str)]
            create_config_map(
                client,
                "cross-cluster-dns",
                "kube-system",
                {
                    "search-domains": ",".join(domains or DEFAULT_SEARCH_DOMAINS),
                    "dns-policy": "ClusterFirst",
                },
            )

    def uninstall(self, client: ClusterClient) -> None:
        remove_managed_objects(client)

    def status(self, client: ClusterClient) -> ConnectivityStatus:
        return _count_status(client, self.type, None)


class IstioProvider:
    """Cross-cluster settings for an Istio mesh."""

    type = ConnectivityType.ISTIO
    namespace = "istio-system"

    def validate_config(self, config: dict[str, Any]) -> None:
        mesh = config.get("serviceMesh")
        if not _enabled(mesh):
            return
        for selector in mesh.get("discoverySelectors") or []:
            if isinstance(selector, dict) and not selector:
                raise ConfigInvalidError("discovery selectors cannot be empty")

    def install(self, client: ClusterClient, config: dict[str, Any]) -> None:
        mesh = config.get("serviceMesh")
        if isinstance(mesh, dict):
            selectors = [
                f"{key}={value}"
                for selector in mesh.get("discoverySelectors") or []
                if isinstance(selector, dict)
                for key, value in selector.items()
            ]
            create_config_map(
                client,
                "istio-mesh-config",
                self.namespace,
                {
                    "discovery-selectors": ",".join(selectors),
                    "mesh-config": "enabled",
                    "cross-cluster": "enabled",
                },
                **{"istio-mesh-config": "true"},
            )
        traffic = config.get("trafficManagement")
        if isinstance(traffic, dict):
            create_config_map(
                client,
                "istio-traffic-config",
                self.namespace,
                {
                    "load-balancing": str(traffic.get("loadBalancing", "ROUND_ROBIN")),
                    "circuit-breaker": str(bool(traffic.get("circuitBreaker", False))).lower(),
                    "traffic-policies": "enabled",
                    "destination-rules": "enabled",
                    "virtual-services": "enabled",
                },
                **{"istio-traffic-config": "true"},
            )

    def uninstall(self, client: ClusterClient) -> None:
        remove_managed_objects(client, self.namespace)

    def status(self, client: ClusterClient) -> ConnectivityStatus:
        return _count_status(client, self.type, self.namespace)


class LinkerdProvider:
    """Cross-cluster settings for a Linkerd mesh."""

    type = ConnectivityType.LINKERD
    namespace = "linkerd"

    def validate_config(self, config: dict[str, Any]) -> None:
        mesh = config.get("serviceMesh")
        if not _enabled(mesh):
            return
        if mesh.get("trustDomain") == "":
            raise ConfigInvalidError("trust domain cannot be empty when service mesh is enabled")

    def install(self, client: ClusterClient, config: dict[str, Any]) -> None:
        mesh = config.get("serviceMesh")
        if isinstance(mesh, dict):
            create_config_map(
                client,
                "linkerd-mesh-config",
                self.namespace,
                {
                    "trust-domain": mesh.get("trustDomain") or "cluster.local",
                    "service-mesh": "enabled",
                    "cross-cluster": "enabled",
                    "identity-issuer": "enabled",
                },
            )
        traffic = config.get("trafficManagement")
        if isinstance(traffic, dict):
            create_config_map(
                client,
                "linkerd-traffic-config",
                self.namespace,
                {
                    "load-balancing": str(traffic.get("loadBalancing", "ewma")),
                    "traffic-splitting": "enabled",
                    "service-profiles": "enabled",
                    "authorization": "enabled",
                },
            )

    def uninstall(self, client: ClusterClient) -> None:
        remove_managed_objects(client, self.namespace)

    def status(self, client: ClusterClient) -> ConnectivityStatus:
        return _count_status(client, self.type, self.namespace)


class ManualProvider:
    """User-supplied config maps (``custom.configurations``) and services (``resources``)."""

    type = ConnectivityType.MANUAL
    namespace = "default"

    def validate_config(self, config: dict[str, Any]) -> None:
        custom = config.get("custom")
        if not _enabled(custom):
            return
        configurations = custom.get("configurations")
        if isinstance(configurations, list) and not configurations:
            raise ConfigInvalidError(
                "custom configurations cannot be empty when custom connectivity is enabled",
            )

    def install(self, client: ClusterClient, config: dict[str, Any]) -> None:
        custom = config.get("custom")
        if isinstance(custom, dict):
            for index, entry in enumerate(custom.get("configurations") or [], start=1):
                if not isinstance(entry, dict):
                    continue
                name = entry.get("name") or f"manual-config-{index}"
                data = {k: str(v) for k, v in entry.items() if k != "name"}
                create_config_map(client, str(name), self.namespace, data)

        for resource in config.get("resources") or []:
            if not isinstance(resource, dict) or resource.get("type") != "service":
                continue
            if not resource.get("name"):
                continue
            ports = [
                {k: p[k] for k in ("name", "port", "targetPort") if k in p}
                for p in resource.get("ports") or []
                if isinstance(p, dict)
            ]
            create_service_entry(
                client,
                str(resource["name"]),
                str(resource.get("namespace") or self.namespace),
                [str(h) for h in resource.get("hosts") or []],
                ports,
            )

    def uninstall(self, client: ClusterClient) -> None:
        remove_managed_objects(client)

    def status(self, client: ClusterClient) -> ConnectivityStatus:
        return _count_status(client, self.type, None)


def default_providers() -> list[Any]:
    return [KubernetesProvider(), IstioProvider(), LinkerdProvider(), ManualProvider()]
