"""Cross-cluster traffic probes.

The validator and the coordinator ask a ``TrafficProber`` whether traffic
actually flows.  ``PlaceholderProber`` answers yes to everything and is
the default until real traffic generators exist.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from mesh_harness.execution.context import RunContext
from mesh_harness.models import Environment

logger = logging.getLogger(__name__)


@runtime_checkable
class TrafficProber(Protocol):
    """Read-only traffic checks between clusters. Every probe returns pass/fail."""

    def connectivity(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> bool: ...

    def load_balancing(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> bool: ...

    def failover(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> bool: ...

    def traffic_pattern(self, env: Environment, pattern: str, context: RunContext) -> bool: ...

    def cross_cluster_traffic(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> bool: ...

    def dns_resolution(self, env: Environment, cluster: str, context: RunContext) -> bool: ...

    def failover_scenario(
        self, env: Environment, primary: str, backups: list[str], context: RunContext,
    ) -> bool: ...

    def load_distribution(
        self, env: Environment, clusters: list[str], context: RunContext,
    ) -> bool: ...


class PlaceholderProber:
    """Reports every probe as passing without sending traffic."""

    def connectivity(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> bool:
        logger.debug("Connectivity probe %s -> %s (placeholder)", source, target)
        return True

    def load_balancing(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> bool:
        logger.debug("Load balancing probe %s -> %s (placeholder)", source, target)
        return True

    def failover(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> bool:
        logger.debug("Failover probe %s -> %s (placeholder)", source, target)
        return True

    def traffic_pattern(self, env: Environment, pattern: str, context: RunContext) -> bool:
        logger.debug("Traffic pattern probe %s (placeholder)", pattern)
        return True

    def cross_cluster_traffic(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> bool:
        logger.debug("Traffic probe %s -> %s (placeholder)", source, target)
        return True

    def dns_resolution(self, env: Environment, cluster: str, context: RunContext) -> bool:
        logger.debug("DNS resolution probe on %s (placeholder)", cluster)
        return True

    def failover_scenario(
        self, env: Environment, primary: str, backups: list[str], context: RunContext,
    ) -> bool:
        logger.debug("Failover scenario %s -> %s (placeholder)", primary, backups)
        return True

    def load_distribution(
        self, env: Environment, clusters: list[str], context: RunContext,
    ) -> bool:
        logger.debug("Load distribution probe across %s (placeholder)", clusters)
        return True
