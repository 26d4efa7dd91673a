"""Federation traffic validator.

Runs five checks in a fixed order and records one flag per category:

1. trust domain: federation enabled, trust domain set and long enough
2. certificate exchange: at least two clusters and a CA type configured
3. service mesh connectivity: mesh type and version configured
4. gateway configuration: gateway type and version configured
5. cross-cluster services: connectivity, load balancing and failover
   probes for every ordered pair of clusters

A failing check logs a warning and leaves its flag false.  The validator
never raises for infrastructure problems; it always returns a report.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from mesh_harness.cluster.client import ClusterClientError
from mesh_harness.errors import FrameworkError
from mesh_harness.execution.context import RunContext
from mesh_harness.execution.probes import PlaceholderProber, TrafficProber
from mesh_harness.models import Environment, FederationServiceResult, FederationTestResults

logger = logging.getLogger(__name__)

MIN_TRUST_DOMAIN_LENGTH = 3
KNOWN_TRAFFIC_PATTERNS = frozenset({"http", "grpc", "tcp"})


class CheckFailed(Exception):
    """A validation category did not pass."""


class FederationTrafficValidator:
    def __init__(self, prober: TrafficProber | None = None) -> None:
        self.prober = prober or PlaceholderProber()

    def validate_federation_connectivity(
        self, env: Environment, context: RunContext | None = None,
    ) -> FederationTestResults:
        context = context or RunContext.background()
        logger.info("Starting federation connectivity validation")
        results = FederationTestResults()

        checks: list[tuple[str, Callable[[], None]]] = [
            ("Trust domain validation", lambda: self._validate_trust_domain(env, results)),
            ("Certificate exchange validation",
             lambda: self._validate_certificate_exchange(env, results)),
            ("Service mesh connectivity validation",
             lambda: self._validate_service_mesh(env, results)),
            ("Gateway configuration validation",
             lambda: self._validate_gateway(env, results)),
            ("Cross-cluster service testing",
             lambda: self._test_cross_cluster_services(env, results, context)),
        ]
        for label, check in checks:
            try:
                check()
            except (CheckFailed, FrameworkError, ClusterClientError, OSError) as exc:
                logger.warning("%s failed: %s", label, exc)

        logger.info("Federation connectivity validation completed")
        return results

    def test_traffic_patterns(
        self, env: Environment, patterns: list[str], context: RunContext | None = None,
    ) -> dict[str, bool]:
        """Probe each traffic pattern. Unknown patterns are reported as failing."""
        context = context or RunContext.background()
        outcome: dict[str, bool] = {}
        for pattern in patterns:
            logger.info("Testing traffic pattern: %s", pattern)
            if pattern not in KNOWN_TRAFFIC_PATTERNS:
                logger.warning("Unknown traffic pattern: %s", pattern)
                outcome[pattern] = False
                continue
            outcome[pattern] = self.prober.traffic_pattern(env, pattern, context)
        return outcome

    # --- Private: checks ---

    def _validate_trust_domain(self, env: Environment, results: FederationTestResults) -> None:
        federation = env.federation_config()
        if not federation.enabled:
            raise CheckFailed("federation not enabled")
        if not federation.trust_domain:
            raise CheckFailed("trust domain not configured")
        if len(federation.trust_domain) < MIN_TRUST_DOMAIN_LENGTH:
            raise CheckFailed(f"trust domain too short: {federation.trust_domain}")
        results.trust_domain_validation = True

    def _validate_certificate_exchange(
        self, env: Environment, results: FederationTestResults,
    ) -> None:
        if len(env.all_clusters()) < 2:
            raise CheckFailed("certificate exchange requires at least 2 clusters")
        if not env.federation_config().certificate_authority.type:
            raise CheckFailed("certificate authority not configured")
        results.certificate_exchange = True

    def _validate_service_mesh(self, env: Environment, results: FederationTestResults) -> None:
        mesh = env.federation_config().service_mesh
        if not mesh.type:
            raise CheckFailed("service mesh not configured")
        if not mesh.version:
            raise CheckFailed("service mesh version not specified")
        results.service_mesh_connectivity = True

    def _validate_gateway(self, env: Environment, results: FederationTestResults) -> None:
        gateway = env.network_config().gateway
        if not gateway.type:
            raise CheckFailed("gateway not configured")
        if not gateway.version:
            raise CheckFailed("gateway version not specified")
        results.gateway_configuration = True

    def _test_cross_cluster_services(
        self, env: Environment, results: FederationTestResults, context: RunContext,
    ) -> None:
        names = env.cluster_names()
        for source in names:
            for target in names:
                if source == target:
                    continue
                context.raise_if_done()
                results.cross_cluster_services.append(
                    self._test_service_pair(env, source, target, context),
                )

    def _test_service_pair(
        self, env: Environment, source: str, target: str, context: RunContext,
    ) -> FederationServiceResult:
        result = FederationServiceResult(
            service_name=f"test-service-{source}-to-{target}",
            clusters=[source, target],
            start_time=datetime.now(tz=UTC),
        )
        started = time.monotonic()
        result.connectivity_test = self.prober.connectivity(env, source, target, context)
        result.load_balancing = self.prober.load_balancing(env, source, target, context)
        result.failover_test = self.prober.failover(env, source, target, context)
        result.duration = time.monotonic() - started
        if not result.connectivity_test:
            result.error = "connectivity test failed"
        logger.info(
            "Service connectivity %s: connectivity=%s load_balancing=%s failover=%s",
            result.service_name,
            result.connectivity_test,
            result.load_balancing,
            result.failover_test,
        )
        return result
