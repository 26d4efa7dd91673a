"""MultiClusterCoordinator: runs multi-cluster test campaigns.

Each call to ``execute_tests`` is one execution:

    validate/normalize -> register -> dispatch by kind -> finalize -> unregister

The execution runs under a child RunContext bounded by the configured
timeout.  ``cancel_execution`` cancels that context from another thread;
dispatch loops check it between probes.

``max_concurrency`` and ``retry_policy`` are normalized but dispatch runs
probes sequentially and never retries.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import assert_never

from mesh_harness.errors import (
    ConfigInvalidError,
    ErrorCode,
    ExecutionCancelledError,
    FrameworkError,
    InvalidParameterError,
    wrap_error,
)
from mesh_harness.execution.context import RunContext
from mesh_harness.execution.federation import FederationTrafficValidator
from mesh_harness.execution.probes import PlaceholderProber, TrafficProber
from mesh_harness.execution.store import (
    ClusterExecution,
    ExecutionStore,
    MultiClusterExecution,
)
from mesh_harness.models import (
    CrossClusterTestResult,
    Environment,
    FederationTestResults,
    MultiClusterTestConfig,
    MultiClusterTestResults,
    MultiClusterTestType,
    TestResults,
    TestStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30 * 60.0
DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_RETRY_DELAY = 10.0
TRAFFIC_PATTERNS = ["http", "grpc", "tcp"]


class MultiClusterCoordinator:
    def __init__(
        self,
        store: ExecutionStore | None = None,
        prober: TrafficProber | None = None,
        validator: FederationTrafficValidator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store or ExecutionStore()
        self.prober = prober or PlaceholderProber()
        self.validator = validator or FederationTrafficValidator(self.prober)
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    @property
    def name(self) -> str:
        return "MultiClusterTestCoordinator"

    # --- Public: configuration ---

    def validate_config(self, config: MultiClusterTestConfig) -> MultiClusterTestConfig:
        """Check *config* and return a copy with unset fields defaulted."""
        if not config.type:
            raise ConfigInvalidError("multi-cluster test type is required")
        normalized = config.model_copy(deep=True)
        if not normalized.enabled:
            return normalized

        if normalized.timeout <= 0:
            normalized.timeout = DEFAULT_TIMEOUT
        if normalized.retry_policy.max_retries < 0:
            normalized.retry_policy.max_retries = 0
        if normalized.retry_policy.retry_delay <= 0:
            normalized.retry_policy.retry_delay = DEFAULT_RETRY_DELAY
        if normalized.max_concurrency <= 0:
            normalized.max_concurrency = DEFAULT_MAX_CONCURRENCY

        included = set(normalized.clusters)
        for name in normalized.exclude_clusters:
            if name in included:
                raise ConfigInvalidError(f"cluster {name} cannot be both included and excluded")
        return normalized

    def get_target_clusters(self, env: Environment, config: MultiClusterTestConfig) -> list[str]:
        """Clusters the campaign runs against, primary first."""
        if not env.is_multi_cluster():
            return [env.cluster.name] if env.cluster.name else []

        included = set(config.clusters)
        excluded = set(config.exclude_clusters)
        return [
            name
            for name in env.cluster_names()
            if (not included or name in included) and name not in excluded
        ]

    # --- Public: execution ---

    def execute_tests(
        self,
        env: Environment,
        config: MultiClusterTestConfig,
        context: RunContext | None = None,
    ) -> MultiClusterTestResults:
        """Run one campaign to completion.

        Dispatch failures raise with the finalized results attached as
        ``exc.context["results"]``.
        """
        config = self.validate_config(config)
        if not config.enabled:
            logger.info("Multi-cluster test is disabled, skipping execution")
            now = self._clock()
            return MultiClusterTestResults(start_time=now, end_time=now)

        parent = context or RunContext.background()
        started = self._clock()
        execution = MultiClusterExecution(
            id=self._new_execution_id(config),
            config=config,
            start_time=started,
            context=parent.child(config.timeout),
            status=TestStatus.RUNNING,
            results=MultiClusterTestResults(start_time=started),
        )
        self.store.add(execution)
        logger.info("Starting multi-cluster test execution %s (%s)", execution.id, config.type)

        clock_start = time.monotonic()
        error: FrameworkError | None = None
        status = TestStatus.RUNNING
        try:
            try:
                self._dispatch(env, execution)
            except FrameworkError as exc:
                error = exc
            except Exception as exc:
                error = wrap_error(
                    exc,
                    ErrorCode.TEST_EXECUTION_FAILED,
                    f"execution {execution.id} failed",
                )

            status = self.store.set_status(
                execution.id, TestStatus.FAILED if error else TestStatus.PASSED,
            )
            if status == TestStatus.CANCELLED and error is None:
                error = ExecutionCancelledError(f"execution {execution.id} cancelled")
        finally:
            self.store.remove(execution.id)
            execution.context.cancel()
            execution.context.release()

        results = execution.results
        results.end_time = self._clock()
        results.total_duration = time.monotonic() - clock_start
        for cluster in execution.cluster_contexts.values():
            cluster.end_time = results.end_time
            cluster.status = status
        aggregate_results(results)

        if error is not None:
            logger.error("Multi-cluster test execution %s failed: %s", execution.id, error)
            error.context.setdefault("execution_id", execution.id)
            error.context.setdefault("results", results)
            raise error
        logger.info(
            "Multi-cluster test execution completed: %s (duration: %.1fs)",
            status,
            results.total_duration,
        )
        return results

    def cancel_execution(self, execution_id: str) -> None:
        self.store.cancel(execution_id)

    def get_execution_status(self, execution_id: str) -> TestStatus:
        return self.store.status(execution_id)

    def list_active_executions(self) -> list[str]:
        return self.store.active_ids()

    # --- Private: dispatch ---

    def _dispatch(self, env: Environment, execution: MultiClusterExecution) -> None:
        clusters = self.get_target_clusters(env, execution.config)
        for name in clusters:
            execution.cluster_contexts[name] = ClusterExecution(
                cluster_name=name, status=TestStatus.RUNNING, start_time=self._clock(),
            )

        kind = execution.config.type
        ctx = execution.context
        match kind:
            case MultiClusterTestType.FEDERATION:
                self._require_clusters(clusters, "federation tests")
                self._run_federation(env, execution, ctx)
            case MultiClusterTestType.TRAFFIC:
                self._require_clusters(clusters, "traffic tests")
                self._run_traffic(env, clusters, execution, ctx)
            case MultiClusterTestType.DISCOVERY:
                self._run_discovery(env, clusters, execution, ctx)
            case MultiClusterTestType.FAILOVER:
                self._require_clusters(clusters, "failover tests")
                self._run_failover(env, clusters, execution, ctx)
            case MultiClusterTestType.LOAD_BALANCE:
                self._require_clusters(clusters, "load balancing tests")
                self._run_load_balance(env, clusters, execution, ctx)
            case None:
                raise ConfigInvalidError("multi-cluster test type is required")
            case _:
                assert_never(kind)

    def _run_federation(
        self, env: Environment, execution: MultiClusterExecution, ctx: RunContext,
    ) -> None:
        logger.info("Executing federation tests across clusters")
        execution.results.federation_results = FederationTestResults()
        report = self.validator.validate_federation_connectivity(env, ctx)
        ctx.raise_if_done()
        execution.results.federation_results = report

        logger.info("Testing additional traffic patterns")
        report.traffic_patterns = self.validator.test_traffic_patterns(env, TRAFFIC_PATTERNS, ctx)
        for pattern, passed in report.traffic_patterns.items():
            if passed:
                logger.info("Traffic pattern %s: PASSED", pattern)
            else:
                logger.warning("Traffic pattern %s: FAILED", pattern)
        ctx.raise_if_done()

    def _run_traffic(
        self,
        env: Environment,
        clusters: list[str],
        execution: MultiClusterExecution,
        ctx: RunContext,
    ) -> None:
        logger.info("Executing cross-cluster traffic tests")
        for source in clusters:
            for target in clusters:
                if source == target:
                    continue
                ctx.raise_if_done()
                logger.info("Executing traffic test from %s to %s", source, target)
                started = time.monotonic()
                passed = self.prober.cross_cluster_traffic(env, source, target, ctx)
                execution.results.cross_cluster_results.append(CrossClusterTestResult(
                    test_name=f"traffic-{source}-to-{target}",
                    source_cluster=source,
                    target_clusters=[target],
                    status=TestStatus.PASSED if passed else TestStatus.FAILED,
                    duration=time.monotonic() - started,
                    error="" if passed else "traffic validation failed",
                    traffic_validated=passed,
                    service_discovery=passed,
                ))
        ctx.raise_if_done()

    def _run_discovery(
        self,
        env: Environment,
        clusters: list[str],
        execution: MultiClusterExecution,
        ctx: RunContext,
    ) -> None:
        logger.info("Executing service discovery tests")
        for cluster in clusters:
            ctx.raise_if_done()
            logger.info("Testing DNS resolution for cluster: %s", cluster)
            started = time.monotonic()
            resolved = self.prober.dns_resolution(env, cluster, ctx)
            if not resolved:
                logger.warning("DNS resolution test failed for cluster %s", cluster)
                execution.cluster_contexts[cluster].error = "dns resolution failed"
            execution.results.cluster_results[cluster] = TestResults(
                total=1,
                passed=1 if resolved else 0,
                failed=0 if resolved else 1,
                duration=time.monotonic() - started,
            )
        ctx.raise_if_done()

    def _run_failover(
        self,
        env: Environment,
        clusters: list[str],
        execution: MultiClusterExecution,
        ctx: RunContext,
    ) -> None:
        logger.info("Executing failover tests")
        for primary in clusters:
            ctx.raise_if_done()
            backups = [c for c in clusters if c != primary]
            logger.info("Testing failover from %s to %s", primary, ", ".join(backups))
            started = time.monotonic()
            passed = self.prober.failover_scenario(env, primary, backups, ctx)
            if not passed:
                logger.warning("Failover test failed for primary cluster %s", primary)
            execution.results.cross_cluster_results.append(CrossClusterTestResult(
                test_name=f"failover-{primary}",
                source_cluster=primary,
                target_clusters=backups,
                status=TestStatus.PASSED if passed else TestStatus.FAILED,
                duration=time.monotonic() - started,
                error="" if passed else "failover scenario failed",
                traffic_validated=passed,
            ))
        ctx.raise_if_done()

    def _run_load_balance(
        self,
        env: Environment,
        clusters: list[str],
        execution: MultiClusterExecution,
        ctx: RunContext,
    ) -> None:
        logger.info("Testing load distribution across clusters")
        ctx.raise_if_done()
        started = time.monotonic()
        passed = self.prober.load_distribution(env, clusters, ctx)
        execution.results.cross_cluster_results.append(CrossClusterTestResult(
            test_name="load-balance",
            source_cluster=clusters[0],
            target_clusters=clusters[1:],
            status=TestStatus.PASSED if passed else TestStatus.FAILED,
            duration=time.monotonic() - started,
            error="" if passed else "load distribution uneven",
            traffic_validated=passed,
        ))
        ctx.raise_if_done()

    # --- Private: helpers ---

    @staticmethod
    def _require_clusters(clusters: list[str], what: str) -> None:
        if len(clusters) < 2:
            raise InvalidParameterError(f"{what} require at least 2 clusters")

    @staticmethod
    def _new_execution_id(config: MultiClusterTestConfig) -> str:
        return f"mc-{config.type}-{int(time.time())}-{uuid.uuid4().hex[:8]}"


def aggregate_results(results: MultiClusterTestResults) -> TestResults:
    """Fold per-cluster and cross-cluster results into ``overall_results``.

    Per-cluster counts are summed and the longest per-cluster duration is
    kept.  Each cross-cluster result counts as one test.
    """
    overall = results.overall_results
    for cluster_result in results.cluster_results.values():
        overall.total += cluster_result.total
        overall.passed += cluster_result.passed
        overall.failed += cluster_result.failed
        overall.skipped += cluster_result.skipped
        overall.duration = max(overall.duration, cluster_result.duration)

    for cross in results.cross_cluster_results:
        overall.total += 1
        if cross.status == TestStatus.PASSED:
            overall.passed += 1
        elif cross.status == TestStatus.FAILED:
            overall.failed += 1
        elif cross.status == TestStatus.SKIPPED:
            overall.skipped += 1
    return overall
