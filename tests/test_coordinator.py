"""Tests for the multi-cluster coordinator, its execution store and aggregation."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from conftest import make_multi_env, make_single_env

from mesh_harness.errors import (
    ConfigInvalidError,
    ExecutionCancelledError,
    ExecutionTimeoutError,
    InvalidParameterError,
    TestExecutionFailedError,
)
from mesh_harness.execution.api import TestAPI
from mesh_harness.execution.context import RunContext
from mesh_harness.execution.coordinator import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    MultiClusterCoordinator,
    aggregate_results,
)
from mesh_harness.execution.probes import PlaceholderProber
from mesh_harness.execution.store import ExecutionStore, MultiClusterExecution
from mesh_harness.models import (
    CrossClusterTestResult,
    MultiClusterTestConfig,
    MultiClusterTestResults,
    RetryPolicy,
    TestResults,
    TestStatus,
)

FIXED_NOW = datetime(2024, 1, 1, tzinfo=UTC)


def _coordinator(prober=None, store=None) -> MultiClusterCoordinator:
    return MultiClusterCoordinator(store=store, prober=prober, clock=lambda: FIXED_NOW)


def _config(kind: str = "traffic", **kwargs) -> MultiClusterTestConfig:
    return MultiClusterTestConfig(type=kind, **kwargs)


# --- validate_config ---


class TestValidateConfig:
    def test_defaults_applied(self):
        normalized = _coordinator().validate_config(_config())
        assert normalized.timeout == DEFAULT_TIMEOUT
        assert normalized.max_concurrency == DEFAULT_MAX_CONCURRENCY
        assert normalized.retry_policy.retry_delay == DEFAULT_RETRY_DELAY
        assert normalized.retry_policy.max_retries == 0

    def test_original_not_mutated(self):
        config = _config()
        _coordinator().validate_config(config)
        assert config.timeout == 0.0

    def test_explicit_values_kept(self):
        normalized = _coordinator().validate_config(_config(
            timeout=60, max_concurrency=5,
            retry_policy=RetryPolicy(max_retries=2, retry_delay=1.5),
        ))
        assert normalized.timeout == 60
        assert normalized.max_concurrency == 5
        assert normalized.retry_policy == RetryPolicy(max_retries=2, retry_delay=1.5)

    def test_negative_retries_clamped(self):
        normalized = _coordinator().validate_config(
            _config(retry_policy=RetryPolicy(max_retries=-1)),
        )
        assert normalized.retry_policy.max_retries == 0

    def test_type_required(self):
        with pytest.raises(ConfigInvalidError, match="type is required"):
            _coordinator().validate_config(MultiClusterTestConfig())

    def test_include_exclude_conflict(self):
        with pytest.raises(ConfigInvalidError, match="both included and excluded"):
            _coordinator().validate_config(_config(clusters=["primary"], exclude_clusters=["primary"]))


# --- get_target_clusters ---


class TestTargetClusters:
    def test_exclude_only(self):
        env = make_multi_env(remotes=("B", "C"))
        env.clusters.primary.name = "A"
        targets = _coordinator().get_target_clusters(env, _config(exclude_clusters=["B"]))
        assert targets == ["A", "C"]

    def test_include_only(self):
        env = make_multi_env(remotes=("B", "C"))
        targets = _coordinator().get_target_clusters(env, _config(clusters=["C", "primary"]))
        assert targets == ["primary", "C"]

    def test_unknown_included_names_ignored(self):
        env = make_multi_env(remotes=("B",))
        targets = _coordinator().get_target_clusters(env, _config(clusters=["Z"]))
        assert targets == []

    def test_single_cluster(self):
        targets = _coordinator().get_target_clusters(make_single_env(), _config())
        assert targets == ["mesh-test"]

    def test_included_and_excluded_rejected_before_selection(self):
        env = make_multi_env(remotes=("B", "C"))
        env.clusters.primary.name = "A"
        with pytest.raises(ConfigInvalidError):
            _coordinator().execute_tests(env, _config(clusters=["A"], exclude_clusters=["A"]))


# --- execute_tests ---


class TestExecuteTests:
    def test_disabled_short_circuits(self):
        prober = MagicMock(spec=PlaceholderProber)
        coordinator = _coordinator(prober)
        results = coordinator.execute_tests(make_multi_env(), _config(enabled=False))

        assert results.total_duration == 0.0
        assert results.start_time == results.end_time == FIXED_NOW
        assert results.overall_results.total == 0
        assert prober.method_calls == []
        assert coordinator.list_active_executions() == []

    def test_traffic_all_ordered_pairs(self):
        results = _coordinator().execute_tests(make_multi_env(), _config("traffic"))

        names = [r.test_name for r in results.cross_cluster_results]
        assert names == [
            "traffic-primary-to-remote-1",
            "traffic-primary-to-remote-2",
            "traffic-remote-1-to-primary",
            "traffic-remote-1-to-remote-2",
            "traffic-remote-2-to-primary",
            "traffic-remote-2-to-remote-1",
        ]
        assert results.overall_results.total == 6
        assert results.overall_results.passed == 6
        assert results.start_time == FIXED_NOW
        assert results.end_time == FIXED_NOW

    def test_traffic_failure_counted(self):
        prober = MagicMock(spec=PlaceholderProber)
        prober.cross_cluster_traffic.side_effect = lambda env, s, t, ctx: t != "remote-2"
        results = _coordinator(prober).execute_tests(make_multi_env(), _config("traffic"))

        assert results.overall_results.passed == 4
        assert results.overall_results.failed == 2
        failed = [r for r in results.cross_cluster_results if r.status == TestStatus.FAILED]
        assert {r.error for r in failed} == {"traffic validation failed"}

    def test_discovery_per_cluster(self):
        prober = MagicMock(spec=PlaceholderProber)
        prober.dns_resolution.side_effect = lambda env, cluster, ctx: cluster != "remote-1"
        results = _coordinator(prober).execute_tests(make_multi_env(), _config("discovery"))

        assert set(results.cluster_results) == {"primary", "remote-1", "remote-2"}
        assert results.cluster_results["remote-1"].failed == 1
        assert results.overall_results.total == 3
        assert results.overall_results.passed == 2

    def test_discovery_allowed_on_single_cluster(self):
        results = _coordinator().execute_tests(make_single_env(), _config("discovery"))
        assert results.cluster_results["mesh-test"].passed == 1

    def test_failover_each_cluster_as_primary(self):
        prober = MagicMock(spec=PlaceholderProber)
        prober.failover_scenario.return_value = True
        results = _coordinator(prober).execute_tests(make_multi_env(), _config("failover"))

        assert [r.source_cluster for r in results.cross_cluster_results] == [
            "primary", "remote-1", "remote-2",
        ]
        assert results.cross_cluster_results[0].target_clusters == ["remote-1", "remote-2"]
        assert prober.failover_scenario.call_count == 3

    def test_load_balance_single_result(self):
        results = _coordinator().execute_tests(make_multi_env(), _config("load-balance"))
        assert len(results.cross_cluster_results) == 1
        result = results.cross_cluster_results[0]
        assert result.source_cluster == "primary"
        assert result.target_clusters == ["remote-1", "remote-2"]
        assert results.overall_results.passed == 1

    def test_federation_report(self):
        results = _coordinator().execute_tests(make_multi_env(), _config("federation"))

        report = results.federation_results
        assert report is not None
        assert report.trust_domain_validation
        assert report.traffic_patterns == {"http": True, "grpc": True, "tcp": True}
        assert len(report.cross_cluster_services) == 6

    @pytest.mark.parametrize("kind", ["federation", "traffic", "failover", "load-balance"])
    def test_insufficient_clusters(self, kind):
        prober = MagicMock(spec=PlaceholderProber)
        coordinator = _coordinator(prober)
        with pytest.raises(InvalidParameterError, match="at least 2 clusters") as exc_info:
            coordinator.execute_tests(make_single_env(), _config(kind))

        assert prober.method_calls == []
        assert coordinator.list_active_executions() == []
        assert isinstance(exc_info.value.context["results"], MultiClusterTestResults)
        assert exc_info.value.context["execution_id"].startswith(f"mc-{kind}-")

    def test_exclusion_can_leave_too_few_clusters(self):
        env = make_multi_env(remotes=("remote-1",))
        with pytest.raises(InvalidParameterError):
            _coordinator().execute_tests(env, _config(exclude_clusters=["remote-1"]))

    def test_store_cleaned_up_after_success(self):
        store = ExecutionStore()
        _coordinator(store=store).execute_tests(make_multi_env(), _config())
        assert len(store) == 0

    def test_timeout_fails_execution(self):
        prober = MagicMock(spec=PlaceholderProber)
        prober.cross_cluster_traffic.return_value = True
        with pytest.raises(ExecutionTimeoutError):
            _coordinator(prober).execute_tests(
                make_multi_env(), _config(timeout=1e-9),
            )

    def test_parent_context_cancellation(self):
        ctx = RunContext()
        ctx.cancel()
        with pytest.raises(ExecutionCancelledError):
            _coordinator().execute_tests(make_multi_env(), _config(), ctx)

    def test_unexpected_probe_error_is_wrapped_and_finalized(self):
        prober = MagicMock(spec=PlaceholderProber)
        prober.cross_cluster_traffic.side_effect = ConnectionError("connection refused")
        store = ExecutionStore()
        with pytest.raises(TestExecutionFailedError) as exc_info:
            _coordinator(prober, store).execute_tests(make_multi_env(), _config())

        error = exc_info.value
        assert isinstance(error.cause, ConnectionError)
        assert error.context["execution_id"].startswith("mc-traffic-")
        results = error.context["results"]
        assert results.end_time == FIXED_NOW
        assert results.total_duration >= 0
        assert len(store) == 0

    def test_federation_campaign_survives_network_errors(self):
        prober = MagicMock(spec=PlaceholderProber)
        prober.connectivity.side_effect = ConnectionError("connection refused")
        prober.traffic_pattern.return_value = True
        results = _coordinator(prober).execute_tests(make_multi_env(), _config("federation"))

        report = results.federation_results
        assert report.trust_domain_validation
        assert report.cross_cluster_services == []
        assert report.traffic_patterns == {"http": True, "grpc": True, "tcp": True}

    def test_execution_contexts_released_from_parent(self):
        parent = RunContext()
        coordinator = _coordinator()
        for _ in range(5):
            coordinator.execute_tests(make_multi_env(), _config(), parent)
        assert parent._children == []


# --- cancellation & status ---


class BlockingProber(PlaceholderProber):
    """Blocks the first traffic probe until its context is done."""

    def __init__(self) -> None:
        self.started = threading.Event()

    def cross_cluster_traffic(self, env, source, target, context):
        self.started.set()
        context.wait(5)
        return True


class TestCancellation:
    def test_cancel_running_execution(self):
        prober = BlockingProber()
        coordinator = _coordinator(prober)
        outcome: dict[str, BaseException] = {}

        def run() -> None:
            try:
                coordinator.execute_tests(make_multi_env(), _config())
            except TestExecutionFailedError as exc:
                outcome["error"] = exc

        thread = threading.Thread(target=run)
        thread.start()
        assert prober.started.wait(5)

        [execution_id] = coordinator.list_active_executions()
        assert coordinator.get_execution_status(execution_id) == TestStatus.RUNNING
        coordinator.cancel_execution(execution_id)
        thread.join(5)

        assert not thread.is_alive()
        assert isinstance(outcome["error"], ExecutionCancelledError)
        assert coordinator.list_active_executions() == []

    def test_cancel_unknown(self):
        with pytest.raises(TestExecutionFailedError, match="not found"):
            _coordinator().cancel_execution("mc-traffic-0-deadbeef")

    def test_status_unknown(self):
        with pytest.raises(TestExecutionFailedError):
            _coordinator().get_execution_status("nope")


class TestExecutionStore:
    def _execution(self, execution_id: str = "mc-traffic-1") -> MultiClusterExecution:
        return MultiClusterExecution(
            id=execution_id,
            config=_config(),
            start_time=FIXED_NOW,
            context=RunContext(),
            status=TestStatus.RUNNING,
        )

    def test_add_and_list(self):
        store = ExecutionStore()
        store.add(self._execution("a"))
        store.add(self._execution("b"))
        assert sorted(store.active_ids()) == ["a", "b"]

    def test_duplicate_id_rejected(self):
        store = ExecutionStore()
        store.add(self._execution())
        with pytest.raises(TestExecutionFailedError, match="already registered"):
            store.add(self._execution())

    def test_cancel_sets_status_and_cancels_context(self):
        store = ExecutionStore()
        execution = self._execution()
        store.add(execution)
        store.cancel(execution.id)

        assert execution.context.cancelled
        assert store.status(execution.id) == TestStatus.CANCELLED

    def test_cancelled_status_is_sticky(self):
        store = ExecutionStore()
        execution = self._execution()
        store.add(execution)
        store.cancel(execution.id)
        assert store.set_status(execution.id, TestStatus.PASSED) == TestStatus.CANCELLED

    def test_remove_is_idempotent(self):
        store = ExecutionStore()
        store.remove("missing")
        assert len(store) == 0


# --- aggregation ---


class TestAggregateResults:
    def test_per_cluster_and_cross_cluster(self):
        results = MultiClusterTestResults(
            cluster_results={
                "a": TestResults(total=5, passed=5, duration=2.0),
                "b": TestResults(total=3, passed=2, failed=1, duration=4.0),
            },
            cross_cluster_results=[
                CrossClusterTestResult(test_name="x", source_cluster="a",
                                       status=TestStatus.PASSED),
                CrossClusterTestResult(test_name="y", source_cluster="b",
                                       status=TestStatus.FAILED),
            ],
        )
        overall = aggregate_results(results)
        assert (overall.total, overall.passed, overall.failed, overall.skipped) == (10, 7, 2, 0)
        assert overall.duration == 4.0
        assert results.overall_results is overall

    def test_skipped_and_pending_cross_results(self):
        results = MultiClusterTestResults(cross_cluster_results=[
            CrossClusterTestResult(test_name="x", source_cluster="a", status=TestStatus.SKIPPED),
            CrossClusterTestResult(test_name="y", source_cluster="a", status=TestStatus.PENDING),
        ])
        overall = aggregate_results(results)
        assert (overall.total, overall.passed, overall.failed, overall.skipped) == (2, 0, 0, 1)


# --- TestAPI (multi-cluster) ---


class TestTestAPIMultiCluster:
    def test_runs_enabled_campaigns(self):
        env = make_multi_env(multi_cluster_tests={
            "traffic": _config("traffic"),
            "off": _config("failover", enabled=False),
            "dns": _config("discovery"),
        })
        api = TestAPI(coordinator=_coordinator())
        results = api.execute_multi_cluster_tests(env)
        assert list(results) == ["traffic", "dns"]
        assert results["dns"].overall_results.total == 3

    def test_stops_at_first_failure(self):
        env = make_single_env(multi_cluster_tests={
            "traffic": _config("traffic"),
            "dns": _config("discovery"),
        })
        with pytest.raises(InvalidParameterError):
            TestAPI(coordinator=_coordinator()).execute_multi_cluster_tests(env)

    def test_execution_queries_delegate(self):
        coordinator = MagicMock(spec=MultiClusterCoordinator)
        coordinator.list_active_executions.return_value = ["mc-1"]
        coordinator.get_execution_status.return_value = TestStatus.RUNNING
        api = TestAPI(coordinator=coordinator)

        assert api.list_active_multi_cluster_executions() == ["mc-1"]
        assert api.get_multi_cluster_execution_status("mc-1") == TestStatus.RUNNING
        api.cancel_multi_cluster_execution("mc-1")
        coordinator.cancel_execution.assert_called_once_with("mc-1")
