"""Test execution: single-cluster executors and the multi-cluster coordinator."""

from mesh_harness.execution.api import TestAPI
from mesh_harness.execution.command import CommandResult, CommandRunner
from mesh_harness.execution.context import RunContext
from mesh_harness.execution.coordinator import MultiClusterCoordinator, aggregate_results
from mesh_harness.execution.executor import TestExecutor
from mesh_harness.execution.factory import TestExecutorFactory
from mesh_harness.execution.federation import FederationTrafficValidator
from mesh_harness.execution.probes import PlaceholderProber, TrafficProber
from mesh_harness.execution.store import ExecutionStore, MultiClusterExecution

__all__ = [
    "CommandResult",
    "CommandRunner",
    "ExecutionStore",
    "FederationTrafficValidator",
    "MultiClusterCoordinator",
    "MultiClusterExecution",
    "PlaceholderProber",
    "RunContext",
    "TestAPI",
    "TestExecutor",
    "TestExecutorFactory",
    "TrafficProber",
    "aggregate_results",
]
