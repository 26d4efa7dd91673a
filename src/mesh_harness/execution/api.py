"""TestAPI: facade over single-cluster executors and the multi-cluster coordinator."""

from __future__ import annotations

import logging

from mesh_harness.execution.context import RunContext
from mesh_harness.execution.coordinator import MultiClusterCoordinator
from mesh_harness.execution.executor import TestExecutor
from mesh_harness.execution.factory import TestExecutorFactory
from mesh_harness.models import (
    Environment,
    MultiClusterTestConfig,
    MultiClusterTestResults,
    TestConfig,
    TestResults,
    TestStatus,
    TestType,
)

logger = logging.getLogger(__name__)


class TestAPI:
    __test__ = False

    def __init__(
        self,
        factory: TestExecutorFactory | None = None,
        coordinator: MultiClusterCoordinator | None = None,
    ) -> None:
        self.factory = factory or TestExecutorFactory()
        self.coordinator = coordinator or MultiClusterCoordinator()

    # --- Executors ---

    def create_executor(self, test_type: TestType | str) -> TestExecutor:
        return self.factory.get_executor(test_type)

    def get_supported_test_types(self) -> list[TestType]:
        return self.factory.get_supported_types()

    def is_test_type_supported(self, test_type: TestType | str) -> bool:
        return self.factory.is_supported(test_type)

    # --- Single-cluster tests ---

    def execute_test(
        self, env: Environment, config: TestConfig, context: RunContext | None = None,
    ) -> TestResults:
        logger.info("Executing test: %s", config.type)
        executor = self.factory.get_executor(config.type)
        executor.validate_config(config)
        return executor.execute(env, config, context)

    def execute_tests(
        self, env: Environment, context: RunContext | None = None,
    ) -> dict[str, TestResults]:
        """Run every enabled test in ``env.tests``. Stops at the first failure."""
        results: dict[str, TestResults] = {}
        for name, config in env.tests.items():
            if not config.enabled:
                logger.debug("Skipping disabled test: %s", name)
                continue
            logger.info("Executing test: %s (%s)", name, config.type)
            results[name] = self.execute_test(env, config, context)
        return results

    def cancel_test(self, test_type: TestType | str, execution_id: str) -> None:
        self.factory.get_executor(test_type).cancel(execution_id)

    def get_test_status(self, test_type: TestType | str, execution_id: str) -> TestStatus:
        return self.factory.get_executor(test_type).get_status(execution_id)

    # --- Multi-cluster tests ---

    def execute_multi_cluster_test(
        self,
        env: Environment,
        config: MultiClusterTestConfig,
        context: RunContext | None = None,
    ) -> MultiClusterTestResults:
        logger.info("Executing multi-cluster test: %s", config.type)
        return self.coordinator.execute_tests(env, config, context)

    def execute_multi_cluster_tests(
        self, env: Environment, context: RunContext | None = None,
    ) -> dict[str, MultiClusterTestResults]:
        """Run every enabled campaign in ``env.multi_cluster_tests``. Stops at the first failure."""
        results: dict[str, MultiClusterTestResults] = {}
        for name, config in env.multi_cluster_tests.items():
            if not config.enabled:
                logger.debug("Skipping disabled multi-cluster test: %s", name)
                continue
            logger.info("Executing multi-cluster test: %s (%s)", name, config.type)
            results[name] = self.execute_multi_cluster_test(env, config, context)
        return results

    def cancel_multi_cluster_execution(self, execution_id: str) -> None:
        self.coordinator.cancel_execution(execution_id)

    def get_multi_cluster_execution_status(self, execution_id: str) -> TestStatus:
        return self.coordinator.get_execution_status(execution_id)

    def list_active_multi_cluster_executions(self) -> list[str]:
        return self.coordinator.list_active_executions()
