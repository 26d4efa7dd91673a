"""TestExecutorFactory: test type -> registered executor."""

from __future__ import annotations

import logging

from mesh_harness.errors import InvalidParameterError
from mesh_harness.execution.browser import CypressExecutor
from mesh_harness.execution.command import CommandRunner
from mesh_harness.execution.context import RunContext
from mesh_harness.execution.executor import TestExecutor
from mesh_harness.execution.native import GoExecutor
from mesh_harness.models import Environment, TestConfig, TestResults, TestType

logger = logging.getLogger(__name__)


class TestExecutorFactory:
    """Holds one executor per test type. Cypress and Go are registered by default."""

    __test__ = False

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._executors: dict[TestType, TestExecutor] = {}
        for executor in (CypressExecutor(runner), GoExecutor(runner)):
            self._executors[executor.type] = executor
            logger.debug("Registered test executor: %s", executor.name)

    def get_executor(self, test_type: TestType | str) -> TestExecutor:
        executor = self._executors.get(test_type)
        if executor is None:
            raise InvalidParameterError(f"no executor registered for test type: {test_type}")
        return executor

    def get_supported_types(self) -> list[TestType]:
        return list(self._executors)

    def is_supported(self, test_type: TestType | str) -> bool:
        return test_type in self._executors

    def register_executor(self, executor: TestExecutor | None) -> None:
        if executor is None:
            raise InvalidParameterError("executor cannot be None")
        if executor.type in self._executors:
            logger.warning("Overriding existing executor for test type: %s", executor.type)
        self._executors[executor.type] = executor
        logger.info("Registered custom test executor: %s (%s)", executor.name, executor.type)

    def execute_test(
        self, env: Environment | None, config: TestConfig, context: RunContext | None = None,
    ) -> TestResults:
        return self.get_executor(config.type).execute(env, config, context)
