"""TestExecutor protocol and the shared run-parse-report flow.

An executor validates a TestConfig, builds an external command, runs it
through a CommandRunner and parses the output into TestResults.  Any
object with the methods below satisfies the protocol.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, ClassVar, Protocol, runtime_checkable

from mesh_harness.errors import (
    ConfigInvalidError,
    InternalError,
    InvalidParameterError,
    TestExecutionFailedError,
)
from mesh_harness.execution.command import CommandRunner
from mesh_harness.execution.context import RunContext
from mesh_harness.models import Environment, TestConfig, TestResults, TestStatus, TestType

logger = logging.getLogger(__name__)


@runtime_checkable
class TestExecutor(Protocol):
    """Runs one single-cluster test campaign."""

    @property
    def name(self) -> str: ...

    @property
    def type(self) -> TestType: ...

    def validate_config(self, config: TestConfig) -> None: ...

    def execute(
        self, env: Environment | None, config: TestConfig, context: RunContext | None = None,
    ) -> TestResults: ...

    def cancel(self, execution_id: str) -> None: ...

    def get_status(self, execution_id: str) -> TestStatus: ...


class CommandTestExecutor:
    """Base for executors that shell out to a test tool.

    Subclasses set ``test_type`` and ``section`` (the key of their settings
    map inside ``TestConfig.config``) and implement ``_validate_section``,
    ``build_command``, ``build_env`` and ``parse_output``.
    """

    __test__ = False

    test_type: ClassVar[TestType]
    section: ClassVar[str]

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._runner = runner or CommandRunner()

    @property
    def name(self) -> str:
        return str(self.test_type)

    @property
    def type(self) -> TestType:
        return self.test_type

    def validate_config(self, config: TestConfig) -> None:
        if config.type != self.test_type:
            raise InvalidParameterError(
                f"invalid test type for {self.name} executor: {config.type}",
            )
        settings = config.config.get(self.section)
        if not isinstance(settings, dict):
            raise ConfigInvalidError(f"{self.section} configuration section is required")
        self._validate_section(settings)

    def execute(
        self, env: Environment | None, config: TestConfig, context: RunContext | None = None,
    ) -> TestResults:
        """Run the campaign and return parsed results.

        A non-zero exit raises TestExecutionFailedError with the parsed
        results under ``context["results"]``.
        """
        self.validate_config(config)
        settings: dict[str, Any] = config.config[self.section]

        args = self.build_command(settings)
        started = time.monotonic()
        logger.info("Starting %s test execution", self.name)
        result = self._runner.run(
            args,
            env=self.build_env(settings, env),
            cwd=working_directory(settings),
            context=context,
        )
        results = self.parse_output(result.output, failed=not result.ok)
        results.duration = time.monotonic() - started
        logger.info("%s execution completed in %.1fs", self.name, results.duration)

        if not result.ok:
            logger.warning("%s execution failed: %s", self.name, result.error)
            raise TestExecutionFailedError(
                f"{self.name} tests failed: {result.error}",
                context={"results": results, "output": result.output},
            )
        return results

    def cancel(self, execution_id: str) -> None:
        raise InternalError(f"{self.name} test cancellation not yet implemented")

    def get_status(self, execution_id: str) -> TestStatus:
        raise InternalError(f"{self.name} test status checking not yet implemented")

    # --- Hooks for subclasses ---

    def _validate_section(self, settings: dict[str, Any]) -> None:
        raise NotImplementedError

    def build_command(self, settings: dict[str, Any]) -> list[str]:
        raise NotImplementedError

    def build_env(
        self, settings: dict[str, Any], env: Environment | None,
    ) -> dict[str, str]:
        raise NotImplementedError

    def parse_output(self, output: str, failed: bool) -> TestResults:
        raise NotImplementedError


def working_directory(settings: dict[str, Any]) -> str:
    workdir = settings.get("workingDir")
    if isinstance(workdir, str) and workdir:
        return workdir
    return os.getcwd()


def string_list(value: Any) -> list[str]:
    """The string items of *value* if it is a list, else nothing."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def string_map(value: Any) -> dict[str, str]:
    """The string-valued entries of *value* if it is a map, else nothing."""
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def positive_int(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None
