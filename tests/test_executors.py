"""Tests for the test executors, their factory and the command runner.

No test tool is ever launched: executors get a mocked CommandRunner and
the runner tests patch ``subprocess.Popen``.
"""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from conftest import make_single_env

from mesh_harness.errors import (
    ConfigInvalidError,
    ExecutionCancelledError,
    InternalError,
    InvalidParameterError,
    TestExecutionFailedError,
)
from mesh_harness.execution.browser import CypressExecutor
from mesh_harness.execution.command import CommandResult, CommandRunner
from mesh_harness.execution.context import RunContext
from mesh_harness.execution.executor import TestExecutor as ExecutorProtocol
from mesh_harness.execution.factory import TestExecutorFactory
from mesh_harness.execution.native import GoExecutor
from mesh_harness.models import ComponentConfig, TestConfig, TestType


def _runner(output: str = "", returncode: int = 0) -> MagicMock:
    runner = MagicMock(spec=CommandRunner)
    error = "" if returncode == 0 else f"exit status {returncode}"
    runner.run.return_value = CommandResult(output=output, returncode=returncode, error=error)
    return runner


def _cypress(**settings: object) -> TestConfig:
    base = {"baseUrl": "http://localhost:20001", "specPattern": "cypress/e2e/**/*.cy.js"}
    base.update(settings)
    return TestConfig(type="cypress", config={"cypress": base})


def _go(**settings: object) -> TestConfig:
    return TestConfig(type="go", config={"go": settings})


# --- CypressExecutor ---


class TestCypressExecutor:
    def test_satisfies_protocol(self):
        assert isinstance(CypressExecutor(_runner()), ExecutorProtocol)

    def test_type_mismatch(self):
        with pytest.raises(InvalidParameterError, match="invalid test type"):
            CypressExecutor(_runner()).validate_config(_go(package="./..."))

    def test_section_required(self):
        with pytest.raises(ConfigInvalidError, match="cypress configuration section"):
            CypressExecutor(_runner()).validate_config(TestConfig(type="cypress"))

    def test_base_url_required(self):
        with pytest.raises(ConfigInvalidError, match="baseUrl"):
            CypressExecutor(_runner()).validate_config(_cypress(baseUrl=""))

    def test_spec_pattern_required(self):
        with pytest.raises(ConfigInvalidError, match="specPattern"):
            CypressExecutor(_runner()).validate_config(_cypress(specPattern=""))

    def test_build_command(self):
        settings = _cypress(
            browser="chrome",
            record=True,
            recordKey="k1",
            defaultCommandTimeout=4000,
            requestTimeout=0,
            env={"USER": "admin"},
            tags=["@smoke", "@auth"],
            reporter="junit",
            reporterOptions="mochaFile=out.xml",
        ).config["cypress"]
        args = CypressExecutor(_runner()).build_command(settings)
        assert args == [
            "npx", "cypress", "run",
            "--spec", "cypress/e2e/**/*.cy.js",
            "--browser", "chrome",
            "--headless",
            "--record", "--key", "k1",
            "--config", "baseUrl=http://localhost:20001,defaultCommandTimeout=4000",
            "--env", "USER=admin",
            "--grep", "@smoke|@auth",
            "--reporter", "junit",
            "--reporter-options", "mochaFile=out.xml",
        ]

    def test_headed(self):
        args = CypressExecutor(_runner()).build_command({"headless": False})
        assert "--headed" in args
        assert "--headless" not in args

    def test_build_env(self):
        settings = _cypress(env={"user": "admin", "retries": 2}).config["cypress"]
        variables = CypressExecutor(_runner()).build_env(settings, None)
        assert variables == {
            "CYPRESS_BASE_URL": "http://localhost:20001",
            "CYPRESS_USER": "admin",
        }

    def test_execute_parses_output(self, tmp_path):
        runner = _runner("Tests: 10 Passed: 8 Failed: 2 Skipped: 0\nScreenshot: /p/s.png\n")
        results = CypressExecutor(runner).execute(None, _cypress(workingDir=str(tmp_path)))

        assert (results.total, results.passed, results.failed) == (10, 8, 2)
        assert results.artifacts == {"s.png": "/p/s.png"}
        call = runner.run.call_args
        assert call.args[0][:3] == ["npx", "cypress", "run"]
        assert call.kwargs["cwd"] == str(tmp_path)
        assert call.kwargs["env"]["CYPRESS_BASE_URL"] == "http://localhost:20001"

    def test_execute_failure_carries_results(self):
        runner = _runner("Tests: 3 Passed: 1 Failed: 2 Skipped: 0\n", returncode=2)
        with pytest.raises(TestExecutionFailedError, match="cypress tests failed") as exc_info:
            CypressExecutor(runner).execute(None, _cypress())
        assert exc_info.value.context["results"].failed == 2

    def test_execute_validates_before_running(self):
        runner = _runner()
        with pytest.raises(ConfigInvalidError):
            CypressExecutor(runner).execute(None, _cypress(baseUrl=""))
        runner.run.assert_not_called()

    def test_execute_passes_context(self):
        runner = _runner()
        ctx = RunContext()
        CypressExecutor(runner).execute(None, _cypress(), ctx)
        assert runner.run.call_args.kwargs["context"] is ctx

    def test_cancel_not_supported(self):
        with pytest.raises(InternalError, match="not yet implemented"):
            CypressExecutor(_runner()).cancel("exec-1")

    def test_status_not_supported(self):
        with pytest.raises(InternalError, match="not yet implemented"):
            CypressExecutor(_runner()).get_status("exec-1")


# --- GoExecutor ---


class TestGoExecutor:
    def test_package_required(self):
        with pytest.raises(ConfigInvalidError, match="either 'packages' array or 'package'"):
            GoExecutor(_runner()).validate_config(_go(verbose=True))

    def test_empty_packages(self):
        with pytest.raises(ConfigInvalidError, match="packages array cannot be empty"):
            GoExecutor(_runner()).validate_config(_go(packages=[]))

    def test_blank_package(self):
        with pytest.raises(ConfigInvalidError, match="package cannot be empty"):
            GoExecutor(_runner()).validate_config(_go(package="  "))

    def test_build_command(self):
        args = GoExecutor(_runner()).build_command({
            "packages": ["./tests/...", "./e2e"],
            "verbose": True,
            "timeout": "10m",
            "count": 1,
            "race": True,
            "coverage": True,
            "coverageProfile": "cover.out",
            "tags": ["integration", "mesh"],
            "run": "TestFederation",
            "short": True,
        })
        assert args == [
            "go", "test", "./tests/...", "./e2e",
            "-v",
            "-timeout", "10m",
            "-count", "1",
            "-race",
            "-cover", "-coverprofile", "cover.out",
            "-tags", "integration,mesh",
            "-run", "TestFederation",
            "-short",
        ]

    def test_single_package_and_bench(self):
        args = GoExecutor(_runner()).build_command(
            {"package": "./bench", "bench": ".", "benchTime": "5s"},
        )
        assert args == ["go", "test", "./bench", "-bench", ".", "-benchtime", "5s"]

    def test_build_env_exports_environment(self):
        env = make_single_env(components={
            "istio-mesh": ComponentConfig(type="istio", version="1.20.0"),
            "ui": ComponentConfig(type="kiali", version="1.76", enabled=False),
        })
        variables = GoExecutor(_runner()).build_env({"env": {"GOFLAGS": "-mod=mod"}}, env)
        assert variables["GOFLAGS"] == "-mod=mod"
        assert variables["MESH_HARNESS_CLUSTER_NAME"] == "mesh-test"
        assert variables["MESH_HARNESS_CLUSTER_PROVIDER"] == "kind"
        assert variables["MESH_HARNESS_COMPONENT_ISTIO_MESH_ENABLED"] == "true"
        assert variables["MESH_HARNESS_COMPONENT_ISTIO_MESH_VERSION"] == "1.20.0"
        assert not any(key.startswith("MESH_HARNESS_COMPONENT_UI") for key in variables)

    def test_execute_counts_markers(self):
        output = "--- PASS: TestA (0.01s)\n--- PASS: TestB (0.01s)\nok  ./tests 0.1s\n"
        results = GoExecutor(_runner(output)).execute(make_single_env(), _go(package="./tests"))
        assert (results.total, results.passed, results.failed) == (2, 2, 0)

    def test_execute_failure_without_summary(self):
        with pytest.raises(TestExecutionFailedError) as exc_info:
            GoExecutor(_runner("compile error", returncode=1)).execute(
                None, _go(package="./tests"),
            )
        results = exc_info.value.context["results"]
        assert (results.total, results.failed) == (1, 1)

    def test_cancel_not_supported(self):
        with pytest.raises(InternalError):
            GoExecutor(_runner()).cancel("exec-1")


# --- TestExecutorFactory ---


class TestExecutorFactoryTests:
    def test_defaults(self):
        factory = TestExecutorFactory(_runner())
        assert set(factory.get_supported_types()) == {TestType.CYPRESS, TestType.GO}
        assert factory.is_supported("go")
        assert not factory.is_supported(TestType.CUSTOM)
        assert factory.get_executor("cypress").type == TestType.CYPRESS

    def test_unknown_type(self):
        with pytest.raises(InvalidParameterError, match="no executor registered"):
            TestExecutorFactory(_runner()).get_executor(TestType.CUSTOM)

    def test_register_none(self):
        with pytest.raises(InvalidParameterError):
            TestExecutorFactory(_runner()).register_executor(None)

    def test_register_custom_and_override(self):
        factory = TestExecutorFactory(_runner())
        custom = MagicMock()
        custom.type = TestType.CUSTOM
        custom.name = "custom"
        factory.register_executor(custom)
        assert factory.get_executor("custom") is custom

        replacement = GoExecutor(_runner())
        factory.register_executor(replacement)
        assert factory.get_executor(TestType.GO) is replacement

    def test_execute_test_dispatches_by_type(self):
        runner = _runner("PASS: 4, FAIL: 0, SKIP: 0\n")
        results = TestExecutorFactory(runner).execute_test(None, _go(package="./..."))
        assert results.passed == 4


# --- CommandRunner ---


def _process(output: str, returncode: int) -> MagicMock:
    proc = MagicMock()
    proc.communicate.return_value = (output, None)
    proc.returncode = returncode
    return proc


class TestCommandRunner:
    @patch("mesh_harness.execution.command.subprocess.Popen")
    def test_success(self, mock_popen: MagicMock) -> None:
        mock_popen.return_value = _process("ok\n", 0)
        result = CommandRunner().run(["go", "test"], env={"A": "1"}, cwd="/work")

        assert result.ok
        assert result.output == "ok\n"
        kwargs = mock_popen.call_args.kwargs
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["cwd"] == "/work"
        assert kwargs["env"]["A"] == "1"

    @patch("mesh_harness.execution.command.subprocess.Popen")
    def test_no_extra_env_inherits(self, mock_popen: MagicMock) -> None:
        mock_popen.return_value = _process("", 0)
        CommandRunner().run(["true"])
        assert mock_popen.call_args.kwargs["env"] is None

    @patch("mesh_harness.execution.command.subprocess.Popen")
    def test_nonzero_exit(self, mock_popen: MagicMock) -> None:
        mock_popen.return_value = _process("boom", 3)
        result = CommandRunner().run(["go", "test"])
        assert not result.ok
        assert result.returncode == 3
        assert result.error == "exit status 3"
        assert result.output == "boom"

    @patch("mesh_harness.execution.command.subprocess.Popen")
    def test_missing_binary(self, mock_popen: MagicMock) -> None:
        mock_popen.side_effect = FileNotFoundError("npx")
        result = CommandRunner().run(["npx", "cypress", "run"])
        assert result.returncode == -1
        assert "npx" in result.error

    @patch("mesh_harness.execution.command.subprocess.Popen")
    def test_cancelled_before_start(self, mock_popen: MagicMock) -> None:
        ctx = RunContext()
        ctx.cancel()
        with pytest.raises(ExecutionCancelledError):
            CommandRunner().run(["go", "test"], context=ctx)
        mock_popen.assert_not_called()

    @patch("mesh_harness.execution.command.subprocess.Popen")
    def test_cancel_kills_running_process(self, mock_popen: MagicMock) -> None:
        ctx = RunContext()
        proc = MagicMock()

        def communicate(timeout=None):
            if timeout is None:
                return ("", None)
            ctx.cancel()
            raise subprocess.TimeoutExpired(cmd="go", timeout=timeout)

        proc.communicate.side_effect = communicate
        mock_popen.return_value = proc

        with pytest.raises(ExecutionCancelledError):
            CommandRunner(poll_interval=0.01).run(["go", "test"], context=ctx)
        proc.kill.assert_called_once()
