"""Native integration-test executor (``go test``)."""

from __future__ import annotations

from typing import Any

from mesh_harness.errors import ConfigInvalidError
from mesh_harness.execution.executor import (
    CommandTestExecutor,
    positive_int,
    string_list,
    string_map,
)
from mesh_harness.execution.parsing import parse_native_output
from mesh_harness.models import Environment, TestResults, TestType

ENV_PREFIX = "MESH_HARNESS"


class GoExecutor(CommandTestExecutor):
    """Runs ``go test`` with settings from ``config.go``.

    Either ``packages`` (non-empty list) or ``package`` (non-empty string)
    is required.  Cluster and component details are exported to the test
    process as ``MESH_HARNESS_*`` variables.
    """

    test_type = TestType.GO
    section = "go"

    def _validate_section(self, settings: dict[str, Any]) -> None:
        packages = settings.get("packages")
        package = settings.get("package")
        has_packages = isinstance(packages, list)
        has_package = isinstance(package, str)
        if not has_packages and not has_package:
            raise ConfigInvalidError(
                "either 'packages' array or 'package' string must be specified "
                "in go configuration",
            )
        if has_packages and not packages:
            raise ConfigInvalidError("packages array cannot be empty")
        if has_package and not package.strip():
            raise ConfigInvalidError("package cannot be empty")

    def build_command(self, settings: dict[str, Any]) -> list[str]:
        args = ["go", "test"]

        packages = string_list(settings.get("packages"))
        package = settings.get("package")
        if packages:
            args += packages
        elif isinstance(package, str) and package:
            args.append(package)

        if settings.get("verbose") is True:
            args.append("-v")
        timeout = settings.get("timeout")
        if isinstance(timeout, str) and timeout:
            args += ["-timeout", timeout]
        count = positive_int(settings.get("count"))
        if count is not None:
            args += ["-count", str(count)]
        if settings.get("race") is True:
            args.append("-race")
        if settings.get("coverage") is True:
            args.append("-cover")
            profile = settings.get("coverageProfile")
            if isinstance(profile, str) and profile:
                args += ["-coverprofile", profile]

        tags = string_list(settings.get("tags"))
        if tags:
            args += ["-tags", ",".join(tags)]
        for flag in ("run", "skip"):
            pattern = settings.get(flag)
            if isinstance(pattern, str) and pattern:
                args += [f"-{flag}", pattern]
        if settings.get("short") is True:
            args.append("-short")
        bench = settings.get("bench")
        if isinstance(bench, str) and bench:
            args += ["-bench", bench]
            bench_time = settings.get("benchTime")
            if isinstance(bench_time, str) and bench_time:
                args += ["-benchtime", bench_time]
        return args

    def build_env(
        self, settings: dict[str, Any], env: Environment | None,
    ) -> dict[str, str]:
        variables = string_map(settings.get("env"))
        if env is None:
            return variables

        cluster = env.primary_cluster()
        variables[f"{ENV_PREFIX}_CLUSTER_PROVIDER"] = str(cluster.provider)
        variables[f"{ENV_PREFIX}_CLUSTER_NAME"] = cluster.name
        for name, component in env.components.items():
            if not component.enabled:
                continue
            prefix = f"{ENV_PREFIX}_COMPONENT_{name.upper().replace('-', '_')}"
            variables[f"{prefix}_ENABLED"] = "true"
            variables[f"{prefix}_TYPE"] = str(component.type)
            if component.version:
                variables[f"{prefix}_VERSION"] = component.version
        return variables

    def parse_output(self, output: str, failed: bool) -> TestResults:
        return parse_native_output(output, failed)
