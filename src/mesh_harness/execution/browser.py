"""Browser end-to-end executor (Cypress)."""

from __future__ import annotations

from typing import Any

from mesh_harness.errors import ConfigInvalidError
from mesh_harness.execution.executor import (
    CommandTestExecutor,
    positive_int,
    string_list,
    string_map,
)
from mesh_harness.execution.parsing import parse_browser_output
from mesh_harness.models import Environment, TestResults, TestType


class CypressExecutor(CommandTestExecutor):
    """Runs ``npx cypress run`` with settings from ``config.cypress``.

    Required settings: ``baseUrl`` and ``specPattern``.
    """

    test_type = TestType.CYPRESS
    section = "cypress"

    def _validate_section(self, settings: dict[str, Any]) -> None:
        if not settings.get("baseUrl"):
            raise ConfigInvalidError("baseUrl is required in cypress configuration")
        if not settings.get("specPattern"):
            raise ConfigInvalidError("specPattern is required in cypress configuration")

    def build_command(self, settings: dict[str, Any]) -> list[str]:
        args = ["npx", "cypress", "run"]

        spec = settings.get("specPattern")
        if isinstance(spec, str) and spec:
            args += ["--spec", spec]
        browser = settings.get("browser")
        if isinstance(browser, str) and browser:
            args += ["--browser", browser]
        args.append("--headed" if settings.get("headless") is False else "--headless")

        if settings.get("record") is True:
            args.append("--record")
            key = settings.get("recordKey")
            if isinstance(key, str) and key:
                args += ["--key", key]

        options = []
        base_url = settings.get("baseUrl")
        if isinstance(base_url, str) and base_url:
            options.append(f"baseUrl={base_url}")
        for option in ("defaultCommandTimeout", "requestTimeout"):
            value = positive_int(settings.get(option))
            if value is not None:
                options.append(f"{option}={value}")
        if options:
            args += ["--config", ",".join(options)]

        env_vars = string_map(settings.get("env"))
        if env_vars:
            args += ["--env", ",".join(f"{k}={v}" for k, v in env_vars.items())]

        tags = string_list(settings.get("tags"))
        if tags:
            args += ["--grep", "|".join(tags)]

        reporter = settings.get("reporter")
        if isinstance(reporter, str) and reporter:
            args += ["--reporter", reporter]
            reporter_options = settings.get("reporterOptions")
            if isinstance(reporter_options, str) and reporter_options:
                args += ["--reporter-options", reporter_options]
        return args

    def build_env(
        self, settings: dict[str, Any], env: Environment | None,
    ) -> dict[str, str]:
        variables = {}
        base_url = settings.get("baseUrl")
        if isinstance(base_url, str) and base_url:
            variables["CYPRESS_BASE_URL"] = base_url
        for key, value in string_map(settings.get("env")).items():
            variables[f"CYPRESS_{key.upper()}"] = value
        return variables

    def parse_output(self, output: str, failed: bool) -> TestResults:
        return parse_browser_output(output, failed)
