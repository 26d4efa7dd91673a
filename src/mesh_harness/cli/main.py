"""mesh-harness CLI.

Commands:
    validate                 Validate the environment description
    components list          Show supported component types
    components status        Probe every declared component
    components install       Install declared components
    components uninstall     Uninstall one component
    test run                 Run single-cluster test campaigns
    test multi-cluster       Run multi-cluster test campaigns
    version                  Print the version
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import click

from mesh_harness import __version__
from mesh_harness.components.api import ComponentAPI
from mesh_harness.config import load_config
from mesh_harness.errors import FrameworkError
from mesh_harness.execution.api import TestAPI
from mesh_harness.execution.coordinator import MultiClusterCoordinator
from mesh_harness.models import ComponentStatus, Environment, TestResults

LOG_LEVELS = ["debug", "info", "warning", "error"]

_STATUS_COLORS = {
    ComponentStatus.INSTALLED: "green",
    ComponentStatus.FAILED: "red",
    ComponentStatus.NOT_INSTALLED: "yellow",
}


def _fail(exc: FrameworkError) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


def _environment(ctx: click.Context) -> Environment:
    """Load (once) and validate the environment for this invocation."""
    obj: dict[str, Any] = ctx.ensure_object(dict)
    if "env" not in obj:
        try:
            env = load_config(obj.get("config_path"))
            env.validate_environment()
        except FrameworkError as e:
            _fail(e)
        obj["env"] = env
        if obj.get("log_level") is None and env.global_settings.log_level.lower() in LOG_LEVELS:
            logging.getLogger().setLevel(env.global_settings.log_level.upper())
    return obj["env"]


def _format_results(results: TestResults) -> str:
    return (
        f"total={results.total} passed={results.passed} "
        f"failed={results.failed} skipped={results.skipped} "
        f"duration={results.duration:.1f}s"
    )


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path", default=None, type=click.Path(dir_okay=False),
    help="Path to mesh-harness.yaml (default: auto-discover)",
)
@click.option(
    "--log-level", type=click.Choice(LOG_LEVELS), default=None,
    help="Log level (default: from config, else info)",
)
@click.option("--verbose", "-v", is_flag=True, help="Shorthand for --log-level debug")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None, verbose: bool) -> None:
    """mesh-harness: provision and test multi-cluster service mesh environments."""
    level = "debug" if verbose else log_level
    logging.basicConfig(
        level=(level or "info").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = level


# --- validate command ---


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate the environment and every enabled component and test."""
    env = _environment(ctx)
    components = ComponentAPI()
    tests = TestAPI()
    coordinator = MultiClusterCoordinator()
    errors: list[str] = []

    def _check(label: str, check: Any) -> None:
        try:
            check()
        except FrameworkError as e:
            errors.append(f"{label}: {e}")
            click.echo(click.style("FAIL", fg="red") + f"  {label}: {e}")
        else:
            click.echo(click.style("OK", fg="green") + f"  {label}")

    for name, component in env.components.items():
        if component.enabled:
            _check(
                f"component {name}",
                lambda c=component: components.create_manager(c.type).validate_config(c),
            )
    for name, test in env.tests.items():
        if test.enabled:
            _check(
                f"test {name}",
                lambda t=test: tests.create_executor(t.type).validate_config(t),
            )
    for name, mc_test in env.multi_cluster_tests.items():
        _check(
            f"multi-cluster test {name}",
            lambda m=mc_test: coordinator.validate_config(m),
        )

    if errors:
        click.echo(f"\n{len(errors)} error(s) found.")
        sys.exit(1)
    clusters = ", ".join(env.cluster_names())
    click.echo(f"\nEnvironment valid (clusters: {clusters}).")


# --- components group ---


@cli.group()
def components() -> None:
    """Component lifecycle commands."""


@components.command("list")
def components_list() -> None:
    """Show supported component types."""
    for component_type in ComponentAPI().get_supported_components():
        click.echo(f"  {component_type}")


@components.command("status")
@click.pass_context
def components_status(ctx: click.Context) -> None:
    """Probe every declared component."""
    env = _environment(ctx)
    statuses = ComponentAPI().get_all_component_statuses(env)
    if not statuses:
        click.echo("No components declared.")
        return
    for name, status in statuses.items():
        color = _STATUS_COLORS.get(status, "white")
        click.echo(f"  {name:<24} " + click.style(str(status), fg=color))


@components.command("install")
@click.argument("names", nargs=-1)
@click.pass_context
def components_install(ctx: click.Context, names: tuple[str, ...]) -> None:
    """Install NAMES (default: every enabled component)."""
    env = _environment(ctx)
    api = ComponentAPI()
    try:
        if not names:
            api.install_components(env)
        for name in names:
            config = env.components.get(name)
            if config is None:
                click.echo(f"Error: component {name} is not declared", err=True)
                sys.exit(1)
            api.install_component(env, config)
    except FrameworkError as e:
        _fail(e)
    click.echo(click.style("Installed", fg="green") + f" {', '.join(names) or 'all components'}")


@components.command("uninstall")
@click.argument("name")
@click.pass_context
def components_uninstall(ctx: click.Context, name: str) -> None:
    """Uninstall component NAME."""
    env = _environment(ctx)
    config = env.components.get(name)
    if config is None:
        click.echo(f"Error: component {name} is not declared", err=True)
        sys.exit(1)
    try:
        ComponentAPI().uninstall_declared_component(env, config)
    except FrameworkError as e:
        _fail(e)
    click.echo(click.style("Uninstalled", fg="green") + f" {name}")


# --- test group ---


@cli.group("test")
def test_group() -> None:
    """Test execution commands."""


@test_group.command("run")
@click.argument("names", nargs=-1)
@click.pass_context
def test_run(ctx: click.Context, names: tuple[str, ...]) -> None:
    """Run single-cluster tests NAMES (default: every enabled test)."""
    env = _environment(ctx)
    api = TestAPI()
    try:
        if names:
            results = {}
            for name in names:
                config = env.tests.get(name)
                if config is None:
                    click.echo(f"Error: test {name} is not declared", err=True)
                    sys.exit(1)
                results[name] = api.execute_test(env, config)
        else:
            results = api.execute_tests(env)
    except FrameworkError as e:
        partial = e.context.get("results")
        if isinstance(partial, TestResults):
            click.echo(click.style("  FAIL", fg="red") + f"  {_format_results(partial)}")
        _fail(e)

    for name, result in results.items():
        label = click.style("  PASS", fg="green") if not result.failed else click.style(
            "  FAIL", fg="red",
        )
        click.echo(f"{label}  {name}: {_format_results(result)}")
    if any(r.failed for r in results.values()):
        sys.exit(1)


@test_group.command("multi-cluster")
@click.argument("names", nargs=-1)
@click.pass_context
def test_multi_cluster(ctx: click.Context, names: tuple[str, ...]) -> None:
    """Run multi-cluster campaigns NAMES (default: every enabled campaign)."""
    env = _environment(ctx)
    api = TestAPI()
    try:
        if names:
            results = {}
            for name in names:
                config = env.multi_cluster_tests.get(name)
                if config is None:
                    click.echo(f"Error: multi-cluster test {name} is not declared", err=True)
                    sys.exit(1)
                results[name] = api.execute_multi_cluster_test(env, config)
        else:
            results = api.execute_multi_cluster_tests(env)
    except FrameworkError as e:
        _fail(e)

    failed = False
    for name, result in results.items():
        overall = result.overall_results
        failed = failed or overall.failed > 0
        label = click.style("  FAIL", fg="red") if overall.failed else click.style(
            "  PASS", fg="green",
        )
        click.echo(f"{label}  {name}: {_format_results(overall)}")
        for cross in result.cross_cluster_results:
            click.echo(f"        {cross.test_name}: {cross.status}")
        if result.federation_results is not None:
            federation = result.federation_results
            click.echo(
                f"        federation: trust_domain={federation.trust_domain_validation} "
                f"certificates={federation.certificate_exchange} "
                f"mesh={federation.service_mesh_connectivity} "
                f"gateway={federation.gateway_configuration}",
            )
    if failed:
        sys.exit(1)


# --- version command ---


@cli.command()
def version() -> None:
    """Print the mesh-harness version."""
    click.echo(f"mesh-harness {__version__}")
