"""ComponentManager protocol and the shared install/uninstall state machine.

Each concrete manager declares its type, a read-only probe (is it there?),
a readiness check (is it healthy?) and ordered provisioning steps.  The
base class drives them:

    install:   validate -> probe -> (skip if present) -> steps in order
    uninstall: probe -> (skip if absent) -> steps in order
    update:    uninstall then install, no rollback

A failing step aborts the remaining ones.  Steps already applied stay in
place.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, ClassVar, Protocol, runtime_checkable

from mesh_harness.cluster.client import (
    AlreadyExistsError,
    ClientFactory,
    ClusterClient,
    ClusterClientError,
    NotFoundError,
    kubernetes_client_factory,
)
from mesh_harness.errors import (
    ClusterUnhealthyError,
    ComponentUpdateFailedError,
    ConfigInvalidError,
    ErrorCode,
    FrameworkError,
    InvalidParameterError,
    new_error,
)
from mesh_harness.execution.context import RunContext
from mesh_harness.models import (
    Component,
    ComponentConfig,
    ComponentStatus,
    ComponentType,
    Environment,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ComponentManager(Protocol):
    """Install, uninstall, inspect and update one kind of component."""

    @property
    def name(self) -> str: ...

    @property
    def type(self) -> ComponentType: ...

    def validate_config(self, config: ComponentConfig) -> None: ...

    def component_name(self, config: ComponentConfig) -> str: ...

    def install(
        self, env: Environment, config: ComponentConfig, context: RunContext | None = None,
    ) -> None: ...

    def uninstall(
        self, env: Environment, name: str, context: RunContext | None = None,
    ) -> None: ...

    def get_status(self, env: Environment, component: Component) -> ComponentStatus: ...

    def update(
        self, env: Environment, config: ComponentConfig, context: RunContext | None = None,
    ) -> None: ...


@dataclass
class Step:
    """One ordered provisioning step. ``description`` reads as 'failed to <description>'."""

    description: str
    run: Callable[[], None]


class BaseComponentManager:
    """Shared lifecycle for component managers.

    Subclasses set ``component_type`` and implement ``_is_installed``,
    ``_is_healthy``, ``_install_steps`` and ``_uninstall_steps``.
    """

    component_type: ClassVar[ComponentType]
    requires_multi_cluster: ClassVar[bool] = False

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client_factory = client_factory or kubernetes_client_factory
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._component: Component | None = None

    @property
    def name(self) -> str:
        return str(self.component_type)

    @property
    def type(self) -> ComponentType:
        return self.component_type

    def component_name(self, config: ComponentConfig) -> str:
        """Name install and uninstall use for *config*."""
        return self._component_name(config.config)

    @property
    def component(self) -> Component | None:
        """Runtime record of the last component this manager touched."""
        return self._component

    # --- Public: lifecycle ---

    def validate_config(self, config: ComponentConfig) -> None:
        if config.type != self.component_type:
            raise ConfigInvalidError(
                f"invalid component type: expected {self.component_type}, got {config.type}",
            )
        if not config.version:
            raise ConfigInvalidError(f"{self.name} version is required")
        self._validate_component_config(config.config)

    def install(
        self, env: Environment, config: ComponentConfig, context: RunContext | None = None,
    ) -> None:
        self.validate_config(config)
        self._require_environment(env, "install")
        target = self._target_cluster(env, config.config)
        client = self._client(env, target)

        if self._probe(client, target):
            logger.warning("%s is already installed, skipping", self.name)
            if self._component is None:
                self._component = self._new_record(config, ComponentStatus.INSTALLED)
            return

        record = self._new_record(config, ComponentStatus.INSTALLING)
        self._component = record
        logger.info("Installing %s %s", self.name, config.version)
        try:
            self._run_steps(
                self._install_steps(env, config, client),
                context,
                ErrorCode.COMPONENT_INSTALL_FAILED,
            )
        except FrameworkError as exc:
            self._mark(record, ComponentStatus.FAILED, str(exc))
            raise
        record.install_time = self._clock()
        self._mark(record, ComponentStatus.INSTALLED)
        logger.info("%s installed successfully", self.name)

    def uninstall(
        self, env: Environment, name: str, context: RunContext | None = None,
    ) -> None:
        self._require_environment(env, "uninstall")
        target = self._uninstall_target(env, name)
        client = self._client(env, target)

        if not self._probe(client, target):
            logger.info("%s is not installed, nothing to uninstall", self.name)
            if self._component is not None:
                self._mark(self._component, ComponentStatus.NOT_INSTALLED)
            return

        record = self._component or Component(
            name=name, type=self.component_type, status=ComponentStatus.INSTALLED,
        )
        self._component = record
        self._mark(record, ComponentStatus.UNINSTALLING)
        logger.info("Uninstalling %s", name)
        try:
            self._run_steps(
                self._uninstall_steps(env, name, client),
                context,
                ErrorCode.COMPONENT_UNINSTALL_FAILED,
            )
        except FrameworkError as exc:
            self._mark(record, ComponentStatus.FAILED, str(exc))
            raise
        record.install_time = None
        self._mark(record, ComponentStatus.NOT_INSTALLED)
        logger.info("%s uninstalled successfully", name)

    def get_status(self, env: Environment, component: Component) -> ComponentStatus:
        """Probe the cluster. Records the result on *component*."""
        if self.requires_multi_cluster and not env.is_multi_cluster():
            return self._record_status(component, ComponentStatus.NOT_INSTALLED)
        return self._record_status(component, self._status_on(env, None))

    def update(
        self, env: Environment, config: ComponentConfig, context: RunContext | None = None,
    ) -> None:
        """Uninstall then install. A failed half is not rolled back."""
        self.validate_config(config)
        name = self._component_name(config.config)
        logger.info("Updating %s to %s", name, config.version)
        try:
            self.uninstall(env, name, context)
        except FrameworkError as exc:
            raise ComponentUpdateFailedError(
                f"failed to uninstall {name} during update", cause=exc,
            ) from exc
        try:
            self.install(env, config, context)
        except FrameworkError as exc:
            raise ComponentUpdateFailedError(
                f"failed to install {name} during update", cause=exc,
            ) from exc

    # --- Hooks for subclasses ---

    def _validate_component_config(self, config: dict[str, Any]) -> None:
        """Check component-specific sections of the free-form config map."""

    def _is_installed(self, client: ClusterClient, target: str | None) -> bool:
        raise NotImplementedError

    def _is_healthy(self, client: ClusterClient, target: str | None) -> bool:
        raise NotImplementedError

    def _install_steps(
        self, env: Environment, config: ComponentConfig, client: ClusterClient,
    ) -> list[Step]:
        raise NotImplementedError

    def _uninstall_steps(
        self, env: Environment, name: str, client: ClusterClient,
    ) -> list[Step]:
        raise NotImplementedError

    def _target_cluster(self, env: Environment, config: dict[str, Any]) -> str | None:
        """Cluster the component lives on. ``None`` means the primary."""
        return None

    def _uninstall_target(self, env: Environment, name: str) -> str | None:
        return None

    def _component_name(self, config: dict[str, Any]) -> str:
        return self.name

    # --- Private: helpers ---

    def _require_environment(self, env: Environment, operation: str) -> None:
        if self.requires_multi_cluster and not env.is_multi_cluster():
            raise InvalidParameterError(
                f"{self.name} {operation} requires multi-cluster environment",
            )

    def _client(self, env: Environment, target: str | None) -> ClusterClient:
        try:
            return self._client_factory(env, target)
        except (ClusterClientError, OSError, ValueError) as exc:
            raise ClusterUnhealthyError("failed to get kubernetes client", cause=exc) from exc

    def _status_on(self, env: Environment, target: str | None) -> ComponentStatus:
        client = self._client(env, target)
        if not self._probe(client, target):
            return ComponentStatus.NOT_INSTALLED
        if self._check_health(client, target):
            return ComponentStatus.INSTALLED
        return ComponentStatus.FAILED

    def _record_status(self, component: Component, status: ComponentStatus) -> ComponentStatus:
        component.status = status
        component.last_check = self._clock()
        return status

    def _probe(self, client: ClusterClient, target: str | None) -> bool:
        try:
            return self._is_installed(client, target)
        except ClusterClientError as exc:
            raise ClusterUnhealthyError(
                f"failed to check {self.name} installation status", cause=exc,
            ) from exc

    def _check_health(self, client: ClusterClient, target: str | None) -> bool:
        try:
            return self._is_healthy(client, target)
        except ClusterClientError as exc:
            raise ClusterUnhealthyError(
                f"failed to check {self.name} health", cause=exc,
            ) from exc

    def _run_steps(
        self, steps: list[Step], context: RunContext | None, code: ErrorCode,
    ) -> None:
        for step in steps:
            try:
                if context is not None:
                    context.raise_if_done()
                logger.debug("%s: %s", self.name, step.description)
                step.run()
            except (FrameworkError, ClusterClientError) as exc:
                raise new_error(
                    code,
                    f"failed to {step.description}",
                    cause=exc,
                    context={"component": self.name, "step": step.description},
                ) from exc

    def _new_record(self, config: ComponentConfig, status: ComponentStatus) -> Component:
        return Component(
            name=self._component_name(config.config),
            type=self.component_type,
            status=status,
            version=config.version,
            config=dict(config.config),
        )

    def _mark(self, record: Component, status: ComponentStatus, error: str = "") -> None:
        record.status = status
        record.error_message = error
        record.last_check = self._clock()


# --- Probe helpers shared by the concrete managers ---


def namespace_exists(client: ClusterClient, name: str) -> bool:
    try:
        client.get_namespace(name)
    except NotFoundError:
        return False
    return True


def deployment_exists(client: ClusterClient, namespace: str, name: str) -> bool:
    try:
        client.get_deployment(namespace, name)
    except NotFoundError:
        return False
    return True


def stateful_set_exists(client: ClusterClient, namespace: str, name: str) -> bool:
    try:
        client.get_stateful_set(namespace, name)
    except NotFoundError:
        return False
    return True


def config_map_exists(client: ClusterClient, namespace: str, name: str) -> bool:
    try:
        client.get_config_map(namespace, name)
    except NotFoundError:
        return False
    return True


def deployment_ready(
    client: ClusterClient, namespace: str, name: str, *, require_replicas: bool = False,
) -> bool:
    """Ready replicas equal desired replicas (and are > 0 when required)."""
    try:
        workload = client.get_deployment(namespace, name)
    except NotFoundError:
        return False
    return workload.is_serving if require_replicas else workload.is_ready


def ensure_namespace(
    client: ClusterClient, name: str, labels: dict[str, str] | None = None,
) -> None:
    """Create *name* unless it already exists."""
    try:
        client.create_namespace(name, labels)
    except AlreadyExistsError:
        logger.debug("Namespace %s already exists", name)


def delete_namespace(client: ClusterClient, name: str) -> None:
    """Delete *name* (cascading). Missing namespaces are ignored."""
    try:
        client.delete_namespace(name)
    except NotFoundError:
        logger.debug("Namespace %s already gone", name)


def placeholder(component: str, action: str) -> Callable[[], None]:
    """A provisioning step with no real installer behind it yet."""

    def _run() -> None:
        logger.info("%s: %s (placeholder, no resources applied)", component, action)

    return _run
