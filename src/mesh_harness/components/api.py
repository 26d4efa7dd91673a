"""ComponentAPI: environment-level facade over the manager factory."""

from __future__ import annotations

import logging

from mesh_harness.cluster.client import ClientFactory
from mesh_harness.components.base import ComponentManager
from mesh_harness.components.factory import ManagerFactory
from mesh_harness.errors import FrameworkError
from mesh_harness.execution.context import RunContext
from mesh_harness.models import (
    Component,
    ComponentConfig,
    ComponentStatus,
    ComponentType,
    Environment,
)

logger = logging.getLogger(__name__)


class ComponentAPI:
    def __init__(
        self,
        factory: ManagerFactory | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.factory = factory or ManagerFactory(client_factory)

    def create_manager(self, component_type: ComponentType | str) -> ComponentManager:
        return self.factory.create_manager(component_type)

    def get_supported_components(self) -> list[ComponentType]:
        return self.factory.get_supported_components()

    def is_component_supported(self, component_type: ComponentType | str) -> bool:
        return self.factory.is_component_supported(component_type)

    def install_component(
        self, env: Environment, config: ComponentConfig, context: RunContext | None = None,
    ) -> None:
        self.create_manager(config.type).install(env, config, context)

    def uninstall_component(
        self,
        env: Environment,
        component_type: ComponentType | str,
        name: str,
        context: RunContext | None = None,
    ) -> None:
        self.create_manager(component_type).uninstall(env, name, context)

    def uninstall_declared_component(
        self, env: Environment, config: ComponentConfig, context: RunContext | None = None,
    ) -> None:
        """Uninstall a component described by its environment config.

        The uninstall target is derived from *config* the same way install
        derives it, so a remote federation agent is removed from its remote.
        """
        manager = self.create_manager(config.type)
        manager.uninstall(env, manager.component_name(config), context)

    def get_component_status(self, env: Environment, component: Component) -> ComponentStatus:
        return self.create_manager(component.type).get_status(env, component)

    def update_component(
        self, env: Environment, config: ComponentConfig, context: RunContext | None = None,
    ) -> None:
        self.create_manager(config.type).update(env, config, context)

    def install_components(self, env: Environment, context: RunContext | None = None) -> None:
        """Install every enabled component in declaration order. Stops at the first failure."""
        for name, config in env.components.items():
            if not config.enabled:
                logger.info("Skipping disabled component: %s", name)
                continue
            logger.info("Installing component: %s", name)
            self.install_component(env, config, context)

    def get_all_component_statuses(self, env: Environment) -> dict[str, ComponentStatus]:
        """Probe every declared component. A component that cannot be probed reports FAILED."""
        statuses: dict[str, ComponentStatus] = {}
        for name, config in env.components.items():
            component = Component(
                name=name, type=config.type, version=config.version, config=dict(config.config),
            )
            try:
                statuses[name] = self.get_component_status(env, component)
            except FrameworkError as exc:
                logger.warning("Failed to get status for component %s: %s", name, exc)
                statuses[name] = ComponentStatus.FAILED
        return statuses
