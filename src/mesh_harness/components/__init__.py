"""Component managers and the factory that builds them."""

from mesh_harness.components.api import ComponentAPI
from mesh_harness.components.base import BaseComponentManager, ComponentManager, Step
from mesh_harness.components.factory import SUPPORTED_COMPONENTS, ManagerFactory

__all__ = [
    "SUPPORTED_COMPONENTS",
    "BaseComponentManager",
    "ComponentAPI",
    "ComponentManager",
    "ManagerFactory",
    "Step",
]
