"""mesh-harness: provisioning and multi-cluster test orchestration for service mesh environments."""

__version__ = "0.1.0"

from mesh_harness.components.api import ComponentAPI
from mesh_harness.components.factory import ManagerFactory
from mesh_harness.config import dump_config, find_config, load_config
from mesh_harness.errors import ErrorCode, FrameworkError
from mesh_harness.execution.api import TestAPI
from mesh_harness.execution.context import RunContext
from mesh_harness.execution.coordinator import MultiClusterCoordinator
from mesh_harness.models import (
    Component,
    ComponentConfig,
    ComponentStatus,
    ComponentType,
    Environment,
    MultiClusterTestConfig,
    MultiClusterTestResults,
    MultiClusterTestType,
    TestConfig,
    TestResults,
    TestStatus,
    TestType,
)

__all__ = [
    "Component",
    "ComponentAPI",
    "ComponentConfig",
    "ComponentStatus",
    "ComponentType",
    "Environment",
    "ErrorCode",
    "FrameworkError",
    "ManagerFactory",
    "MultiClusterCoordinator",
    "MultiClusterTestConfig",
    "MultiClusterTestResults",
    "MultiClusterTestType",
    "RunContext",
    "TestAPI",
    "TestConfig",
    "TestResults",
    "TestStatus",
    "TestType",
    "__version__",
    "dump_config",
    "find_config",
    "load_config",
]
