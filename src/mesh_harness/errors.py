"""Error taxonomy for mesh-harness.

Every public failure is a ``FrameworkError`` carrying an ``ErrorCode``.
Callers should branch on the exception class or ``.code``, never on the
message text.
"""

from __future__ import annotations

import enum
from typing import Any


class ErrorCode(enum.StrEnum):
    INVALID_PARAMETER = "INVALID_PARAMETER"
    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_PARSE_FAILED = "CONFIG_PARSE_FAILED"
    CLUSTER_UNHEALTHY = "CLUSTER_UNHEALTHY"
    COMPONENT_INSTALL_FAILED = "COMPONENT_INSTALL_FAILED"
    COMPONENT_UNINSTALL_FAILED = "COMPONENT_UNINSTALL_FAILED"
    COMPONENT_UPDATE_FAILED = "COMPONENT_UPDATE_FAILED"
    TEST_EXECUTION_FAILED = "TEST_EXECUTION_FAILED"
    COMMAND_FAILED = "COMMAND_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class FrameworkError(Exception):
    """Base class for every error raised by mesh-harness."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        if code is not None:
            self.code = code
        self.message = message
        self.cause = cause
        self.context: dict[str, Any] = dict(context or {})
        super().__init__(str(self))
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"[{self.code}] {self.message}: {self.cause}"
        return f"[{self.code}] {self.message}"


class InvalidParameterError(FrameworkError):
    """Unsupported enum value, conflicting selection or too few clusters."""

    code = ErrorCode.INVALID_PARAMETER


class ConfigInvalidError(FrameworkError):
    """Structurally malformed or missing required configuration."""

    code = ErrorCode.CONFIG_INVALID


class ConfigNotFoundError(FrameworkError):
    code = ErrorCode.CONFIG_NOT_FOUND


class ConfigParseError(FrameworkError):
    code = ErrorCode.CONFIG_PARSE_FAILED


class ClusterUnhealthyError(FrameworkError):
    """The cluster control plane could not be reached or queried."""

    code = ErrorCode.CLUSTER_UNHEALTHY


class ComponentInstallFailedError(FrameworkError):
    code = ErrorCode.COMPONENT_INSTALL_FAILED


class ComponentUninstallFailedError(FrameworkError):
    code = ErrorCode.COMPONENT_UNINSTALL_FAILED


class ComponentUpdateFailedError(FrameworkError):
    code = ErrorCode.COMPONENT_UPDATE_FAILED


class TestExecutionFailedError(FrameworkError):
    """A test campaign failed, or an execution id is unknown."""

    __test__ = False
    code = ErrorCode.TEST_EXECUTION_FAILED


class ExecutionCancelledError(TestExecutionFailedError):
    """The run context was cancelled before the work finished."""


class ExecutionTimeoutError(TestExecutionFailedError):
    """The run context deadline passed before the work finished."""


class CommandFailedError(FrameworkError):
    code = ErrorCode.COMMAND_FAILED


class InternalError(FrameworkError):
    """Capability is not implemented. Retrying will not help."""

    code = ErrorCode.INTERNAL_ERROR


_ERROR_CLASSES: dict[ErrorCode, type[FrameworkError]] = {
    ErrorCode.INVALID_PARAMETER: InvalidParameterError,
    ErrorCode.CONFIG_INVALID: ConfigInvalidError,
    ErrorCode.CONFIG_NOT_FOUND: ConfigNotFoundError,
    ErrorCode.CONFIG_PARSE_FAILED: ConfigParseError,
    ErrorCode.CLUSTER_UNHEALTHY: ClusterUnhealthyError,
    ErrorCode.COMPONENT_INSTALL_FAILED: ComponentInstallFailedError,
    ErrorCode.COMPONENT_UNINSTALL_FAILED: ComponentUninstallFailedError,
    ErrorCode.COMPONENT_UPDATE_FAILED: ComponentUpdateFailedError,
    ErrorCode.TEST_EXECUTION_FAILED: TestExecutionFailedError,
    ErrorCode.COMMAND_FAILED: CommandFailedError,
    ErrorCode.INTERNAL_ERROR: InternalError,
}

_RETRYABLE = frozenset({
    ErrorCode.NETWORK_ERROR,
    ErrorCode.CLUSTER_UNHEALTHY,
    ErrorCode.COMMAND_FAILED,
})

_SEVERITY: dict[ErrorCode, str] = {
    ErrorCode.CLUSTER_UNHEALTHY: "critical",
    ErrorCode.INTERNAL_ERROR: "critical",
    ErrorCode.COMPONENT_INSTALL_FAILED: "high",
    ErrorCode.COMPONENT_UNINSTALL_FAILED: "high",
    ErrorCode.COMPONENT_UPDATE_FAILED: "high",
    ErrorCode.TEST_EXECUTION_FAILED: "high",
    ErrorCode.CONFIG_INVALID: "medium",
    ErrorCode.CONFIG_NOT_FOUND: "medium",
    ErrorCode.CONFIG_PARSE_FAILED: "medium",
    ErrorCode.VALIDATION_FAILED: "medium",
    ErrorCode.COMMAND_FAILED: "medium",
    ErrorCode.NETWORK_ERROR: "medium",
}


def new_error(
    code: ErrorCode,
    message: str,
    cause: BaseException | None = None,
    context: dict[str, Any] | None = None,
) -> FrameworkError:
    """Build the ``FrameworkError`` subclass registered for *code*."""
    cls = _ERROR_CLASSES.get(code)
    if cls is None:
        return FrameworkError(message, cause=cause, context=context, code=code)
    return cls(message, cause=cause, context=context)


def wrap_error(
    exc: BaseException,
    code: ErrorCode,
    message: str,
    context: dict[str, Any] | None = None,
) -> FrameworkError:
    """Wrap *exc* as a ``FrameworkError`` of kind *code*."""
    return new_error(code, message, cause=exc, context=context)


def error_code(exc: BaseException) -> ErrorCode:
    """Return the code of a framework error, ``UNKNOWN_ERROR`` otherwise."""
    if isinstance(exc, FrameworkError):
        return exc.code
    return ErrorCode.UNKNOWN_ERROR


def is_retryable(exc: BaseException) -> bool:
    return error_code(exc) in _RETRYABLE


def error_severity(exc: BaseException) -> str:
    """Classify *exc* as ``critical``, ``high``, ``medium`` or ``low``."""
    return _SEVERITY.get(error_code(exc), "low")
