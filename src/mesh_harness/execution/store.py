"""In-memory table of running multi-cluster executions.

Entries live only while an execution is in flight.  Every read and write
goes through one lock owned by the store.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime

from mesh_harness.errors import TestExecutionFailedError
from mesh_harness.execution.context import RunContext
from mesh_harness.models import MultiClusterTestConfig, MultiClusterTestResults, TestStatus

logger = logging.getLogger(__name__)


@dataclass
class ClusterExecution:
    """Progress of one target cluster within an execution."""

    cluster_name: str
    status: TestStatus = TestStatus.PENDING
    start_time: datetime | None = None
    end_time: datetime | None = None
    error: str = ""


@dataclass
class MultiClusterExecution:
    id: str
    config: MultiClusterTestConfig
    start_time: datetime
    context: RunContext
    status: TestStatus = TestStatus.PENDING
    results: MultiClusterTestResults = field(default_factory=MultiClusterTestResults)
    cluster_contexts: dict[str, ClusterExecution] = field(default_factory=dict)


class ExecutionStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._executions: dict[str, MultiClusterExecution] = {}

    def add(self, execution: MultiClusterExecution) -> None:
        with self._lock:
            if execution.id in self._executions:
                raise TestExecutionFailedError(f"execution {execution.id} already registered")
            self._executions[execution.id] = execution

    def remove(self, execution_id: str) -> None:
        with self._lock:
            self._executions.pop(execution_id, None)

    def cancel(self, execution_id: str) -> None:
        """Mark *execution_id* CANCELLED and cancel its context."""
        with self._lock:
            execution = self._get(execution_id)
            execution.status = TestStatus.CANCELLED
            context = execution.context
        context.cancel()
        logger.info("Cancelled multi-cluster test execution: %s", execution_id)

    def set_status(self, execution_id: str, status: TestStatus) -> TestStatus:
        """Move to *status* unless already CANCELLED. Returns the resulting status."""
        with self._lock:
            execution = self._get(execution_id)
            if execution.status != TestStatus.CANCELLED:
                execution.status = status
            return execution.status

    def status(self, execution_id: str) -> TestStatus:
        with self._lock:
            return self._get(execution_id).status

    def active_ids(self) -> list[str]:
        with self._lock:
            return list(self._executions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._executions)

    def _get(self, execution_id: str) -> MultiClusterExecution:
        execution = self._executions.get(execution_id)
        if execution is None:
            raise TestExecutionFailedError(f"execution {execution_id} not found")
        return execution
