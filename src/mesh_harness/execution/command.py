"""CommandRunner: runs an external test tool and captures its combined output.

The process is polled so that a cancelled or expired ``RunContext``
kills it instead of waiting for it to exit on its own.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from mesh_harness.execution.context import RunContext

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.2


@dataclass
class CommandResult:
    """Combined stdout/stderr plus how the process ended.

    ``error`` is empty when the process exited 0.
    """

    output: str
    returncode: int
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


class CommandRunner:
    def __init__(self, poll_interval: float = POLL_INTERVAL) -> None:
        self._poll_interval = poll_interval

    def run(
        self,
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        context: RunContext | None = None,
    ) -> CommandResult:
        """Run *args* to completion. *env* is added on top of ``os.environ``.

        Raises ExecutionCancelledError / ExecutionTimeoutError if *context*
        ends first; the process is killed in that case.
        """
        if context is not None:
            context.raise_if_done()

        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        logger.info("Running command: %s", " ".join(args))
        try:
            proc = subprocess.Popen(
                list(args),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                env=full_env,
                cwd=cwd,
            )
        except OSError as exc:
            return CommandResult(output="", returncode=-1, error=str(exc))

        while True:
            try:
                out, _ = proc.communicate(timeout=self._poll_interval)
            except subprocess.TimeoutExpired:
                if context is not None and context.done:
                    proc.kill()
                    proc.communicate()
                    logger.warning("Killed command after cancellation: %s", args[0])
                    context.raise_if_done()
                continue
            break

        output = out or ""
        if proc.returncode != 0:
            return CommandResult(
                output=output,
                returncode=proc.returncode,
                error=f"exit status {proc.returncode}",
            )
        return CommandResult(output=output, returncode=0)
