"""Cooperative cancellation handle for long-running work.

A ``RunContext`` is an event plus an optional deadline.  Blocking steps
call ``wait()`` or ``raise_if_done()`` so that ``cancel()`` from another
thread, or the deadline passing, stops them at their next check.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from mesh_harness.errors import ExecutionCancelledError, ExecutionTimeoutError


class RunContext:
    """Cancellation event with an optional monotonic deadline.

    Children created with ``child()`` are cancelled with their parent and
    never outlive the parent's deadline.
    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        _clock: Callable[[], float] = time.monotonic,
        _parent: RunContext | None = None,
    ) -> None:
        self._clock = _clock
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: list[RunContext] = []
        self._parent = _parent

        deadline = None if timeout is None else _clock() + timeout
        if _parent is not None and _parent.deadline is not None:
            deadline = _parent.deadline if deadline is None else min(deadline, _parent.deadline)
        self._deadline = deadline

    @classmethod
    def background(cls) -> RunContext:
        """A context that is never done unless cancelled."""
        return cls()

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def child(self, timeout: float | None = None) -> RunContext:
        """Derive a context that ends no later than this one."""
        ctx = RunContext(timeout, _clock=self._clock, _parent=self)
        with self._lock:
            self._children.append(ctx)
            cancelled = self._event.is_set()
        if cancelled:
            ctx.cancel()
        return ctx

    def cancel(self) -> None:
        with self._lock:
            self._event.set()
            children = list(self._children)
        for ctx in children:
            ctx.cancel()

    def release(self) -> None:
        """Detach from the parent. The parent no longer cancels this context."""
        parent, self._parent = self._parent, None
        if parent is None:
            return
        with parent._lock:
            if self in parent._children:
                parent._children.remove(self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.timed_out

    def remaining(self) -> float | None:
        """Seconds left before the deadline, ``None`` if there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until done or *timeout* elapses. Returns ``done``."""
        limit = self.remaining()
        if timeout is not None:
            limit = timeout if limit is None else min(limit, timeout)
        self._event.wait(limit)
        return self.done

    def raise_if_done(self) -> None:
        if self.cancelled:
            raise ExecutionCancelledError("execution cancelled")
        if self.timed_out:
            raise ExecutionTimeoutError("execution deadline exceeded")
