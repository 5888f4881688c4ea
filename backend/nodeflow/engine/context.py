"""Per-run execution context and thread-safe cooperative cancellation."""
import asyncio
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from .graph import NodeStatus

if TYPE_CHECKING:
    from ..services.compositor import ImageCompositor
    from ..services.generation import GenerationClient


StatusCallback = Callable[[str, NodeStatus, Optional[str]], None]

T = TypeVar("T")


class RunCancelled(Exception):
    """Raised once a run's :class:`CancellationToken` has fired."""


class CancellationToken:
    """Thread-safe signal for stopping a run from another thread or task."""

    def __init__(self):
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: str | None = None
        # (loop, event) pairs for coroutines currently inside guard()
        self._watchers: list[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        with self._lock:
            return self._reason

    def cancel(self, reason: str | None = None):
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            watchers = list(self._watchers)
        for loop, fired in watchers:
            loop.call_soon_threadsafe(fired.set)

    def raise_if_cancelled(self):
        """For executors doing long work: bail out once the run is cancelled."""
        if self._event.is_set():
            raise RunCancelled(self.reason or "Run cancelled")

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token wins the pending work is cancelled and
        :class:`RunCancelled` is raised.
        """
        loop = asyncio.get_running_loop()
        fired = asyncio.Event()
        watcher = (loop, fired)
        with self._lock:
            self._watchers.append(watcher)
            if self._event.is_set():
                fired.set()

        work = asyncio.ensure_future(awaitable)
        stop = asyncio.ensure_future(fired.wait())
        try:
            done, _ = await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            with self._lock:
                self._watchers.remove(watcher)
            stop.cancel()
            if not work.done():
                work.cancel()
                await asyncio.wait({work})

        if work in done:
            return work.result()
        raise RunCancelled(self.reason or "Run cancelled")


def _ignore_status(node_id: str, status: NodeStatus, message: str | None = None) -> None:
    pass


@dataclass
class ExecutionContext:
    """Everything a run (and every executor in it) needs from the caller.

    Built fresh for each run and never persisted. I/O capabilities are
    injected here so executors can be exercised against fakes.
    """
    backend: str | None = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    on_status: StatusCallback = _ignore_status
    generation: Optional["GenerationClient"] = None
    compositor: Optional["ImageCompositor"] = None
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.cancelled

    def report(self, node_id: str, status: NodeStatus, message: str | None = None) -> None:
        self.on_status(node_id, status, message)
