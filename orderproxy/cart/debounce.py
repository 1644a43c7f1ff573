"""Trailing-edge debouncer on top of an anyio task group."""

from types import TracebackType
from typing import Awaitable, Callable, Optional, Type

import anyio
from anyio.abc import TaskGroup

from ..logging import LogEvent, LogRecord, debug, warning


class Debouncer:
    """Run *callback* once, *delay* seconds after the last :meth:`schedule` call.

    Each call to :meth:`schedule` cancels the pending run and starts a new
    one, so there is never more than one waiting. Use as an async context
    manager; outside of it :meth:`schedule` only marks work as pending and
    :meth:`flush` must be awaited explicitly.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]):
        self.delay = delay
        self._callback = callback
        self._task_group: Optional[TaskGroup] = None
        self._scope: Optional[anyio.CancelScope] = None
        self.pending = False

    async def __aenter__(self) -> "Debouncer":
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> Optional[bool]:
        self.cancel()
        task_group, self._task_group = self._task_group, None
        if task_group is None:
            raise RuntimeError("Debouncer exited without being entered")
        return await task_group.__aexit__(exc_type, exc, tb)

    @property
    def running(self) -> bool:
        return self._task_group is not None

    def schedule(self) -> None:
        self.pending = True
        if self._task_group is None:
            return
        if self._scope is not None:
            self._scope.cancel()
        scope = anyio.CancelScope()
        self._scope = scope
        self._task_group.start_soon(self._run, scope)

    def cancel(self) -> None:
        if self._scope is not None:
            self._scope.cancel()
            self._scope = None

    async def _run(self, scope: anyio.CancelScope) -> None:
        with scope:
            await anyio.sleep(self.delay)
            await self._invoke()
        if self._scope is scope:
            self._scope = None

    async def _invoke(self) -> None:
        self.pending = False
        try:
            await self._callback()
        except Exception as e:
            # Background work; the next schedule() retries
            warning(
                LogRecord(
                    event=LogEvent.DISCOUNT_EVENT.value,
                    message="Debounced callback failed",
                ),
                exc=e,
            )

    async def flush(self) -> None:
        """Cancel any waiting run and invoke the callback now."""
        self.cancel()
        debug(
            LogRecord(event=LogEvent.DISCOUNT_EVENT.value, message="Debouncer flushed")
        )
        await self._invoke()
