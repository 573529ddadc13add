"""Long-running server operations shown as cancellable progress.

The server opens a slow task with a ``metals/slowTask`` request and keeps it
pending for as long as the operation runs. Either side may end it:

- the user presses cancel: the client answers ``{"cancel": true}``
- the server finishes: it sends ``$/cancelRequest`` for the pending request,
  which reaches the handler as task cancellation

Each task has one settlement token. Whichever path settles it first wins and
the other becomes a no-op, so the response is produced exactly once and the
elapsed-time ticker is stopped on every exit path.
"""

from __future__ import annotations

import asyncio
import enum
import itertools
from typing import Any, Optional

from metals_client.host import Progress
from metals_client.logging import LogLevel
from metals_client.protocol import ClientCommands, decode_slow_task
from metals_client.session import Session

__all__ = ["readable_seconds", "SlowTaskOutcome", "SlowTask", "SlowTaskTracker"]


def readable_seconds(total_seconds: int) -> str:
    """Format an elapsed-seconds counter for display.

    >>> readable_seconds(45), readable_seconds(60), readable_seconds(65)
    ('45s', '1m', '1m5s')
    """
    minutes, seconds = divmod(total_seconds, 60)
    if minutes > 0:
        if seconds == 0:
            return f"{minutes}m"
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


class SlowTaskOutcome(enum.Enum):
    CANCELLED_BY_USER = "cancelled-by-user"
    COMPLETED_BY_SERVER = "completed-by-server"
    SESSION_CLOSED = "session-closed"


class SlowTask:
    """One in-flight slow task: its label, elapsed counter and settlement token."""

    def __init__(
        self,
        task_id: int,
        message: str,
        seconds_elapsed: int,
        progress: Progress,
        tick_interval: float,
    ) -> None:
        self.task_id = task_id
        self.message = message
        self.seconds = seconds_elapsed
        self._progress = progress
        self._tick_interval = tick_interval
        self._outcome: asyncio.Future = asyncio.get_running_loop().create_future()
        self._ticker: Optional[asyncio.Task] = None

    @property
    def outcome(self) -> Optional[SlowTaskOutcome]:
        if self._outcome.done():
            return self._outcome.result()
        return None

    @property
    def progress(self) -> Progress:
        return self._progress

    @property
    def ticking(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def start(self) -> None:
        self._ticker = asyncio.ensure_future(self._tick())

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self.seconds += 1
            self._progress.report(message=readable_seconds(self.seconds))

    def stop_timer(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()

    def settle(self, outcome: SlowTaskOutcome) -> bool:
        """Settle the task if nobody has yet.

        Returns:
            True if this call settled it
        """
        if self._outcome.done():
            return False
        self.stop_timer()
        self._outcome.set_result(outcome)
        return True

    def cancel_by_user(self) -> bool:
        return self.settle(SlowTaskOutcome.CANCELLED_BY_USER)

    def complete_by_server(self) -> bool:
        return self.settle(SlowTaskOutcome.COMPLETED_BY_SERVER)

    async def wait(self) -> SlowTaskOutcome:
        # shield: cancelling the waiter must not consume the settlement token
        return await asyncio.shield(self._outcome)


class SlowTaskTracker:
    def __init__(self, session: Session) -> None:
        self._host = session.host
        self._logger = session.logger
        self._tick_interval = session.config.tick_interval
        self._completion_delay = session.config.completion_delay
        self._ids = itertools.count(1)
        self._tasks: dict[int, SlowTask] = {}

    @property
    def active_tasks(self) -> list[SlowTask]:
        return list(self._tasks.values())

    def dispose(self) -> None:
        """End every in-flight task because the session is going away.

        Each pending request is answered with a cancel once its handler resumes.
        """
        for task in list(self._tasks.values()):
            if task.settle(SlowTaskOutcome.SESSION_CLOSED):
                self._logger.log(LogLevel.DEBUG, f"Slow task {task.task_id} ended with the session")
            task.stop_timer()
            task.progress.close()

    async def handle(self, params: Any) -> dict:
        """Request handler for ``metals/slowTask``.

        Returns:
            ``{"cancel": True}`` once the user cancels or the session closes,
            ``{"cancel": False}`` after an explicit server completion

        Raises:
            asyncio.CancelledError: Re-raised after the completion display
                when the server ends the task
        """
        request = decode_slow_task(params)
        title = request.message
        if not request.quiet_logs:
            title += (
                f' ([show logs](command:{ClientCommands.TOGGLE_LOGS.value} "Show Metals logs"))'
            )
        progress = self._host.create_progress(title, cancellable=True)
        task = SlowTask(
            next(self._ids), request.message, request.seconds_elapsed, progress, self._tick_interval
        )
        self._tasks[task.task_id] = task
        progress.on_cancel(task.cancel_by_user)
        self._logger.log(LogLevel.DEBUG, f"Slow task {task.task_id} started: {request.message}")
        task.start()

        try:
            try:
                outcome = await task.wait()
            except asyncio.CancelledError:
                # A server cancellation that lost the race still leaves the winner's answer to send
                task.complete_by_server()
                if task.outcome is SlowTaskOutcome.COMPLETED_BY_SERVER:
                    await self._show_completion(task, progress)
                    raise
                outcome = task.outcome
            if outcome is SlowTaskOutcome.COMPLETED_BY_SERVER:
                await self._show_completion(task, progress)
                return {"cancel": False}
        finally:
            task.stop_timer()
            progress.close()
            self._tasks.pop(task.task_id, None)

        if outcome is SlowTaskOutcome.SESSION_CLOSED:
            self._logger.log(LogLevel.DEBUG, f"Slow task abandoned with the session: {request.message}")
        else:
            self._logger.log(LogLevel.INFO, f"Slow task cancelled: {request.message}")
        return {"cancel": True}

    def complete(self, task_id: int) -> bool:
        """End a task from the server side without going through request cancellation."""
        task = self._tasks.get(task_id)
        return task is not None and task.complete_by_server()

    async def _show_completion(self, task: SlowTask, progress: Progress) -> None:
        self._logger.log(LogLevel.DEBUG, f"Slow task {task.task_id} completed by server")
        progress.report(increment=100)
        await asyncio.sleep(self._completion_delay)
