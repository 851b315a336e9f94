"""
Outbox of pending remote operations.

Every remote write goes through here instead of being fired and forgotten:
operations are attempted in FIFO order, retried with exponential backoff
while the failure is retryable, and parked in `failed` (with a notification)
once they give up. Parked operations stay until retry_failed() re-queues
them, typically from a manual sync. Operations the server refused outright
go to `rejected` instead: sending them again would be refused again.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from app.core.config import settings
from app.core.exceptions import FoamProError, RemotePersistenceError

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]
Notify = Callable[[str, str], None]


class PendingOperation:
    def __init__(self, name: str, call: Operation, key: Optional[str] = None):
        self.name = name
        self.call = call
        self.key = key
        self.attempts = 0
        self.last_error: Optional[str] = None

    def __repr__(self):
        return f"PendingOperation({self.name!r}, attempts={self.attempts})"


class Outbox:
    def __init__(
        self,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        notify: Optional[Notify] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts if max_attempts is not None else settings.sync_max_attempts
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.sync_backoff_seconds
        self.notify = notify
        self.sleep = sleep
        self.pending: List[PendingOperation] = []
        self.failed: List[PendingOperation] = []
        self.rejected: List[PendingOperation] = []
        self._lock = asyncio.Lock()

    def enqueue(self, name: str, call: Operation, key: Optional[str] = None) -> PendingOperation:
        """
        Queue an operation. With a key, a still-pending operation under the
        same key is replaced (a newer full push supersedes an older one).
        """
        op = PendingOperation(name, call, key)
        if key is not None:
            for i, queued in enumerate(self.pending):
                if queued.key == key:
                    self.pending[i] = op
                    return op
        self.pending.append(op)
        return op

    def retry_failed(self) -> int:
        count = len(self.failed)
        for op in self.failed:
            op.attempts = 0
        self.pending.extend(self.failed)
        self.failed = []
        return count

    def backoff_for(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** (attempt - 1))

    async def _run(self, op: PendingOperation) -> str:
        """Returns "done", "failed" (may be retried later) or "rejected"."""
        while True:
            op.attempts += 1
            try:
                await op.call()
                return "done"
            except RemotePersistenceError as e:
                op.last_error = e.message
                if not e.retryable:
                    logger.error("Remote operation %s rejected: %s", op.name, e.message)
                    return "rejected"
                if op.attempts >= self.max_attempts:
                    logger.error("Remote operation %s failed after %d attempt(s): %s", op.name, op.attempts, e.message)
                    return "failed"
                delay = self.backoff_for(op.attempts)
                logger.warning("Remote operation %s failed (attempt %d), retrying in %.1fs", op.name, op.attempts, delay)
                await self.sleep(delay)
            except FoamProError as e:
                op.last_error = e.message
                logger.error("Remote operation %s rejected: %s", op.name, e.message)
                return "rejected"

    async def drain(self) -> bool:
        """Run everything queued. True when every operation went through."""
        async with self._lock:
            ok = True
            while self.pending:
                op = self.pending.pop(0)
                outcome = await self._run(op)
                if outcome == "done":
                    continue
                ok = False
                if outcome == "rejected":
                    self.rejected.append(op)
                    if self.notify:
                        self.notify("error", f"Server refused {op.name}: {op.last_error}")
                else:
                    self.failed.append(op)
                    if self.notify:
                        self.notify("error", f"Sync failed for {op.name}: {op.last_error}")
            return ok
