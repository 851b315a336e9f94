"""
Client-side sync coordinator.

Keeps a local working copy of the tenant dataset consistent with the server
across intermittent connectivity:

- start(): pull, lay the result over the defaults; on failure fall back to
  the cached snapshot (or defaults) and report offline mode.
- record_local_change(): write the cache immediately and schedule one
  debounced full push; rapid edits collapse into a single push. Crew devices
  never push the bulk dataset.
- manual_sync(): push now, bypassing the debounce (crew: refresh instead).
- Crew completion and work order confirmation go through their dedicated
  server operations, which apply stock deltas server side.

Remote writes run through the Outbox so failures are retried with backoff
and stay visible until they succeed or are given up on.
"""
import asyncio
import copy
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.core.config import settings
from app.core.exceptions import RemotePersistenceError
from app.core.session import SessionContext
from app.sync.cache import LocalCache
from app.sync.defaults import default_snapshot, merge_over_defaults
from app.sync.outbox import Outbox
from app.sync.transport import SyncTransport

logger = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_PENDING = "pending"
STATUS_SYNCING = "syncing"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

PUSH_KEY = "push_full"

Notification = Tuple[str, str]


def _fingerprint(snapshot: Dict[str, Any]) -> str:
    return json.dumps(snapshot, sort_keys=True, default=str)


class SyncCoordinator:
    def __init__(
        self,
        transport: SyncTransport,
        cache: LocalCache,
        session: SessionContext,
        username: str,
        debounce_seconds: Optional[float] = None,
        start_timeout: Optional[float] = None,
        outbox: Optional[Outbox] = None,
        on_notify: Optional[Callable[[str, str], None]] = None,
    ):
        self.transport = transport
        self.cache = cache
        self.session = session
        self.username = username
        self.debounce_seconds = debounce_seconds if debounce_seconds is not None else settings.sync_debounce_seconds
        self.start_timeout = start_timeout if start_timeout is not None else settings.sync_request_timeout
        self.on_notify = on_notify
        self.outbox = outbox or Outbox(notify=self.notify)
        if self.outbox.notify is None:
            self.outbox.notify = self.notify

        self.state: Dict[str, Any] = default_snapshot()
        self.status = STATUS_IDLE
        self.initialized = False
        self.offline = False
        self.notifications: List[Notification] = []
        self._last_synced = ""
        self._push_timer: Optional[asyncio.Task] = None
        self._waiting_to_push = False

    @property
    def push_enabled(self) -> bool:
        return not self.session.is_crew

    def notify(self, level: str, message: str):
        self.notifications.append((level, message))
        if self.on_notify:
            self.on_notify(level, message)

    # ------------------------------------------------------------------
    # Session start
    # ------------------------------------------------------------------

    async def start(self) -> Dict[str, Any]:
        self.status = STATUS_SYNCING
        try:
            remote = await asyncio.wait_for(self.transport.pull(), timeout=self.start_timeout)
            if not remote or not isinstance(remote, dict):
                raise RemotePersistenceError("Empty or malformed response from server")
        except (RemotePersistenceError, asyncio.TimeoutError) as e:
            logger.error("Initial pull failed for %s: %s", self.username, e)
            self._load_fallback()
        else:
            self.state = merge_over_defaults(remote)
            self.offline = False
            self._last_synced = _fingerprint(self.state)
            self.cache.write(self.username, self.state)
            self.status = STATUS_SUCCESS

        self.initialized = True
        return self.state

    def _load_fallback(self):
        self.offline = True
        self.status = STATUS_ERROR
        cached = self.cache.read(self.username)
        if cached is not None:
            self.state = merge_over_defaults(cached)
            self.notify("error", "Offline Mode: Using local backup.")
        else:
            self.state = default_snapshot()
            self.notify("error", "Sync Failed. Using Defaults.")

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def record_local_change(self, mutate: Callable[[Dict[str, Any]], Any]) -> Dict[str, Any]:
        """
        Apply `mutate` to the working copy, write the cache, and schedule
        the debounced push. Must be called from inside the event loop.
        """
        mutate(self.state)
        self.cache.write(self.username, self.state)

        if not self.push_enabled or not self.initialized:
            return self.state
        if _fingerprint(self.state) == self._last_synced:
            return self.state

        self.status = STATUS_PENDING
        self._cancel_scheduled_push()
        self._waiting_to_push = True
        self._push_timer = asyncio.get_running_loop().create_task(self._debounced_push())
        return self.state

    def _cancel_scheduled_push(self):
        """Cancel a push that is still waiting out the debounce window."""
        if self._waiting_to_push and self._push_timer is not None:
            self._push_timer.cancel()
            self._waiting_to_push = False

    async def _debounced_push(self):
        try:
            await asyncio.sleep(self.debounce_seconds)
        except asyncio.CancelledError:
            return
        self._waiting_to_push = False
        await self._push_now()

    async def _push_now(self) -> bool:
        snapshot = copy.deepcopy(self.state)
        fingerprint = _fingerprint(snapshot)

        async def push():
            await self.transport.push_full(snapshot)
            self._last_synced = fingerprint

        self.status = STATUS_SYNCING
        self.outbox.enqueue("full push", push, key=PUSH_KEY)
        ok = await self.outbox.drain()
        self.status = STATUS_SUCCESS if ok else STATUS_ERROR
        if ok:
            self.offline = False
        return ok

    async def flush(self):
        """Wait for a scheduled debounced push to finish."""
        if self._push_timer is not None:
            await asyncio.gather(self._push_timer, return_exceptions=True)

    async def manual_sync(self) -> bool:
        """
        Push immediately, skipping the debounce. Previously failed remote
        operations are re-queued first. Crew devices refresh instead.
        """
        self._cancel_scheduled_push()
        await self.flush()

        if not self.push_enabled:
            return await self.refresh()

        self.outbox.retry_failed()
        ok = await self._push_now()
        if ok:
            self.notify("success", "Data Synced Successfully!")
        else:
            self.notify("error", "Sync Failed. Check Internet.")
        return ok

    async def refresh(self) -> bool:
        """Pull again and replace the working copy (crew sync-down)."""
        self.status = STATUS_SYNCING
        try:
            remote = await self.transport.pull()
        except RemotePersistenceError as e:
            logger.error("Refresh failed for %s: %s", self.username, e.message)
            self.status = STATUS_ERROR
            self.notify("error", "Sync Failed. Check Internet.")
            return False
        self.state = merge_over_defaults(remote)
        self._last_synced = _fingerprint(self.state)
        self.cache.write(self.username, self.state)
        self.status = STATUS_SUCCESS
        self.offline = False
        return True

    async def close(self):
        if self._push_timer is not None and not self._push_timer.done():
            self._push_timer.cancel()
            await asyncio.gather(self._push_timer, return_exceptions=True)

    # ------------------------------------------------------------------
    # Dedicated operations (server applies the stock deltas)
    # ------------------------------------------------------------------

    def _replace_estimate(self, record: Dict[str, Any]):
        estimates = self.state.setdefault("estimates", [])
        for i, existing in enumerate(estimates):
            if existing.get("id") == record.get("id"):
                estimates[i] = record
                break
        else:
            estimates.insert(0, record)

    def _apply_server_result(self, estimate: Dict[str, Any], warehouse: Optional[Dict[str, Any]] = None):
        unpushed = _fingerprint(self.state) != self._last_synced
        self._replace_estimate(estimate)
        if warehouse is not None:
            self.state["warehouse"] = warehouse
        if unpushed:
            # Other local edits have not reached the server yet
            self.record_local_change(lambda state: None)
            return
        self._last_synced = _fingerprint(self.state)
        self.cache.write(self.username, self.state)

    async def confirm_work_order(
        self, estimate_id: str, allow_shortage: bool = False, estimate: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Online only: the reservation is decided against the server's stock.
        InventoryShortage propagates so the caller can ask the user. A
        scheduled push stays scheduled; it carries edits to everything else.
        """
        result = await self.transport.confirm_work_order(estimate_id, allow_shortage, estimate)
        self._apply_server_result(result["estimate"], result.get("warehouse"))
        return result

    async def complete_job(self, estimate_id: str, actuals: Dict[str, Any]) -> bool:
        """
        Crew completion. Applied locally straight away; if the server cannot
        be reached the completion waits in the outbox and is retried.
        """
        for record in self.state.get("estimates", []):
            if record.get("id") == estimate_id:
                record["actuals"] = actuals
                record["execution_status"] = "Completed"
                break
        self.cache.write(self.username, self.state)

        async def send():
            result = await self.transport.complete_job(estimate_id, actuals)
            self._apply_server_result(result)

        self.outbox.enqueue(f"complete job {estimate_id}", send)
        self.status = STATUS_SYNCING
        ok = await self.outbox.drain()
        self.status = STATUS_SUCCESS if ok else STATUS_ERROR
        return ok
