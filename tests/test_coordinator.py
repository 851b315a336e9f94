import asyncio
import json

import httpx

from app.core.exceptions import InvalidTransition, RemotePersistenceError
from app.core.session import SessionContext
from app.sync.cache import LocalCache
from app.sync.coordinator import SyncCoordinator
from app.sync.defaults import merge_over_defaults
from app.sync.outbox import Outbox
from app.sync.transport import HttpTransport


class FakeTransport:
    def __init__(self, remote=None, fail_pull=False, fail_push=0, refuse_completion=False):
        self.remote = remote if remote is not None else {"company_id": "acme", "estimates": []}
        self.fail_pull = fail_pull
        self.fail_push = fail_push
        self.refuse_completion = refuse_completion
        self.pushes = []
        self.completions = []

    async def pull(self):
        if self.fail_pull:
            raise RemotePersistenceError("connection refused")
        return self.remote

    async def push_full(self, snapshot):
        if self.fail_push:
            self.fail_push -= 1
            raise RemotePersistenceError("server unavailable")
        self.pushes.append(snapshot)
        return {"estimates_written": len(snapshot.get("estimates", []))}

    async def confirm_work_order(self, estimate_id, allow_shortage=False, estimate=None):
        return {
            "estimate": {"id": estimate_id, "status": "Work Order", "execution_status": "Not Started"},
            "warehouse": {"open_cell_sets": 6.0, "closed_cell_sets": 6.0, "items": []},
            "stock_deducted": True,
        }

    async def complete_job(self, estimate_id, actuals):
        if self.refuse_completion:
            raise InvalidTransition(estimate_id, "complete", "Invoiced")
        if self.fail_push:
            self.fail_push -= 1
            raise RemotePersistenceError("server unavailable")
        self.completions.append((estimate_id, actuals))
        return {"id": estimate_id, "status": "Work Order", "execution_status": "Completed", "actuals": actuals}


async def no_sleep(_):
    return None


def make(tmp_path, transport, role="admin", debounce=0.01, max_attempts=3):
    return SyncCoordinator(
        transport,
        LocalCache(str(tmp_path)),
        SessionContext(company_id="acme", role=role),
        username="jane",
        debounce_seconds=debounce,
        outbox=Outbox(max_attempts=max_attempts, backoff_seconds=0.5, sleep=no_sleep),
    )


def add_note(text):
    def mutate(state):
        state["profile"]["notes"] = text
    return mutate


def test_merge_over_defaults_keeps_missing_subfields():
    merged = merge_over_defaults({"costs": {"open_cell": 2100}, "profile": None, "pricing_mode": "sqft_pricing"})
    assert merged["costs"]["open_cell"] == 2100
    assert merged["costs"]["closed_cell"] == 2600.0
    assert merged["profile"]["company_name"] == ""
    assert merged["pricing_mode"] == "sqft_pricing"


def test_start_pulls_and_caches(tmp_path):
    transport = FakeTransport({"company_id": "acme", "costs": {"labor_rate": 90}, "estimates": [{"id": "e1"}]})
    coordinator = make(tmp_path, transport)

    state = asyncio.run(coordinator.start())

    assert state["costs"]["labor_rate"] == 90
    assert state["costs"]["open_cell"] == 2000.0
    assert coordinator.status == "success"
    assert not coordinator.offline
    assert LocalCache(str(tmp_path)).read("jane")["estimates"] == [{"id": "e1"}]


def test_start_offline_uses_cache(tmp_path):
    LocalCache(str(tmp_path)).write("jane", {"estimates": [{"id": "cached"}]})
    coordinator = make(tmp_path, FakeTransport(fail_pull=True))

    state = asyncio.run(coordinator.start())

    assert state["estimates"] == [{"id": "cached"}]
    assert coordinator.offline
    assert coordinator.status == "error"
    assert coordinator.notifications == [("error", "Offline Mode: Using local backup.")]


def test_start_offline_without_cache_uses_defaults(tmp_path):
    coordinator = make(tmp_path, FakeTransport(fail_pull=True))

    state = asyncio.run(coordinator.start())

    assert state["estimates"] == []
    assert state["costs"]["labor_rate"] == 85.0
    assert coordinator.notifications == [("error", "Sync Failed. Using Defaults.")]


def test_malformed_cache_is_ignored(tmp_path):
    cache = LocalCache(str(tmp_path))
    cache.write("jane", {})
    with open(cache._path("jane"), "w") as f:
        f.write("{not json")

    assert cache.read("jane") is None


def test_rapid_edits_collapse_into_one_push(tmp_path):
    transport = FakeTransport()
    coordinator = make(tmp_path, transport, debounce=0.05)

    async def scenario():
        await coordinator.start()
        coordinator.record_local_change(add_note("one"))
        coordinator.record_local_change(add_note("two"))
        coordinator.record_local_change(add_note("three"))
        assert coordinator.status == "pending"
        await coordinator.flush()

    asyncio.run(scenario())

    assert len(transport.pushes) == 1
    assert transport.pushes[0]["profile"]["notes"] == "three"
    assert coordinator.status == "success"


def test_every_edit_is_cached_immediately(tmp_path):
    coordinator = make(tmp_path, FakeTransport(), debounce=10)

    async def scenario():
        await coordinator.start()
        coordinator.record_local_change(add_note("draft"))
        cached = LocalCache(str(tmp_path)).read("jane")
        await coordinator.close()
        return cached

    assert asyncio.run(scenario())["profile"]["notes"] == "draft"


def test_crew_never_pushes(tmp_path):
    transport = FakeTransport()
    coordinator = make(tmp_path, transport, role="crew")

    async def scenario():
        await coordinator.start()
        coordinator.record_local_change(add_note("crew edit"))
        await coordinator.flush()
        return await coordinator.manual_sync()

    assert asyncio.run(scenario()) is True
    assert transport.pushes == []
    assert coordinator.status == "success"


def test_unchanged_state_is_not_pushed(tmp_path):
    transport = FakeTransport()
    coordinator = make(tmp_path, transport)

    async def scenario():
        await coordinator.start()
        coordinator.record_local_change(lambda state: None)
        await coordinator.flush()

    asyncio.run(scenario())
    assert transport.pushes == []


def test_manual_sync_skips_debounce(tmp_path):
    transport = FakeTransport()
    coordinator = make(tmp_path, transport, debounce=10)

    async def scenario():
        await coordinator.start()
        coordinator.record_local_change(add_note("urgent"))
        return await coordinator.manual_sync()

    assert asyncio.run(scenario()) is True
    assert len(transport.pushes) == 1
    assert ("success", "Data Synced Successfully!") in coordinator.notifications


def test_push_retries_then_succeeds(tmp_path):
    transport = FakeTransport(fail_push=2)
    coordinator = make(tmp_path, transport, max_attempts=3)

    async def scenario():
        await coordinator.start()
        return await coordinator.manual_sync()

    assert asyncio.run(scenario()) is True
    assert len(transport.pushes) == 1
    assert coordinator.outbox.failed == []


def test_exhausted_push_is_parked_and_retried_on_manual_sync(tmp_path):
    transport = FakeTransport(fail_push=3)
    coordinator = make(tmp_path, transport, max_attempts=3)

    async def scenario():
        await coordinator.start()
        coordinator.record_local_change(add_note("offline edit"))
        await coordinator.flush()
        assert coordinator.status == "error"
        assert len(coordinator.outbox.failed) == 1
        return await coordinator.manual_sync()

    assert asyncio.run(scenario()) is True
    # the parked push and the new one share a key, so only one goes out
    assert [p["profile"]["notes"] for p in transport.pushes] == ["offline edit"]
    assert coordinator.outbox.failed == []
    assert coordinator.notifications[0][0] == "error"


def test_completion_is_queued_while_offline(tmp_path):
    transport = FakeTransport(
        {"estimates": [{"id": "e1", "status": "Work Order", "execution_status": "In Progress"}]},
        fail_push=3,
    )
    coordinator = make(tmp_path, transport, role="crew", max_attempts=3)

    async def scenario():
        await coordinator.start()
        ok = await coordinator.complete_job("e1", {"open_cell_sets": 4.5})
        local = coordinator.state["estimates"][0]["execution_status"]
        coordinator.outbox.retry_failed()
        retried = await coordinator.outbox.drain()
        return ok, local, retried

    ok, local, retried = asyncio.run(scenario())
    assert ok is False
    assert local == "Completed"
    assert retried is True
    assert transport.completions == [("e1", {"open_cell_sets": 4.5})]


def test_backoff_doubles():
    outbox = Outbox(max_attempts=5, backoff_seconds=1.0)
    assert [outbox.backoff_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]


def test_non_retryable_failure_is_not_retried():
    calls = []

    async def rejected():
        calls.append(1)
        raise RemotePersistenceError("422 bad payload", retryable=False)

    outbox = Outbox(max_attempts=5, backoff_seconds=0, sleep=no_sleep)
    outbox.enqueue("bad push", rejected)

    assert asyncio.run(outbox.drain()) is False
    assert len(calls) == 1
    assert outbox.failed == []
    assert len(outbox.rejected) == 1
    assert outbox.retry_failed() == 0


def test_refused_completion_is_not_retried_on_manual_sync(tmp_path):
    transport = FakeTransport(
        {"estimates": [{"id": "e1", "status": "Invoiced", "execution_status": "In Progress"}]},
        refuse_completion=True,
    )
    coordinator = make(tmp_path, transport, role="crew")

    async def scenario():
        await coordinator.start()
        ok = await coordinator.complete_job("e1", {"open_cell_sets": 4.5})
        await coordinator.manual_sync()
        return ok

    assert asyncio.run(scenario()) is False
    assert coordinator.outbox.pending == []
    assert coordinator.outbox.failed == []
    assert [op.name for op in coordinator.outbox.rejected] == ["complete job e1"]


def test_confirm_keeps_other_unpushed_edits(tmp_path):
    transport = FakeTransport({"company_id": "acme", "estimates": [{"id": "e1", "status": "Draft"}]})
    coordinator = make(tmp_path, transport, debounce=0.05)

    async def scenario():
        await coordinator.start()
        coordinator.record_local_change(lambda state: state["profile"].update(company_name="Edited Offline"))
        await coordinator.confirm_work_order("e1")
        await coordinator.flush()

    asyncio.run(scenario())

    assert len(transport.pushes) == 1
    pushed = transport.pushes[0]
    assert pushed["profile"]["company_name"] == "Edited Offline"
    assert pushed["estimates"][0]["status"] == "Work Order"
    assert coordinator.status == "success"


def test_confirm_without_other_edits_does_not_push(tmp_path):
    transport = FakeTransport({"company_id": "acme", "estimates": [{"id": "e1", "status": "Draft"}]})
    coordinator = make(tmp_path, transport)

    async def scenario():
        await coordinator.start()
        await coordinator.confirm_work_order("e1")
        await coordinator.flush()

    asyncio.run(scenario())
    assert transport.pushes == []
    assert coordinator.state["warehouse"]["open_cell_sets"] == 6.0


def test_start_falls_back_when_server_answers_with_html(tmp_path):
    LocalCache(str(tmp_path)).write("jane", {"estimates": [{"id": "cached"}]})

    def captive_portal(request):
        return httpx.Response(200, text="<html>captive portal</html>")

    async def scenario():
        session = SessionContext(company_id="acme", role="admin")
        transport = HttpTransport("http://foampro.test", session, transport=httpx.MockTransport(captive_portal))
        coordinator = SyncCoordinator(transport, LocalCache(str(tmp_path)), session, username="jane")
        try:
            state = await coordinator.start()
        finally:
            await transport.aclose()
        return coordinator, state

    coordinator, state = asyncio.run(scenario())
    assert state["estimates"] == [{"id": "cached"}]
    assert coordinator.offline
    assert coordinator.notifications == [("error", "Offline Mode: Using local backup.")]


def test_cache_round_trip_uses_json(tmp_path):
    cache = LocalCache(str(tmp_path / "nested"))
    cache.write("user@example.com", {"a": 1})
    with open(cache._path("user@example.com")) as f:
        assert json.load(f) == {"a": 1}
