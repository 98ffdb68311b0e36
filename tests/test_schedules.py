"""
Tests for schedule registration against an in-memory schedule client.
"""

import re
from datetime import timedelta
from types import SimpleNamespace

import pytest
from temporalio.client import ScheduleAlreadyRunningError
from temporalio.service import RPCError, RPCStatusCode

from domain_lifecycle.config import AppConfig, LoopConfig, TemporalConfig
from domain_lifecycle.models import LoopInput
from domain_lifecycle.schedules import (
    SCHEDULES,
    ScheduleDefinition,
    delete_schedules,
    get_definitions,
    list_schedules,
    loop_input_for,
    register_schedules,
    task_queue_for,
    upsert_schedule,
)


class FakeScheduleHandle:
    def __init__(self, client, schedule_id):
        self.client = client
        self.id = schedule_id

    def _require(self):
        if self.id not in self.client.schedules:
            raise RPCError("schedule not found", RPCStatusCode.NOT_FOUND, b"")

    async def describe(self):
        self._require()
        return SimpleNamespace(schedule=self.client.schedules[self.id])

    async def update(self, updater):
        self._require()
        self.client.schedules[self.id] = updater(None).schedule
        self.client.updates.append(self.id)

    async def delete(self):
        self._require()
        del self.client.schedules[self.id]


class FakeScheduleClient:
    """Just enough of the schedule API for registration."""

    def __init__(self):
        self.schedules = {}
        self.updates = []

    async def create_schedule(self, schedule_id, schedule):
        if schedule_id in self.schedules:
            raise ScheduleAlreadyRunningError()
        self.schedules[schedule_id] = schedule

    def get_schedule_handle(self, schedule_id):
        return FakeScheduleHandle(self, schedule_id)

    async def list_schedules(self):
        async def entries():
            for schedule_id in list(self.schedules):
                yield SimpleNamespace(id=schedule_id)
        return entries()


@pytest.fixture
def schedule_client():
    return FakeScheduleClient()


class TestDefinitions:
    """Tests for schedule definitions."""

    def test_known_schedules(self):
        """Every workflow has a schedule with its interval and offset."""
        by_name = {d.name: d for d in SCHEDULES}
        assert by_name["expiry"].every == timedelta(hours=1)
        assert by_name["expiry"].offset == timedelta(0)
        assert by_name["purge"].offset == timedelta(minutes=30)
        assert by_name["restore"].offset == timedelta(minutes=15)
        assert by_name["sync_registrars"].every == timedelta(hours=24)
        assert by_name["sync_registrars"].offset == timedelta(hours=2)
        assert by_name["update_fx"].workflow == "UpdateFX"

    def test_stable_ids(self):
        """Ids depend only on the definition and queue."""
        definition = get_definitions(["expiry"])[0]
        first = definition.schedule_id("lifecycle")
        assert first == definition.schedule_id("lifecycle")
        assert re.match(r"^expiry_schedule_[0-9a-f]{12}$", first)
        assert first != definition.schedule_id("other-queue")
        assert definition.workflow_id("lifecycle").startswith("expiry_workflow_")

    def test_unknown_name(self):
        """Unknown schedule names are rejected."""
        with pytest.raises(ValueError):
            get_definitions(["expiry", "nightly"])

    def test_queue_and_input(self):
        """Sync schedules use the sync queue and take no input."""
        config = AppConfig(
            temporal=TemporalConfig(task_queue="lc", sync_task_queue="sq"),
            loop=LoopConfig(concurrency=4),
        )
        expiry, sync = get_definitions(["expiry", "sync_registrars"])
        assert task_queue_for(expiry, config) == "lc"
        assert task_queue_for(sync, config) == "sq"
        assert loop_input_for(expiry, config) == LoopInput(concurrency=4)
        assert loop_input_for(sync, config) is None

    def test_build(self):
        """The schedule starts the workflow on its queue at its interval."""
        definition = ScheduleDefinition("purge", "PurgeLoop", timedelta(hours=1), timedelta(minutes=30))
        schedule = definition.build("lifecycle", LoopInput(concurrency=2))
        action = schedule.action
        assert action.workflow == "PurgeLoop"
        assert action.task_queue == "lifecycle"
        assert action.id == definition.workflow_id("lifecycle")
        assert len(action.args) == 1
        interval = schedule.spec.intervals[0]
        assert interval.every == timedelta(hours=1)
        assert interval.offset == timedelta(minutes=30)
        assert schedule.state.note == definition.fingerprint("lifecycle", LoopInput(concurrency=2))

    def test_fingerprint_tracks_input(self):
        """Changing the loop input changes the fingerprint."""
        definition = get_definitions(["expiry"])[0]
        assert definition.fingerprint("lifecycle", LoopInput()) != definition.fingerprint(
            "lifecycle", LoopInput(concurrency=2)
        )


class TestRegistration:
    """Tests for idempotent registration."""

    @pytest.mark.asyncio
    async def test_create_then_unchanged(self, schedule_client):
        """Registering twice never duplicates schedules."""
        config = AppConfig()
        first = await register_schedules(schedule_client, config)
        assert set(first.values()) == {"created"}
        assert len(schedule_client.schedules) == len(SCHEDULES)

        second = await register_schedules(schedule_client, config)
        assert second.keys() == first.keys()
        assert set(second.values()) == {"unchanged"}
        assert len(schedule_client.schedules) == len(SCHEDULES)
        assert schedule_client.updates == []

    @pytest.mark.asyncio
    async def test_changed_definition_is_updated(self, schedule_client):
        """A changed loop input updates the schedule in place."""
        await register_schedules(schedule_client, AppConfig())
        outcomes = await register_schedules(
            schedule_client, AppConfig(loop=LoopConfig(concurrency=3))
        )

        by_name = {sid.split("_schedule_")[0]: outcome for sid, outcome in outcomes.items()}
        assert by_name == {
            "expiry": "updated",
            "purge": "updated",
            "restore": "updated",
            "sync_registrars": "unchanged",
            "update_fx": "unchanged",
        }
        assert len(schedule_client.schedules) == len(SCHEDULES)

    @pytest.mark.asyncio
    async def test_only(self, schedule_client):
        """Registration can be limited to some schedules."""
        outcomes = await register_schedules(schedule_client, AppConfig(), only=["purge"])
        assert list(outcomes.values()) == ["created"]
        assert list(schedule_client.schedules)[0].startswith("purge_schedule_")

    @pytest.mark.asyncio
    async def test_upsert_returns_outcome(self, schedule_client):
        """upsert_schedule reports what it did."""
        definition = get_definitions(["restore"])[0]
        assert await upsert_schedule(schedule_client, definition, "lifecycle", LoopInput()) == "created"
        assert await upsert_schedule(schedule_client, definition, "lifecycle", LoopInput()) == "unchanged"
        assert await upsert_schedule(
            schedule_client, definition, "lifecycle", LoopInput(tld="ae")
        ) == "updated"


class TestDeletionAndListing:
    """Tests for deleting and listing schedules."""

    @pytest.mark.asyncio
    async def test_delete(self, schedule_client):
        """Deleting removes present schedules and reports absent ones."""
        config = AppConfig()
        await register_schedules(schedule_client, config, only=["expiry"])
        outcomes = await delete_schedules(schedule_client, config, only=["expiry", "purge"])
        assert sorted(outcomes.values()) == ["absent", "deleted"]
        assert schedule_client.schedules == {}

    @pytest.mark.asyncio
    async def test_list_ignores_foreign_schedules(self, schedule_client):
        """Only lifecycle schedules are listed."""
        await register_schedules(schedule_client, AppConfig(), only=["expiry", "update_fx"])
        schedule_client.schedules["billing_report"] = object()
        ids = await list_schedules(schedule_client)
        assert len(ids) == 2
        assert all("_schedule_" in sid for sid in ids)
