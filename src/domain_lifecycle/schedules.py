"""
Lifecycle Schedules

One durable fixed-interval schedule per workflow. Schedule ids are derived
from the workflow name, interval, offset and task queue, so registering
twice finds the existing schedule instead of creating a duplicate. An
existing schedule whose definition changed is updated in place.
"""

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from temporalio.client import (
    Client,
    Schedule,
    ScheduleActionStartWorkflow,
    ScheduleAlreadyRunningError,
    ScheduleIntervalSpec,
    ScheduleSpec,
    ScheduleState,
    ScheduleUpdate,
)
from temporalio.service import RPCError, RPCStatusCode

from .config import AppConfig
from .models import LoopInput

logger = logging.getLogger("lifecycle.schedules")

LIFECYCLE_QUEUE = "lifecycle"
SYNC_QUEUE = "sync"

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
DELETED = "deleted"
ABSENT = "absent"


@dataclass(frozen=True)
class ScheduleDefinition:
    """A fixed-interval trigger for one workflow."""
    name: str
    workflow: str
    every: timedelta
    offset: timedelta = timedelta(0)
    queue: str = LIFECYCLE_QUEUE  # lifecycle or sync
    takes_input: bool = True

    def _digest(self, task_queue: str) -> str:
        key = "|".join([
            self.workflow,
            str(int(self.every.total_seconds())),
            str(int(self.offset.total_seconds())),
            task_queue,
        ])
        return hashlib.sha256(key.encode()).hexdigest()[:12]

    def schedule_id(self, task_queue: str) -> str:
        """Stable schedule id, e.g. ``expiry_schedule_3f2a9c1b7d4e``."""
        return f"{self.name}_schedule_{self._digest(task_queue)}"

    def workflow_id(self, task_queue: str) -> str:
        """Workflow id template; the engine appends the trigger time."""
        return f"{self.name}_workflow_{self._digest(task_queue)}"

    def fingerprint(self, task_queue: str, loop_input: Optional[LoopInput]) -> str:
        """Digest of everything the schedule does, stored as its note."""
        data: Dict[str, Any] = {
            "workflow": self.workflow,
            "every": self.every.total_seconds(),
            "offset": self.offset.total_seconds(),
            "task_queue": task_queue,
            "input": asdict(loop_input) if loop_input is not None else None,
        }
        encoded = json.dumps(data, sort_keys=True).encode()
        return hashlib.sha256(encoded).hexdigest()

    def build(self, task_queue: str, loop_input: Optional[LoopInput]) -> Schedule:
        """Build the engine's schedule object."""
        if self.takes_input:
            action = ScheduleActionStartWorkflow(
                self.workflow,
                loop_input or LoopInput(),
                id=self.workflow_id(task_queue),
                task_queue=task_queue,
            )
        else:
            action = ScheduleActionStartWorkflow(
                self.workflow,
                id=self.workflow_id(task_queue),
                task_queue=task_queue,
            )
        return Schedule(
            action=action,
            spec=ScheduleSpec(
                intervals=[ScheduleIntervalSpec(every=self.every, offset=self.offset)]
            ),
            state=ScheduleState(note=self.fingerprint(task_queue, loop_input)),
        )


SCHEDULES: List[ScheduleDefinition] = [
    ScheduleDefinition("expiry", "ExpiryLoop", timedelta(hours=1)),
    ScheduleDefinition("purge", "PurgeLoop", timedelta(hours=1), timedelta(minutes=30)),
    ScheduleDefinition(
        "restore", "RestoreWorkflow", timedelta(hours=1), timedelta(minutes=15)
    ),
    ScheduleDefinition(
        "sync_registrars", "SyncRegistrarsWorkflow", timedelta(hours=24),
        timedelta(hours=2), queue=SYNC_QUEUE, takes_input=False,
    ),
    ScheduleDefinition(
        "update_fx", "UpdateFX", timedelta(hours=1), timedelta(minutes=30),
        queue=SYNC_QUEUE, takes_input=False,
    ),
]


def get_definitions(only: Optional[List[str]] = None) -> List[ScheduleDefinition]:
    """Schedule definitions, optionally restricted to the given names."""
    if not only:
        return list(SCHEDULES)
    known = {d.name: d for d in SCHEDULES}
    unknown = [name for name in only if name not in known]
    if unknown:
        raise ValueError(
            f"Unknown schedule(s): {', '.join(unknown)}. "
            f"Known: {', '.join(known)}"
        )
    return [known[name] for name in only]


def task_queue_for(definition: ScheduleDefinition, config: AppConfig) -> str:
    if definition.queue == SYNC_QUEUE:
        return config.temporal.sync_task_queue
    return config.temporal.task_queue


def loop_input_for(definition: ScheduleDefinition, config: AppConfig) -> Optional[LoopInput]:
    if not definition.takes_input:
        return None
    return LoopInput(concurrency=config.loop.concurrency)


# =============================================================================
# Registration
# =============================================================================

async def upsert_schedule(
    client: Client,
    definition: ScheduleDefinition,
    task_queue: str,
    loop_input: Optional[LoopInput] = None,
) -> str:
    """
    Create the schedule if absent, else verify it and update it if it differs.

    Returns:
        One of "created", "unchanged" or "updated"
    """
    schedule_id = definition.schedule_id(task_queue)
    schedule = definition.build(task_queue, loop_input)

    try:
        await client.create_schedule(schedule_id, schedule)
        logger.info(f"Created schedule {schedule_id} ({definition.workflow})")
        return CREATED
    except ScheduleAlreadyRunningError:
        pass

    handle = client.get_schedule_handle(schedule_id)
    description = await handle.describe()
    current_note = description.schedule.state.note if description.schedule.state else None
    if current_note == schedule.state.note:
        logger.info(f"Schedule {schedule_id} is up to date")
        return UNCHANGED

    await handle.update(lambda _: ScheduleUpdate(schedule=schedule))
    logger.info(f"Updated schedule {schedule_id} ({definition.workflow})")
    return UPDATED


async def register_schedules(
    client: Client, config: AppConfig, only: Optional[List[str]] = None
) -> Dict[str, str]:
    """Upsert every schedule; returns schedule id -> outcome."""
    outcomes = {}
    for definition in get_definitions(only):
        task_queue = task_queue_for(definition, config)
        outcome = await upsert_schedule(
            client, definition, task_queue, loop_input_for(definition, config)
        )
        outcomes[definition.schedule_id(task_queue)] = outcome
    return outcomes


async def delete_schedules(
    client: Client, config: AppConfig, only: Optional[List[str]] = None
) -> Dict[str, str]:
    """Delete the schedules; returns schedule id -> "deleted" or "absent"."""
    outcomes = {}
    for definition in get_definitions(only):
        schedule_id = definition.schedule_id(task_queue_for(definition, config))
        try:
            await client.get_schedule_handle(schedule_id).delete()
            logger.info(f"Deleted schedule {schedule_id}")
            outcomes[schedule_id] = DELETED
        except RPCError as e:
            if e.status != RPCStatusCode.NOT_FOUND:
                raise
            outcomes[schedule_id] = ABSENT
    return outcomes


async def list_schedules(client: Client) -> List[str]:
    """Ids of registered lifecycle schedules."""
    prefixes = tuple(f"{d.name}_schedule_" for d in SCHEDULES)
    ids = []
    async for entry in await client.list_schedules():
        if entry.id.startswith(prefixes):
            ids.append(entry.id)
    return sorted(ids)
