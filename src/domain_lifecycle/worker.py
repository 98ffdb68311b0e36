"""
Lifecycle Workers

Two worker processes poll two task queues: the lifecycle queue runs the
expiry, purge and restore loops; the sync queue runs registrar and FX
synchronisation. Each runs until SIGINT or SIGTERM.
"""

import asyncio
import logging
import signal
from typing import Optional

from temporalio.client import Client
from temporalio.worker import Worker
from temporalio.worker.workflow_sandbox import SandboxedWorkflowRunner, SandboxRestrictions

from .activities import DomainActivities, SyncActivities
from .client import AdminAPIClient
from .config import AppConfig
from .temporal import connect
from .workflows import LIFECYCLE_WORKFLOWS, SYNC_WORKFLOWS

logger = logging.getLogger("lifecycle.worker")

LIFECYCLE = "lifecycle"
SYNC = "sync"
WORKER_KINDS = (LIFECYCLE, SYNC)

# Modules shared with the workflow sandbox instead of re-imported per run
PASSTHROUGH_MODULES = (
    "httpx",
    "yaml",
    "dateutil",
    "domain_lifecycle.client",
    "domain_lifecycle.config",
)


def workflow_runner() -> SandboxedWorkflowRunner:
    return SandboxedWorkflowRunner(
        restrictions=SandboxRestrictions.default.with_passthrough_modules(*PASSTHROUGH_MODULES)
    )


class LifecycleWorker:
    """
    Runs one worker process.

    Manages:
    - Backend connection
    - Admin API client
    - Workflow and activity registration
    - Graceful shutdown
    """

    def __init__(self, config: AppConfig, kind: str = LIFECYCLE, client: Optional[Client] = None):
        """Initialize worker."""
        if kind not in WORKER_KINDS:
            raise ValueError(f"Unknown worker kind: {kind}")
        self.config = config
        self.kind = kind
        self.client = client
        self.api: Optional[AdminAPIClient] = None
        self._shutdown_event: asyncio.Event = asyncio.Event()

    @property
    def task_queue(self) -> str:
        if self.kind == SYNC:
            return self.config.temporal.sync_task_queue
        return self.config.temporal.task_queue

    def build_worker(self) -> Worker:
        """Create the engine worker with this kind's workflows and activities."""
        self.api = AdminAPIClient(self.config.api, batch_size=self.config.loop.batch_size)
        if self.kind == SYNC:
            workflows = SYNC_WORKFLOWS
            activities = SyncActivities(self.api).all()
        else:
            workflows = LIFECYCLE_WORKFLOWS
            activities = DomainActivities(self.api).all()

        return Worker(
            self.client,
            task_queue=self.task_queue,
            workflows=workflows,
            activities=activities,
            workflow_runner=workflow_runner(),
        )

    async def start(self) -> None:
        """Connect and poll until shutdown is requested."""
        if self.client is None:
            self.client = await connect(self.config.temporal)

        worker = self.build_worker()
        logger.info(
            f"{self.kind} worker polling task queue '{self.task_queue}' "
            f"(batch_size={self.config.loop.batch_size})"
        )
        async with worker:
            await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Release the Admin API client."""
        logger.info(f"Shutting down {self.kind} worker...")
        self._shutdown_event.set()
        if self.api is not None:
            await self.api.close()
            self.api = None
        logger.info(f"{self.kind} worker stopped")

    def signal_handler(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig.name}")
        self._shutdown_event.set()


async def run_worker(config: AppConfig, kind: str) -> None:
    """Run a worker until SIGINT/SIGTERM."""
    worker = LifecycleWorker(config, kind)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: worker.signal_handler(s))

    try:
        await worker.start()
    finally:
        await worker.stop()
