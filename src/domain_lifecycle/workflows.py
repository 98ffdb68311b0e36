"""
Lifecycle Workflows

Deterministic control loops that drive domains through the post-expiry
state machine, plus the registrar and FX synchronisation workflows.

Lifecycle loops (expiry, purge, restore) fail closed on enumeration: a
count or list step that exhausts its retries fails the run. They fail open
per item: a domain whose steps exhaust their retries is logged, recorded
in the returned report and skipped.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar

from temporalio import workflow
from temporalio.exceptions import ActivityError, ApplicationError, is_cancelled_exception

with workflow.unsafe.imports_passed_through():
    from .activities import DomainActivities, SyncActivities
    from .exceptions import AutoRenewNotEnabledError, InvalidQueryError
    from .models import (
        BatchReport,
        CreateRegistrarCommand,
        Domain,
        DomainStatusCommand,
        IANARegistrar,
        ItemFailure,
        LoopInput,
        RegistrarListItem,
        RenewDomainCommand,
        SyncReport,
    )
    from .policy import activity_options
    from .queries import ExpiringDomainsQuery, PurgeableDomainsQuery, RestoredDomainsQuery

T = TypeVar("T")

FX_CURRENCIES = ["USD", "EUR", "PEN", "GBP", "RUB", "CAD", "AUD"]

REGISTRAR_CHUNK_SIZE = 100

PENDING_RESTORE = "pendingRestore"


# =============================================================================
# Helpers
# =============================================================================

def failure_type(error: BaseException) -> str:
    """Error class name carried by an activity failure."""
    cause = error.cause if isinstance(error, ActivityError) else error
    if isinstance(cause, ApplicationError) and cause.type:
        return cause.type
    return type(cause).__name__ if cause is not None else type(error).__name__


def failure_message(error: BaseException) -> str:
    cause = error.cause if isinstance(error, ActivityError) else None
    return str(cause) if cause is not None else str(error)


def _build_query(query_cls, **kwargs):
    """Build a query, turning validation errors into a non-retryable failure."""
    try:
        return query_cls(**kwargs)
    except InvalidQueryError as e:
        raise ApplicationError(
            str(e), type=InvalidQueryError.__name__, non_retryable=True
        ) from e


def _check_concurrency(loop_input: LoopInput) -> int:
    if loop_input.concurrency < 1:
        raise ApplicationError(
            f"concurrency must be at least 1, got {loop_input.concurrency}",
            type="ValueError",
            non_retryable=True,
        )
    return loop_input.concurrency


async def process_batch(
    items: List[T],
    process: Callable[[T], Awaitable[Optional[ItemFailure]]],
    concurrency: int = 1,
) -> List[Optional[ItemFailure]]:
    """
    Run ``process`` over ``items`` with at most ``concurrency`` in flight.

    With a concurrency of 1 items run strictly in list order, one at a time.
    Results are returned in list order either way.
    """
    if concurrency <= 1:
        results = []
        for item in items:
            results.append(await process(item))
        return results

    semaphore = asyncio.Semaphore(concurrency)

    async def bounded(item: T) -> Optional[ItemFailure]:
        async with semaphore:
            return await process(item)

    return list(await asyncio.gather(*(bounded(item) for item in items)))


def _report(names: List[str], results: List[Optional[ItemFailure]]) -> BatchReport:
    report = BatchReport(total=len(names))
    for name, failure in zip(names, results):
        if failure is None:
            report.succeeded.append(name)
        else:
            report.failed.append(failure)
    return report


def _item_failure(name: str, step: str, error: ActivityError) -> ItemFailure:
    """Log a per-item failure and record it; cancellation is never absorbed."""
    if is_cancelled_exception(error):
        raise error
    failure = ItemFailure(
        name=name,
        step=step,
        error_type=failure_type(error),
        message=failure_message(error),
    )
    workflow.logger.error(
        f"{step} failed for {name}, continuing with next item: "
        f"[{failure.error_type}] {failure.message}"
    )
    return failure


# =============================================================================
# Domain Lifecycle
# =============================================================================

@workflow.defn
class ExpiryLoop:
    """Auto-renew or expire every domain past its expiry date."""

    @workflow.run
    async def run(self, loop_input: LoopInput) -> BatchReport:
        concurrency = _check_concurrency(loop_input)
        query = _build_query(
            ExpiringDomainsQuery,
            cl_id=loop_input.cl_id,
            tld=loop_input.tld,
            before=loop_input.before,
        )

        count = await workflow.execute_activity_method(
            DomainActivities.get_expired_domain_count, query, **activity_options()
        )
        workflow.logger.info(f"Found {count.count} expired domains")
        if count.count == 0:
            return BatchReport()

        batch = await workflow.execute_activity_method(
            DomainActivities.list_expiring_domains, query, **activity_options()
        )
        workflow.logger.info(f"Processing {len(batch)} expired domains")

        results = await process_batch(
            [item.name for item in batch], self._process, concurrency
        )
        report = _report([item.name for item in batch], results)
        workflow.logger.info(
            f"Expiry loop done: {len(report.succeeded)} processed, "
            f"{len(report.failed)} failed"
        )
        return report

    async def _process(self, name: str) -> Optional[ItemFailure]:
        step = "CheckDomainCanAutoRenew"
        try:
            can_renew = await workflow.execute_activity_method(
                DomainActivities.check_domain_can_auto_renew, name, **activity_options()
            )

            if can_renew:
                step = "AutoRenewDomain"
                try:
                    await workflow.execute_activity_method(
                        DomainActivities.auto_renew_domain, name, **activity_options()
                    )
                    return None
                except ActivityError as e:
                    if failure_type(e) != AutoRenewNotEnabledError.__name__:
                        raise
                    workflow.logger.info(
                        f"{name} refused auto-renew, expiring it instead"
                    )

            step = "ExpireDomain"
            await workflow.execute_activity_method(
                DomainActivities.expire_domain, name, **activity_options()
            )
            return None
        except ActivityError as e:
            return _item_failure(name, step, e)


@workflow.defn
class PurgeLoop:
    """Purge every domain whose redemption grace period has ended."""

    @workflow.run
    async def run(self, loop_input: LoopInput) -> BatchReport:
        concurrency = _check_concurrency(loop_input)
        query = _build_query(
            PurgeableDomainsQuery,
            cl_id=loop_input.cl_id,
            tld=loop_input.tld,
            before=loop_input.before,
        )

        count = await workflow.execute_activity_method(
            DomainActivities.get_purgeable_domain_count, query, **activity_options()
        )
        workflow.logger.info(f"Found {count.count} purgeable domains")
        if count.count == 0:
            return BatchReport()

        batch = await workflow.execute_activity_method(
            DomainActivities.list_purgeable_domains, query, **activity_options()
        )
        workflow.logger.info(f"Purging {len(batch)} domains")

        names = [item.name for item in batch]
        results = await process_batch(names, self._process, concurrency)
        report = _report(names, results)
        workflow.logger.info(
            f"Purge loop done: {len(report.succeeded)} purged, {len(report.failed)} failed"
        )
        return report

    async def _process(self, name: str) -> Optional[ItemFailure]:
        try:
            await workflow.execute_activity_method(
                DomainActivities.purge_domain, name, **activity_options()
            )
            return None
        except ActivityError as e:
            return _item_failure(name, "PurgeDomain", e)


@workflow.defn
class RestoreWorkflow:
    """Reinstate every domain a registrant asked to restore.

    For each domain: read its sponsor, force-renew it for one year and
    clear ``pendingRestore``. A failed step skips the rest of that domain.
    """

    @workflow.run
    async def run(self, loop_input: LoopInput) -> BatchReport:
        concurrency = _check_concurrency(loop_input)
        query = _build_query(
            RestoredDomainsQuery, cl_id=loop_input.cl_id, tld=loop_input.tld
        )

        batch = await workflow.execute_activity_method(
            DomainActivities.list_restored_domains, query, **activity_options()
        )
        workflow.logger.info(f"Found {len(batch)} pendingRestore domains")

        names = [item.name for item in batch]
        results = await process_batch(names, self._process, concurrency)
        report = _report(names, results)
        workflow.logger.info(
            f"Restore done: {len(report.succeeded)} restored, {len(report.failed)} failed"
        )
        return report

    async def _process(self, name: str) -> Optional[ItemFailure]:
        step = "GetDomain"
        try:
            domain: Domain = await workflow.execute_activity_method(
                DomainActivities.get_domain, name, **activity_options()
            )

            step = "RenewDomain"
            command = RenewDomainCommand(name=name, cl_id=domain.cl_id, years=1)
            await workflow.execute_activity_method(
                DomainActivities.renew_domain, args=[command, True], **activity_options()
            )

            step = "UnSetDomainStatus"
            await workflow.execute_activity_method(
                DomainActivities.unset_domain_status,
                DomainStatusCommand(name=name, status=PENDING_RESTORE),
                **activity_options(),
            )
            return None
        except ActivityError as e:
            return _item_failure(name, step, e)


# =============================================================================
# Synchronisation
# =============================================================================

@workflow.defn
class SyncRegistrarsWorkflow:
    """Keep the local registrar directory in line with IANA.

    The first run on an empty registry imports every registrar in bulk;
    later runs reconcile statuses and create newly accredited registrars.
    """

    @workflow.run
    async def run(self) -> SyncReport:
        await workflow.execute_activity_method(
            SyncActivities.sync_iana_registrars, **activity_options()
        )

        count = await workflow.execute_activity_method(
            SyncActivities.count_registrars, **activity_options()
        )

        iana: List[IANARegistrar] = await workflow.execute_activity_method(
            SyncActivities.get_iana_registrars, **activity_options()
        )
        workflow.logger.info(
            f"IANA directory has {len(iana)} registrars, {count.count} known locally"
        )

        if count.count == 0:
            return await self._bootstrap(iana)
        return await self._reconcile(iana)

    async def _bootstrap(self, iana: List[IANARegistrar]) -> SyncReport:
        report = SyncReport(bootstrapped=True)
        commands = [rar.to_create_command() for rar in iana if rar.is_importable]

        for start in range(0, len(commands), REGISTRAR_CHUNK_SIZE):
            chunk = commands[start:start + REGISTRAR_CHUNK_SIZE]
            await workflow.execute_activity_method(
                SyncActivities.bulk_create_registrars, chunk, **activity_options()
            )
            report.created.extend(cmd.cl_id for cmd in chunk)

        workflow.logger.info(f"Bootstrap created {len(report.created)} registrars")
        return report

    async def _reconcile(self, iana: List[IANARegistrar]) -> SyncReport:
        report = SyncReport()
        local: List[RegistrarListItem] = await workflow.execute_activity_method(
            SyncActivities.list_registrars, **activity_options()
        )
        by_clid = {rar.cl_id: rar for rar in local}

        for iana_rar in iana:
            cl_id = iana_rar.create_cl_id()
            existing = by_clid.get(cl_id)

            if existing is not None:
                new_status = iana_rar.status_change_for(existing)
                if new_status is None:
                    continue
                try:
                    await workflow.execute_activity_method(
                        SyncActivities.set_registrar_status,
                        args=[cl_id, new_status],
                        **activity_options(),
                    )
                    report.updated.append(cl_id)
                except ActivityError as e:
                    report.failed.append(_item_failure(cl_id, "SetRegistrarStatus", e))
                continue

            if not iana_rar.is_importable:
                workflow.logger.debug(f"Skipping reserved IANA registrar {cl_id}")
                continue

            command: CreateRegistrarCommand = iana_rar.to_create_command()
            try:
                await workflow.execute_activity_method(
                    SyncActivities.create_registrar, command, **activity_options()
                )
                report.created.append(cl_id)
            except ActivityError as e:
                report.failed.append(_item_failure(cl_id, "CreateRegistrar", e))

        workflow.logger.info(
            f"Registrar sync done: {len(report.created)} created, "
            f"{len(report.updated)} updated, {len(report.failed)} failed"
        )
        return report


@workflow.defn(name="UpdateFX")
class UpdateFXWorkflow:
    """Refresh exchange rates for every base currency.

    All or nothing: the first currency that fails aborts the run.
    """

    @workflow.run
    async def run(self) -> List[str]:
        updated = []
        for currency in FX_CURRENCIES:
            await workflow.execute_activity_method(
                SyncActivities.update_fx, currency, **activity_options()
            )
            updated.append(currency)
        workflow.logger.info(f"Updated FX rates for {', '.join(updated)}")
        return updated


LIFECYCLE_WORKFLOWS = [ExpiryLoop, PurgeLoop, RestoreWorkflow]
SYNC_WORKFLOWS = [SyncRegistrarsWorkflow, UpdateFXWorkflow]
