"""
Lifecycle CLI Main Entry Point

Command-line interface for operating the domain lifecycle engine.
"""

import asyncio
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

import click
from temporalio.client import WorkflowFailureError

from domain_lifecycle import __version__
from domain_lifecycle.client import AdminAPIClient
from domain_lifecycle.config import AppConfig, create_sample_config, setup_logging
from domain_lifecycle.exceptions import (
    AdminAPIError,
    AutoRenewNotEnabledError,
    LifecycleError,
)
from domain_lifecycle.models import BatchReport, ItemFailure, LoopInput, SyncReport
from domain_lifecycle.queries import (
    ExpiringDomainsQuery,
    PurgeableDomainsQuery,
    parse_before,
    parse_clid,
    parse_tld,
)
from domain_lifecycle.schedules import (
    SCHEDULES,
    delete_schedules,
    get_definitions,
    list_schedules,
    register_schedules,
    task_queue_for,
)
from domain_lifecycle.temporal import connect
from domain_lifecycle.worker import WORKER_KINDS, run_worker
from lifecycle_cli.output import OutputFormatter, print_error, print_info, print_success


# Global state for the CLI session
class CLIState:
    config_path: Optional[str] = None
    config: Optional[AppConfig] = None
    formatter: Optional[OutputFormatter] = None
    debug: bool = False


state = CLIState()

SCHEDULE_NAMES = [d.name for d in SCHEDULES]

RESULT_TYPES = {
    "expiry": BatchReport,
    "purge": BatchReport,
    "restore": BatchReport,
    "sync_registrars": SyncReport,
    "update_fx": list,
}


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
@click.option("--format", "-f", type=click.Choice(["table", "json"]), default="table", help="Output format")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, config, format, quiet, debug):
    """
    Domain Lifecycle CLI - Registry Lifecycle Operations

    Run lifecycle workers, manage their schedules and trigger ad-hoc runs.

    \b
    Configuration:
      Use a config file at ~/.lifecycle/config.yaml, $LIFECYCLE_CONFIG or --config.
      Environment variables (API_HOST, API_TOKEN, TMPIO_HOST_PORT, ...) override it.
      Run 'lifecycle config init' to create a sample config file.

    \b
    Examples:
      lifecycle worker lifecycle
      lifecycle schedule create
      lifecycle run expiry --tld ae --wait
      lifecycle status purgeable
    """
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    state.formatter = OutputFormatter(format=format, quiet=quiet)
    state.config_path = config
    state.config = None
    state.debug = debug

    ctx.ensure_object(dict)


def get_config() -> AppConfig:
    """Load the configuration on first use."""
    if state.config is None:
        state.config = AppConfig.find_and_load(state.config_path)
    return state.config


def _correlation_id() -> str:
    return f"cli-{uuid.uuid4()}"


def _print_outcomes(outcomes: dict, column: str) -> None:
    if not outcomes:
        print_info("No schedules matched")
        return
    state.formatter.output([
        {"schedule_id": schedule_id, column: outcome}
        for schedule_id, outcome in outcomes.items()
    ])


# =============================================================================
# Config Commands
# =============================================================================

@cli.group()
def config():
    """Configuration management."""
    pass


@config.command("init")
@click.option("--path", "-p", type=click.Path(), default="~/.lifecycle/config.yaml", help="Config file path")
def config_init(path):
    """Create sample configuration file."""
    config_path = Path(path).expanduser()

    if config_path.exists():
        if not click.confirm(f"Config file {config_path} exists. Overwrite?"):
            return

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(create_sample_config())
    print_success(f"Created config file: {config_path}")
    print_info("Edit the file to add your Admin API and backend settings")


@config.command("show")
def config_show():
    """Show the effective configuration."""
    state.formatter.output(get_config().to_dict())


# =============================================================================
# Worker Commands
# =============================================================================

@cli.command("worker")
@click.argument("kind", type=click.Choice(WORKER_KINDS))
def worker(kind):
    """
    Run a worker until interrupted.

    KIND is 'lifecycle' (expiry, purge and restore loops) or
    'sync' (registrar and FX synchronisation).
    """
    app_config = get_config()
    setup_logging(logging.DEBUG if state.debug else None)
    asyncio.run(run_worker(app_config, kind))


# =============================================================================
# Schedule Commands
# =============================================================================

@cli.group()
def schedule():
    """Schedule management."""
    pass


@schedule.command("create")
@click.option("--only", multiple=True, type=click.Choice(SCHEDULE_NAMES), help="Limit to this schedule (repeatable)")
def schedule_create(only):
    """Create or update the lifecycle schedules."""
    app_config = get_config()

    async def _create():
        client = await connect(app_config.temporal)
        return await register_schedules(client, app_config, list(only))

    _print_outcomes(asyncio.run(_create()), "outcome")


@schedule.command("list")
def schedule_list():
    """List registered lifecycle schedules."""
    app_config = get_config()

    async def _list():
        client = await connect(app_config.temporal)
        return await list_schedules(client)

    ids = asyncio.run(_list())
    if not ids:
        print_info("No lifecycle schedules registered")
        return
    state.formatter.output(ids)


@schedule.command("delete")
@click.option("--only", multiple=True, type=click.Choice(SCHEDULE_NAMES), help="Limit to this schedule (repeatable)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def schedule_delete(only, yes):
    """Delete the lifecycle schedules."""
    app_config = get_config()
    names = list(only) or SCHEDULE_NAMES

    if not yes:
        if not click.confirm(f"Delete schedules {', '.join(names)}?"):
            return

    async def _delete():
        client = await connect(app_config.temporal)
        return await delete_schedules(client, app_config, names)

    _print_outcomes(asyncio.run(_delete()), "outcome")


# =============================================================================
# Ad-hoc Runs
# =============================================================================

@cli.command("run")
@click.argument("name", type=click.Choice(["expiry", "purge", "restore", "sync-registrars", "update-fx"]))
@click.option("--concurrency", "-n", type=int, help="Domains processed at once")
@click.option("--clid", help="Only domains sponsored by this registrar")
@click.option("--tld", help="Only domains under this TLD")
@click.option("--before", help="Cut-off date (yyyy-mm-dd or RFC3339)")
@click.option("--wait", "-w", is_flag=True, help="Wait for the result")
def run(name, concurrency, clid, tld, before, wait):
    """Start a workflow now, outside its schedule."""
    app_config = get_config()
    definition = get_definitions([name.replace("-", "_")])[0]
    task_queue = task_queue_for(definition, app_config)
    workflow_id = f"{definition.name}-manual-{uuid.uuid4()}"

    loop_input = None
    if definition.takes_input:
        if concurrency is not None and concurrency < 1:
            print_error("--concurrency must be at least 1")
            sys.exit(1)
        loop_input = LoopInput(
            concurrency=concurrency or app_config.loop.concurrency,
            cl_id=parse_clid(clid),
            tld=parse_tld(tld),
            before=parse_before(before),
        )
    elif concurrency or clid or tld or before:
        state.formatter.warning(f"{name} takes no options, ignoring them")

    async def _run():
        client = await connect(app_config.temporal)
        kwargs = dict(
            id=workflow_id,
            task_queue=task_queue,
            result_type=RESULT_TYPES[definition.name],
        )
        if loop_input is not None:
            handle = await client.start_workflow(definition.workflow, loop_input, **kwargs)
        else:
            handle = await client.start_workflow(definition.workflow, **kwargs)

        state.formatter.success(
            f"Started {definition.workflow} (workflow_id={handle.id}, "
            f"run_id={handle.first_execution_run_id})"
        )
        if not wait:
            return None
        return await handle.result()

    try:
        result = asyncio.run(_run())
    except WorkflowFailureError as e:
        print_error(f"Workflow {workflow_id} failed: {e.cause}")
        sys.exit(1)

    if result is not None:
        state.formatter.output(result)
        if isinstance(result, BatchReport) and not result.ok:
            sys.exit(1)


# =============================================================================
# Direct Admin API Commands
# =============================================================================

def _filter_options(f):
    f = click.option("--before", help="Cut-off date (yyyy-mm-dd or RFC3339)")(f)
    f = click.option("--tld", help="Only domains under this TLD")(f)
    f = click.option("--clid", help="Only domains sponsored by this registrar")(f)
    return f


@cli.command("status")
@click.argument("kind", type=click.Choice(["expiring", "purgeable"]))
@_filter_options
def status(kind, clid, tld, before):
    """Show how many domains are waiting for the expiry or purge loop."""
    app_config = get_config()

    async def _count():
        async with AdminAPIClient(app_config.api, app_config.loop.batch_size) as api:
            if kind == "expiring":
                query = ExpiringDomainsQuery(cl_id=clid, tld=tld, before=before)
                return await api.count_expiring_domains(query, _correlation_id())
            query = PurgeableDomainsQuery(cl_id=clid, tld=tld, before=before)
            return await api.count_purgeable_domains(query, _correlation_id())

    result = asyncio.run(_count())
    state.formatter.output({"kind": kind, "count": result.count})


@cli.group()
def sweep():
    """One-shot passes run directly against the Admin API."""
    pass


async def _sweep_expire(api: AdminAPIClient, query: ExpiringDomainsQuery) -> BatchReport:
    correlation_id = _correlation_id()
    batch = await api.list_expiring_domains(query, correlation_id)
    report = BatchReport(total=len(batch))

    for item in batch:
        step = "AutoRenewDomain"
        try:
            try:
                await api.auto_renew_domain(item.name, correlation_id)
            except AutoRenewNotEnabledError:
                step = "MarkDomainForDeletion"
                await api.mark_domain_for_deletion(item.name, correlation_id)
            report.succeeded.append(item.name)
        except AdminAPIError as e:
            print_error(f"{item.name}: {step} failed: {e}")
            report.failed.append(ItemFailure(item.name, step, type(e).__name__, str(e)))

    return report


async def _sweep_purge(api: AdminAPIClient, query: PurgeableDomainsQuery) -> BatchReport:
    correlation_id = _correlation_id()
    batch = await api.list_purgeable_domains(query, correlation_id)
    report = BatchReport(total=len(batch))

    for item in batch:
        try:
            await api.purge_domain(item.name, correlation_id)
            report.succeeded.append(item.name)
        except AdminAPIError as e:
            print_error(f"{item.name}: PurgeDomain failed: {e}")
            report.failed.append(ItemFailure(item.name, "PurgeDomain", type(e).__name__, str(e)))

    return report


@sweep.command("expire")
@_filter_options
def sweep_expire(clid, tld, before):
    """Auto-renew expired domains, marking the rest for deletion."""
    app_config = get_config()
    query = ExpiringDomainsQuery(cl_id=clid, tld=tld, before=before)

    async def _sweep():
        async with AdminAPIClient(app_config.api, app_config.loop.batch_size) as api:
            return await _sweep_expire(api, query)

    _finish_sweep(asyncio.run(_sweep()))


@sweep.command("purge")
@_filter_options
def sweep_purge(clid, tld, before):
    """Purge domains whose redemption period has ended."""
    app_config = get_config()
    query = PurgeableDomainsQuery(cl_id=clid, tld=tld, before=before)

    async def _sweep():
        async with AdminAPIClient(app_config.api, app_config.loop.batch_size) as api:
            return await _sweep_purge(api, query)

    _finish_sweep(asyncio.run(_sweep()))


def _finish_sweep(report: BatchReport) -> None:
    if report.total == 0:
        print_info("Nothing to do")
        return
    state.formatter.output(report)
    if not report.ok:
        sys.exit(1)


def main():
    """Main entry point."""
    try:
        cli()
    except LifecycleError as e:
        print_error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(130)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
