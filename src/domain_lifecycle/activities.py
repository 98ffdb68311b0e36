"""
Lifecycle Activities

Each activity performs exactly one Admin API call (or, for the registrar
directories, one complete listing). The owning workflow's id is sent as the
correlation id, and client errors are re-raised as ``ApplicationError`` whose
``type`` is the exception class name so workflows can branch on it.
"""

import logging
from typing import List, Optional

from temporalio import activity
from temporalio.exceptions import ApplicationError

from .client import AdminAPIClient
from .exceptions import LifecycleError, NotFoundError
from .models import (
    CountResult,
    CreateRegistrarCommand,
    Domain,
    DomainExpiryItem,
    DomainRestoredItem,
    DomainStatusCommand,
    IANARegistrar,
    RegistrarListItem,
    RenewDomainCommand,
)
from .queries import (
    ExpiringDomainsQuery,
    PurgeableDomainsQuery,
    RestoredDomainsQuery,
    check_status_command,
)

logger = logging.getLogger("lifecycle.activities")


def to_application_error(error: LifecycleError) -> ApplicationError:
    """Convert a lifecycle exception into a failure the engine can classify."""
    return ApplicationError(
        str(error),
        type=type(error).__name__,
        non_retryable=not getattr(error, "retryable", False),
    )


def _correlation_id() -> str:
    return activity.info().workflow_id


class _ActivityBase:
    """Holds the Admin API client shared by all activities of a worker."""

    def __init__(self, api: AdminAPIClient):
        self.api = api

    async def _call(self, operation: str, awaitable):
        info = activity.info()
        try:
            return await awaitable
        except LifecycleError as e:
            logger.warning(
                f"{operation} failed (workflow={info.workflow_id}, "
                f"attempt={info.attempt}): {e}"
            )
            raise to_application_error(e) from e


class DomainActivities(_ActivityBase):
    """Domain lifecycle activities."""

    # -------------------------------------------------------------------------
    # Expiry
    # -------------------------------------------------------------------------

    @activity.defn(name="GetExpiredDomainCount")
    async def get_expired_domain_count(self, query: ExpiringDomainsQuery) -> CountResult:
        return await self._call(
            "GetExpiredDomainCount",
            self.api.count_expiring_domains(query, _correlation_id()),
        )

    @activity.defn(name="ListExpiringDomains")
    async def list_expiring_domains(
        self, query: ExpiringDomainsQuery
    ) -> List[DomainExpiryItem]:
        return await self._call(
            "ListExpiringDomains",
            self.api.list_expiring_domains(query, _correlation_id()),
        )

    @activity.defn(name="CheckDomainCanAutoRenew")
    async def check_domain_can_auto_renew(self, name: str) -> bool:
        return await self._call(
            "CheckDomainCanAutoRenew", self.api.can_auto_renew(name, _correlation_id())
        )

    @activity.defn(name="AutoRenewDomain")
    async def auto_renew_domain(self, name: str) -> None:
        await self._call(
            "AutoRenewDomain", self.api.auto_renew_domain(name, _correlation_id())
        )
        logger.info(f"Auto-renewed {name}")

    @activity.defn(name="ExpireDomain")
    async def expire_domain(self, name: str) -> None:
        await self._call("ExpireDomain", self.api.expire_domain(name, _correlation_id()))
        logger.info(f"Expired {name}")

    @activity.defn(name="MarkDomainForDeletion")
    async def mark_domain_for_deletion(self, name: str) -> None:
        await self._call(
            "MarkDomainForDeletion",
            self.api.mark_domain_for_deletion(name, _correlation_id()),
        )
        logger.info(f"Marked {name} for deletion")

    # -------------------------------------------------------------------------
    # Purge
    # -------------------------------------------------------------------------

    @activity.defn(name="GetPurgeableDomainCount")
    async def get_purgeable_domain_count(
        self, query: PurgeableDomainsQuery
    ) -> CountResult:
        return await self._call(
            "GetPurgeableDomainCount",
            self.api.count_purgeable_domains(query, _correlation_id()),
        )

    @activity.defn(name="ListPurgeableDomains")
    async def list_purgeable_domains(
        self, query: PurgeableDomainsQuery
    ) -> List[DomainExpiryItem]:
        return await self._call(
            "ListPurgeableDomains",
            self.api.list_purgeable_domains(query, _correlation_id()),
        )

    @activity.defn(name="PurgeDomain")
    async def purge_domain(self, name: str) -> None:
        """Purge a domain; a domain that is already gone counts as purged."""
        try:
            await self.api.purge_domain(name, _correlation_id())
        except NotFoundError:
            logger.info(f"{name} already purged")
            return
        except LifecycleError as e:
            raise to_application_error(e) from e
        logger.info(f"Purged {name}")

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    @activity.defn(name="ListRestoredDomains")
    async def list_restored_domains(
        self, query: RestoredDomainsQuery
    ) -> List[DomainRestoredItem]:
        return await self._call(
            "ListRestoredDomains",
            self.api.list_restored_domains(query, _correlation_id()),
        )

    @activity.defn(name="GetDomain")
    async def get_domain(self, name: str) -> Domain:
        return await self._call("GetDomain", self.api.get_domain(name, _correlation_id()))

    @activity.defn(name="RenewDomain")
    async def renew_domain(self, command: RenewDomainCommand, force: bool) -> None:
        await self._call(
            "RenewDomain",
            self.api.renew_domain(command, force=force, correlation_id=_correlation_id()),
        )
        logger.info(f"Renewed {command.name} for {command.years} year(s) (force={force})")

    @activity.defn(name="SetDomainStatus")
    async def set_domain_status(self, command: DomainStatusCommand) -> Optional[Domain]:
        return await self._call(
            "SetDomainStatus", self._change_status(self.api.set_domain_status, command)
        )

    @activity.defn(name="UnSetDomainStatus")
    async def unset_domain_status(self, command: DomainStatusCommand) -> Optional[Domain]:
        return await self._call(
            "UnSetDomainStatus", self._change_status(self.api.unset_domain_status, command)
        )

    @staticmethod
    async def _change_status(change, command: DomainStatusCommand) -> Optional[Domain]:
        check_status_command(command)
        return await change(command.name, command.status, _correlation_id())

    def all(self) -> list:
        """Every activity of this class, for worker registration."""
        return [
            self.get_expired_domain_count,
            self.list_expiring_domains,
            self.check_domain_can_auto_renew,
            self.auto_renew_domain,
            self.expire_domain,
            self.mark_domain_for_deletion,
            self.get_purgeable_domain_count,
            self.list_purgeable_domains,
            self.purge_domain,
            self.list_restored_domains,
            self.get_domain,
            self.renew_domain,
            self.set_domain_status,
            self.unset_domain_status,
        ]


class SyncActivities(_ActivityBase):
    """Registrar directory and FX synchronisation activities."""

    @activity.defn(name="SyncIanaRegistrars")
    async def sync_iana_registrars(self) -> None:
        await self._call(
            "SyncIanaRegistrars", self.api.sync_iana_registrars(_correlation_id())
        )

    @activity.defn(name="CountRegistrars")
    async def count_registrars(self) -> CountResult:
        return await self._call("CountRegistrars", self.api.count_registrars(_correlation_id()))

    @activity.defn(name="GetIANARegistrars")
    async def get_iana_registrars(self) -> List[IANARegistrar]:
        return await self._call(
            "GetIANARegistrars", self.api.list_iana_registrars(_correlation_id())
        )

    @activity.defn(name="ListRegistrars")
    async def list_registrars(self) -> List[RegistrarListItem]:
        return await self._call("ListRegistrars", self.api.list_registrars(_correlation_id()))

    @activity.defn(name="BulkCreateRegistrars")
    async def bulk_create_registrars(self, commands: List[CreateRegistrarCommand]) -> None:
        await self._call(
            "BulkCreateRegistrars",
            self.api.bulk_create_registrars(commands, _correlation_id()),
        )
        logger.info(f"Created {len(commands)} registrars")

    @activity.defn(name="CreateRegistrar")
    async def create_registrar(self, command: CreateRegistrarCommand) -> None:
        await self._call(
            "CreateRegistrar", self.api.create_registrar(command, _correlation_id())
        )
        logger.info(f"Created registrar {command.cl_id}")

    @activity.defn(name="SetRegistrarStatus")
    async def set_registrar_status(self, cl_id: str, status: str) -> None:
        await self._call(
            "SetRegistrarStatus",
            self.api.set_registrar_status(cl_id, status, _correlation_id()),
        )
        logger.info(f"Set registrar {cl_id} status to {status}")

    @activity.defn(name="UpdateFX")
    async def update_fx(self, currency: str) -> None:
        await self._call("UpdateFX", self.api.update_fx(currency, _correlation_id()))
        logger.info(f"Updated FX rates for {currency}")

    def all(self) -> list:
        """Every activity of this class, for worker registration."""
        return [
            self.sync_iana_registrars,
            self.count_registrars,
            self.get_iana_registrars,
            self.list_registrars,
            self.bulk_create_registrars,
            self.create_registrar,
            self.set_registrar_status,
            self.update_fx,
        ]
