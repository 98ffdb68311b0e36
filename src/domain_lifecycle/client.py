"""
Admin API Client

Asyncio client for the registry Admin API. Every call carries the bearer
token and a correlation id, and every failure surfaces as one of the typed
exceptions in ``domain_lifecycle.exceptions``.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .config import AdminAPIConfig, MAX_BATCH_SIZE
from .exceptions import DecodeError, TransportError, raise_for_status
from .models import (
    CountResult,
    CreateRegistrarCommand,
    Domain,
    DomainExpiryItem,
    DomainRestoredItem,
    IANARegistrar,
    ListItemResult,
    RegistrarListItem,
    RenewDomainCommand,
)
from .queries import ExpiringDomainsQuery, PurgeableDomainsQuery, RestoredDomainsQuery

logger = logging.getLogger("lifecycle.client")

# Query parameter names for the correlation id, per endpoint family
DOMAIN_CORRELATION_PARAM = "correlation_id"
SYNC_CORRELATION_PARAM = "correlationID"

# Safety stop for cursor-drained directory listings
MAX_DRAIN_PAGES = 1000


class AdminAPIClient:
    """
    Asyncio Admin API client.

    Example:
        async with AdminAPIClient(config.api, batch_size=25) as api:
            count = await api.count_expiring_domains(query, correlation_id="wf-1")
            for item in await api.list_expiring_domains(query, "wf-1"):
                if await api.can_auto_renew(item.name, "wf-1"):
                    await api.auto_renew_domain(item.name, "wf-1")
    """

    def __init__(
        self,
        config: AdminAPIConfig,
        batch_size: int = 25,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Admin API client.

        Args:
            config: Admin API connection settings
            batch_size: Maximum items returned by one lifecycle list call
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.config = config
        self.batch_size = min(batch_size, MAX_BATCH_SIZE)
        headers = {"Accept": "application/json"}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "AdminAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # =========================================================================
    # Request plumbing
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        correlation_id: Optional[str] = None,
        correlation_param: str = DOMAIN_CORRELATION_PARAM,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Tuple[int, Any]:
        """
        Send a request and return ``(status, decoded_body)``.

        Raises:
            TransportError: Connection, DNS or timeout failure
            ServerError: 5xx response, or a non-2xx status below 400
            BusinessRuleError: 4xx response (or a narrower subclass)
            DecodeError: Body is not what the endpoint promises (raised by callers)
        """
        query = dict(params or {})
        if correlation_id:
            query[correlation_param] = correlation_id

        logger.debug(f"{method} {path} params={query}")
        try:
            response = await self._http.request(method, path, params=query, json=json)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {path} failed", reason=str(e)) from e

        body = self._decode(response)
        raise_for_status(response.status_code, body, path=f"{method} {path}")
        return response.status_code, body

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        """Decoded JSON body, the raw text if it is not JSON, or None if empty."""
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _require_dict(body: Any, what: str) -> Dict[str, Any]:
        if not isinstance(body, dict):
            raise DecodeError(f"Unexpected {what} response", reason=repr(body)[:200])
        return body

    def _parse_page(self, body: Any, what: str) -> ListItemResult:
        try:
            return ListItemResult.from_dict(self._require_dict(body, what))
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Unexpected {what} response", reason=str(e)) from e

    def _parse_items(self, raw: List[Any], parse: Callable, what: str) -> List[Any]:
        try:
            return [parse(self._require_dict(item, what)) for item in raw]
        except (AttributeError, TypeError, ValueError) as e:
            raise DecodeError(f"Unexpected {what} item", reason=str(e)) from e

    async def _count(self, path: str, correlation_id: str, params: Dict[str, Any],
                     correlation_param: str = DOMAIN_CORRELATION_PARAM) -> CountResult:
        _, body = await self._request(
            "GET", path, correlation_id, correlation_param, params=params
        )
        try:
            return CountResult.from_dict(self._require_dict(body, "count"))
        except (TypeError, ValueError) as e:
            raise DecodeError("Unexpected count response", reason=str(e)) from e

    async def _list_page(
        self,
        path: str,
        correlation_id: str,
        params: Dict[str, Any],
        parse: Callable,
        correlation_param: str = DOMAIN_CORRELATION_PARAM,
    ) -> List[Any]:
        """Fetch one page, never more than ``batch_size`` items."""
        query = dict(params)
        query["pagesize"] = self.batch_size
        _, body = await self._request(
            "GET", path, correlation_id, correlation_param, params=query
        )
        page = self._parse_page(body, path)
        if len(page.data) > self.batch_size:
            logger.warning(
                f"{path} returned {len(page.data)} items for pagesize "
                f"{self.batch_size}, truncating"
            )
        return self._parse_items(page.data[: self.batch_size], parse, path)

    async def _drain(
        self,
        path: str,
        correlation_id: str,
        parse: Callable,
    ) -> List[Any]:
        """Follow the page cursor until the listing is exhausted."""
        items: List[Any] = []
        params: Dict[str, Any] = {}
        seen_cursors = set()

        for _ in range(MAX_DRAIN_PAGES):
            _, body = await self._request(
                "GET", path, correlation_id, SYNC_CORRELATION_PARAM, params=params
            )
            page = self._parse_page(body, path)
            items.extend(self._parse_items(page.data, parse, path))

            if not page.meta.next_link or not page.meta.page_cursor:
                return items
            if page.meta.page_cursor in seen_cursors:
                raise DecodeError(f"{path} pagination cursor repeated",
                                  reason=page.meta.page_cursor)
            seen_cursors.add(page.meta.page_cursor)
            params = {"cursor": page.meta.page_cursor}

        raise DecodeError(f"{path} did not finish within {MAX_DRAIN_PAGES} pages")

    # =========================================================================
    # Expiring domains
    # =========================================================================

    async def count_expiring_domains(
        self, query: ExpiringDomainsQuery, correlation_id: str = None
    ) -> CountResult:
        """Count domains past their expiry date."""
        params = {"days": 1, **query.to_params()}
        return await self._count("/domains/expiring/count", correlation_id, params)

    async def list_expiring_domains(
        self, query: ExpiringDomainsQuery, correlation_id: str = None
    ) -> List[DomainExpiryItem]:
        """List one page of expired domains."""
        params = {"days": 1, **query.to_params()}
        return await self._list_page(
            "/domains/expiring", correlation_id, params, DomainExpiryItem.from_dict
        )

    async def can_auto_renew(self, name: str, correlation_id: str = None) -> bool:
        """Check whether a domain is eligible for auto-renew."""
        _, body = await self._request(
            "GET", f"/domains/{name}/canautorenew", correlation_id
        )
        body = self._require_dict(body, "canautorenew")
        if "canAutoRenew" not in body or not isinstance(body["canAutoRenew"], bool):
            raise DecodeError("Unexpected canautorenew response", reason=repr(body)[:200])
        return body["canAutoRenew"]

    async def auto_renew_domain(self, name: str, correlation_id: str = None) -> None:
        """Auto-renew a domain."""
        await self._request("POST", f"/domains/{name}/autorenew", correlation_id)

    async def expire_domain(self, name: str, correlation_id: str = None) -> None:
        """Expire a domain (enters pendingDelete and the redemption grace period)."""
        await self._request("DELETE", f"/domains/{name}/expire", correlation_id)

    async def mark_domain_for_deletion(self, name: str, correlation_id: str = None) -> None:
        """Mark a domain for deletion."""
        await self._request("DELETE", f"/domains/{name}/markdelete", correlation_id)

    # =========================================================================
    # Purgeable domains
    # =========================================================================

    async def count_purgeable_domains(
        self, query: PurgeableDomainsQuery, correlation_id: str = None
    ) -> CountResult:
        """Count domains past their purge date."""
        return await self._count(
            "/domains/purgeable/count", correlation_id, query.to_params()
        )

    async def list_purgeable_domains(
        self, query: PurgeableDomainsQuery, correlation_id: str = None
    ) -> List[DomainExpiryItem]:
        """List one page of purgeable domains."""
        return await self._list_page(
            "/domains/purgeable", correlation_id, query.to_params(),
            DomainExpiryItem.from_dict,
        )

    async def purge_domain(self, name: str, correlation_id: str = None) -> None:
        """Permanently delete a domain and its subordinate hosts."""
        await self._request(
            "DELETE", f"/domains/{name}", correlation_id, params={"drophosts": "true"}
        )

    # =========================================================================
    # Restore and single-domain operations
    # =========================================================================

    async def list_restored_domains(
        self, query: RestoredDomainsQuery, correlation_id: str = None
    ) -> List[DomainRestoredItem]:
        """List one page of domains pending restore."""
        return await self._list_page(
            "/domains/restored", correlation_id, query.to_params(),
            DomainRestoredItem.from_dict, SYNC_CORRELATION_PARAM,
        )

    async def get_domain(self, name: str, correlation_id: str = None) -> Domain:
        """Fetch a domain."""
        _, body = await self._request("GET", f"/domains/{name}", correlation_id)
        try:
            return Domain.from_dict(self._require_dict(body, "domain"))
        except (TypeError, ValueError) as e:
            raise DecodeError("Unexpected domain response", reason=str(e)) from e

    async def renew_domain(
        self, command: RenewDomainCommand, force: bool = False, correlation_id: str = None
    ) -> None:
        """
        Renew a domain.

        Args:
            command: Renew request
            force: Bypass the renew-window checks (used for restores)
            correlation_id: Correlation id
        """
        path = f"/domains/{command.name}/renew"
        if force:
            path += "/force"
        await self._request("POST", path, correlation_id, json=command.to_dict())

    async def set_domain_status(
        self, name: str, status: str, correlation_id: str = None
    ) -> Domain:
        """Set an EPP status on a domain."""
        _, body = await self._request(
            "POST", f"/domains/{name}/status/{status}", correlation_id
        )
        return Domain.from_dict(body) if isinstance(body, dict) else None

    async def unset_domain_status(
        self, name: str, status: str, correlation_id: str = None
    ) -> Domain:
        """Clear an EPP status from a domain."""
        _, body = await self._request(
            "DELETE", f"/domains/{name}/status/{status}", correlation_id
        )
        return Domain.from_dict(body) if isinstance(body, dict) else None

    # =========================================================================
    # Registrars
    # =========================================================================

    async def sync_iana_registrars(self, correlation_id: str = None) -> None:
        """Refresh the IANA registrar directory from IANA."""
        await self._request(
            "PUT", "/sync/iana-registrars", correlation_id, SYNC_CORRELATION_PARAM
        )

    async def count_registrars(self, correlation_id: str = None) -> CountResult:
        """Count local registrars."""
        return await self._count(
            "/registrars/count", correlation_id, {}, SYNC_CORRELATION_PARAM
        )

    async def list_iana_registrars(self, correlation_id: str = None) -> List[IANARegistrar]:
        """List the whole IANA registrar directory (all pages)."""
        return await self._drain("/ianaregistrars", correlation_id, IANARegistrar.from_dict)

    async def list_registrars(self, correlation_id: str = None) -> List[RegistrarListItem]:
        """List all local registrars (all pages)."""
        return await self._drain("/registrars", correlation_id, RegistrarListItem.from_dict)

    async def create_registrar(
        self, command: CreateRegistrarCommand, correlation_id: str = None
    ) -> None:
        """Create one registrar."""
        await self._request(
            "POST", "/registrars", correlation_id, SYNC_CORRELATION_PARAM,
            json=command.to_dict(),
        )

    async def bulk_create_registrars(
        self, commands: List[CreateRegistrarCommand], correlation_id: str = None
    ) -> None:
        """Create many registrars in one request."""
        await self._request(
            "POST", "/registrars/bulk", correlation_id, SYNC_CORRELATION_PARAM,
            json=[cmd.to_dict() for cmd in commands],
        )

    async def set_registrar_status(
        self, cl_id: str, status: str, correlation_id: str = None
    ) -> None:
        """Set a registrar's status (ok, readonly, terminated)."""
        await self._request(
            "PUT", f"/registrars/{cl_id}/status/{status}", correlation_id,
            SYNC_CORRELATION_PARAM,
        )

    # =========================================================================
    # FX
    # =========================================================================

    async def update_fx(self, currency: str, correlation_id: str = None) -> None:
        """Refresh exchange rates for one base currency."""
        await self._request(
            "PUT", f"/sync/fx/{currency}", correlation_id, SYNC_CORRELATION_PARAM
        )
