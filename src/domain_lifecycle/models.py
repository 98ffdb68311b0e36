"""
Domain Lifecycle Models

Data classes for Admin API requests and responses and for workflow
inputs and reports.

Timestamps are kept as the ISO 8601 strings the Admin API sends so that
every model can cross the durable-execution boundary unchanged; use the
parsing properties to get ``datetime`` values.
"""

import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

# Zero-value timestamp the Admin API sends for unset periods
ZERO_TIME_PREFIX = "0001-01-01"

CLID_MAX_LENGTH = 16


def _lookup(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Case-insensitive lookup of the first present key."""
    if not isinstance(data, dict):
        return default
    lowered = {str(k).lower(): v for k, v in data.items()}
    for key in keys:
        value = lowered.get(key.lower())
        if value is not None:
            return value
    return default


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an Admin API timestamp, treating empty and zero values as unset."""
    if not value or str(value).startswith(ZERO_TIME_PREFIX):
        return None
    return date_parser.isoparse(str(value))


def _timestamp(value: Any) -> Optional[str]:
    if not value or str(value).startswith(ZERO_TIME_PREFIX):
        return None
    return str(value)


# =============================================================================
# Domain Models
# =============================================================================

@dataclass
class DomainStatus:
    """EPP status flags of a domain.

    Each flag is independent. Only ``pending_delete`` gates entry into the
    redemption grace period.
    """
    ok: bool = False
    inactive: bool = False
    client_transfer_prohibited: bool = False
    client_update_prohibited: bool = False
    client_delete_prohibited: bool = False
    client_renew_prohibited: bool = False
    client_hold: bool = False
    server_transfer_prohibited: bool = False
    server_update_prohibited: bool = False
    server_delete_prohibited: bool = False
    server_renew_prohibited: bool = False
    server_hold: bool = False
    pending_create: bool = False
    pending_renew: bool = False
    pending_transfer: bool = False
    pending_update: bool = False
    pending_restore: bool = False
    pending_delete: bool = False

    @staticmethod
    def epp_name(attr: str) -> str:
        """Convert a field name to its EPP spelling (client_hold -> clientHold)."""
        head, *rest = attr.split("_")
        return head + "".join(part.capitalize() for part in rest)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainStatus":
        values = {}
        for f in fields(cls):
            values[f.name] = bool(_lookup(data, cls.epp_name(f.name), default=False))
        # Older Admin API builds misspell this one
        if not values["server_renew_prohibited"]:
            values["server_renew_prohibited"] = bool(
                _lookup(data, "serverPenewProhibited", default=False)
            )
        return cls(**values)

    def active_flags(self) -> List[str]:
        """EPP names of all flags that are set."""
        return [self.epp_name(f.name) for f in fields(self) if getattr(self, f.name)]

    @property
    def has_pendings(self) -> bool:
        """Check if any pending flag is set."""
        return any(
            getattr(self, f.name) for f in fields(self) if f.name.startswith("pending_")
        )

    @property
    def in_grace_period(self) -> bool:
        """Check if the domain is inside its redemption grace period."""
        return self.pending_delete


@dataclass
class DomainRGPStatus:
    """Redemption grace period record. ``None`` means not in that period."""
    add_period_end: Optional[str] = None
    renew_period_end: Optional[str] = None
    auto_renew_period_end: Optional[str] = None
    transfer_lock_period_end: Optional[str] = None
    redemption_period_end: Optional[str] = None
    purge_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainRGPStatus":
        return cls(
            add_period_end=_timestamp(_lookup(data, "addPeriodEnd")),
            renew_period_end=_timestamp(_lookup(data, "renewPeriodEnd")),
            auto_renew_period_end=_timestamp(_lookup(data, "autoRenewPeriodEnd")),
            transfer_lock_period_end=_timestamp(
                _lookup(data, "transferLockPeriodEnd", "transferPeriodEnd")
            ),
            redemption_period_end=_timestamp(_lookup(data, "redemptionPeriodEnd")),
            purge_date=_timestamp(_lookup(data, "purgeDate")),
        )

    @property
    def is_nil(self) -> bool:
        """Check if no grace period is recorded at all."""
        return all(getattr(self, f.name) is None for f in fields(self))

    @property
    def purge_at(self) -> Optional[datetime]:
        return parse_timestamp(self.purge_date)


@dataclass
class GrandFathering:
    """Legacy pricing exemption attached to a domain."""
    amount: int = 0
    currency: Optional[str] = None
    expiry_condition: Optional[str] = None  # transfer, delete, date
    void_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GrandFathering":
        return cls(
            amount=int(_lookup(data, "Amount", "GFAmount", default=0)),
            currency=_lookup(data, "Currency", "GFCurrency"),
            expiry_condition=_lookup(data, "ExpiryCondition", "GFExpiryCondition"),
            void_date=_timestamp(_lookup(data, "VoidDate", "GFVoidDate")),
        )

    @property
    def is_set(self) -> bool:
        return self.amount > 0 or bool(self.currency)


@dataclass
class Domain:
    """Domain as returned by the Admin API."""
    ro_id: str
    name: str
    cl_id: str = ""  # Sponsoring registrar
    tld_name: Optional[str] = None
    expiry_date: Optional[str] = None
    renewed_years: int = 0
    status: DomainStatus = field(default_factory=DomainStatus)
    rgp_status: DomainRGPStatus = field(default_factory=DomainRGPStatus)
    grand_fathering: Optional[GrandFathering] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Domain":
        # Status and RGP fields may be nested or flattened into the domain
        status = _lookup(data, "status", "domainStatus", default=data)
        rgp = _lookup(data, "rgpStatus", "domainsRGPStatus", default=data)
        gf = _lookup(data, "grandFathering")
        grand_fathering = GrandFathering.from_dict(gf) if gf else None
        if grand_fathering is not None and not grand_fathering.is_set:
            grand_fathering = None
        return cls(
            ro_id=str(_lookup(data, "roID", "ro_id", default="")),
            name=_lookup(data, "name", default=""),
            cl_id=_lookup(data, "clID", "cl_id", default=""),
            tld_name=_lookup(data, "tldName"),
            expiry_date=_timestamp(_lookup(data, "expiryDate", "expiry_date")),
            renewed_years=int(_lookup(data, "renewedYears", default=0)),
            status=DomainStatus.from_dict(status if isinstance(status, dict) else data),
            rgp_status=DomainRGPStatus.from_dict(rgp if isinstance(rgp, dict) else data),
            grand_fathering=grand_fathering,
        )

    @property
    def expires_at(self) -> Optional[datetime]:
        return parse_timestamp(self.expiry_date)


# -----------------------------------------------------------------------------
# List / count envelopes
# -----------------------------------------------------------------------------

@dataclass
class DomainExpiryItem:
    """Minimal domain record returned by the lifecycle list endpoints."""
    ro_id: str
    name: str
    expiry_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainExpiryItem":
        return cls(
            ro_id=str(_lookup(data, "ro_id", "roID", default="")),
            name=_lookup(data, "name", default=""),
            expiry_date=_timestamp(_lookup(data, "expiry_date", "expiryDate")),
        )


@dataclass
class DomainRestoredItem:
    """Domain a registrant has asked to restore."""
    ro_id: str
    name: str
    cl_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainRestoredItem":
        return cls(
            ro_id=str(_lookup(data, "ro_id", "roID", default="")),
            name=_lookup(data, "name", default=""),
            cl_id=_lookup(data, "cl_id", "clID"),
        )


@dataclass
class CountResult:
    """Count response."""
    count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CountResult":
        return cls(count=int(_lookup(data, "count", default=0)))


@dataclass
class PaginationMeta:
    """Pagination metadata of a list response."""
    page_size: int = 0
    page_cursor: Optional[str] = None
    next_link: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaginationMeta":
        return cls(
            page_size=int(_lookup(data, "pageSize", default=0)),
            page_cursor=_lookup(data, "pageCursor", "cursor") or None,
            next_link=_lookup(data, "nextLink") or None,
        )


@dataclass
class ListItemResult:
    """One page of a list response."""
    data: List[Dict[str, Any]] = field(default_factory=list)
    meta: PaginationMeta = field(default_factory=PaginationMeta)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListItemResult":
        items = _lookup(data, "data", default=[])
        if not isinstance(items, list):
            raise ValueError("list response 'data' is not an array")
        return cls(
            data=items,
            meta=PaginationMeta.from_dict(_lookup(data, "meta", default={})),
        )


# =============================================================================
# Commands
# =============================================================================

@dataclass
class RenewDomainCommand:
    """Renew a domain on behalf of its sponsor."""
    name: str
    cl_id: str
    years: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"Name": self.name, "ClID": self.cl_id, "Years": self.years}


@dataclass
class DomainStatusCommand:
    """Set or clear one EPP status on a domain."""
    name: str
    status: str


# =============================================================================
# Registrar Models
# =============================================================================

REGISTRAR_STATUS_OK = "ok"
REGISTRAR_STATUS_READONLY = "readonly"
REGISTRAR_STATUS_TERMINATED = "terminated"

IANA_STATUS_ACCREDITED = "Accredited"
IANA_STATUS_RESERVED = "Reserved"
IANA_STATUS_TERMINATED = "Terminated"

# Reserved IANA ids that still get a registrar (pre-delegation testing)
PDT_GURIDS = (9995, 9996)


@dataclass
class IANARegistrar:
    """Registrar record from the IANA registrar directory."""
    gur_id: int
    name: str
    status: str = "Unknown"
    rdap_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IANARegistrar":
        return cls(
            gur_id=int(_lookup(data, "GurID", "gur_id", default=0)),
            name=_lookup(data, "Name", default=""),
            status=_lookup(data, "Status", default="Unknown"),
            rdap_url=_lookup(data, "RdapURL", "rdap_url"),
        )

    @property
    def is_reserved(self) -> bool:
        return self.status == IANA_STATUS_RESERVED

    @property
    def is_importable(self) -> bool:
        """Reserved ids are skipped, except the pre-delegation testing ones."""
        return not self.is_reserved or self.gur_id in PDT_GURIDS

    @property
    def registrar_status(self) -> str:
        """Local registrar status this IANA status maps to."""
        if self.status == IANA_STATUS_ACCREDITED:
            return REGISTRAR_STATUS_OK
        if self.status == IANA_STATUS_TERMINATED:
            return REGISTRAR_STATUS_TERMINATED
        return REGISTRAR_STATUS_READONLY

    def create_cl_id(self) -> str:
        """
        Derive the local ClID: ``<gurid>-<slugged name>`` cut to 16 characters.

        Example: GurID 123 "Example Registrar, Inc." -> "123-example-regi"
        """
        slug = re.sub(r"[^a-z0-9]+", "-", self.name.lower()).strip("-")
        return f"{self.gur_id}-{slug}"[:CLID_MAX_LENGTH].rstrip("-")

    def to_create_command(self) -> "CreateRegistrarCommand":
        return CreateRegistrarCommand(
            cl_id=self.create_cl_id(),
            name=self.name,
            gur_id=self.gur_id,
            status=self.registrar_status,
            rdap_url=self.rdap_url,
        )

    def status_change_for(self, registrar: "RegistrarListItem") -> Optional[str]:
        """New status for a local registrar, or None if it already matches."""
        wanted = self.registrar_status
        if registrar.status.lower() == wanted:
            return None
        return wanted


@dataclass
class RegistrarListItem:
    """Registrar summary from the registrar list endpoint."""
    cl_id: str
    name: str = ""
    gur_id: int = 0
    status: str = REGISTRAR_STATUS_OK

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistrarListItem":
        return cls(
            cl_id=_lookup(data, "ClID", "cl_id", default=""),
            name=_lookup(data, "Name", default=""),
            gur_id=int(_lookup(data, "GurID", "gur_id", default=0)),
            status=_lookup(data, "Status", default=REGISTRAR_STATUS_OK),
        )


@dataclass
class CreateRegistrarCommand:
    """Create a registrar from its IANA record."""
    cl_id: str
    name: str
    gur_id: int
    status: str = REGISTRAR_STATUS_OK
    rdap_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "ClID": self.cl_id,
            "Name": self.name,
            "NickName": self.name,
            "GurID": self.gur_id,
            "Status": self.status,
        }
        if self.rdap_url:
            data["RdapBaseURL"] = self.rdap_url
        return data


# =============================================================================
# Workflow Inputs and Reports
# =============================================================================

@dataclass
class LoopInput:
    """Input of the lifecycle control loops.

    ``concurrency`` bounds how many domains of one batch are in flight at
    once; 1 processes the batch strictly in list order.
    """
    concurrency: int = 1
    cl_id: Optional[str] = None
    tld: Optional[str] = None
    before: Optional[str] = None


@dataclass
class ItemFailure:
    """One domain (or registrar) that could not be processed."""
    name: str
    step: str
    error_type: str
    message: str


@dataclass
class BatchReport:
    """Outcome of one control-loop run."""
    total: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: List[ItemFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class SyncReport:
    """Outcome of one registrar sync run."""
    bootstrapped: bool = False
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    failed: List[ItemFailure] = field(default_factory=list)
