"""
Lifecycle Queries

Validated filter objects for the lifecycle list and count endpoints.
Every field is optional; an invalid value raises InvalidQueryError at
construction, before any request is sent.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from dateutil import parser as date_parser

from .exceptions import InvalidQueryError
from .validators import get_validator

DATE_FORMATS_HINT = "expected yyyy-mm-dd or RFC3339"


def parse_before(value: Optional[str]) -> Optional[str]:
    """
    Normalize a ``before`` filter to an RFC 3339 UTC timestamp.

    Args:
        value: yyyy-mm-dd or RFC 3339 text, or empty for "now"

    Returns:
        Normalized timestamp, or None when unset
    """
    if value is None or not str(value).strip():
        return None
    try:
        parsed = date_parser.isoparse(str(value).strip())
    except (ValueError, OverflowError) as e:
        raise InvalidQueryError(
            f"invalid time format, {DATE_FORMATS_HINT}", field="before", value=value
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_clid(value: Optional[str]) -> Optional[str]:
    """Validate a registrar filter; empty means no filter."""
    if value is None or not value.strip():
        return None
    validator = get_validator()
    valid, error = validator.validate_clid(value)
    if not valid:
        raise InvalidQueryError(error, field="clid", value=value)
    return validator.normalize(value)


def parse_tld(value: Optional[str]) -> Optional[str]:
    """Validate a TLD filter; empty means no filter."""
    if value is None or not value.strip():
        return None
    validator = get_validator()
    valid, error = validator.validate_tld(value)
    if not valid:
        raise InvalidQueryError(error, field="tld", value=value)
    return validator.normalize(value).lower().strip(".")


def check_status_command(command) -> None:
    """Reject a status change for a malformed domain or unknown EPP status."""
    validator = get_validator()
    valid, error = validator.validate_domain_name(command.name)
    if not valid:
        raise InvalidQueryError(error, field="name", value=command.name)
    valid, error = validator.validate_status(command.status)
    if not valid:
        raise InvalidQueryError(error, field="status", value=command.status)


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class _DomainFilter:
    cl_id: Optional[str] = None
    tld: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "cl_id", parse_clid(self.cl_id))
        object.__setattr__(self, "tld", parse_tld(self.tld))

    def to_params(self) -> Dict[str, str]:
        params = {}
        if self.cl_id:
            params["clid"] = self.cl_id
        if self.tld:
            params["tld"] = self.tld
        return params


@dataclass(frozen=True)
class _DatedDomainFilter(_DomainFilter):
    before: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "before", parse_before(self.before))

    def to_params(self, now: Optional[str] = None) -> Dict[str, str]:
        """Render query parameters; an unset ``before`` resolves to now (UTC)."""
        params = super().to_params()
        params["before"] = self.before or now or utc_now()
        return params


@dataclass(frozen=True)
class ExpiringDomainsQuery(_DatedDomainFilter):
    """Domains whose expiry date is before ``before``."""


@dataclass(frozen=True)
class PurgeableDomainsQuery(_DatedDomainFilter):
    """Domains whose purge date is before ``before``."""


@dataclass(frozen=True)
class RestoredDomainsQuery(_DomainFilter):
    """Domains a registrant has requested restored."""
