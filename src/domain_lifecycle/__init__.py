"""
Domain Lifecycle Engine

Durable control loops that move registry domains through expiry,
redemption, purge and restore, plus registrar and FX synchronisation.
All state changes go through the registry Admin API.
"""

__version__ = "1.0.0"

from domain_lifecycle.client import AdminAPIClient
from domain_lifecycle.config import AppConfig, AdminAPIConfig, LoopConfig, TemporalConfig
from domain_lifecycle.models import (
    BatchReport,
    CountResult,
    CreateRegistrarCommand,
    Domain,
    DomainExpiryItem,
    DomainRestoredItem,
    DomainStatus,
    DomainStatusCommand,
    IANARegistrar,
    ItemFailure,
    LoopInput,
    RegistrarListItem,
    RenewDomainCommand,
    SyncReport,
)
from domain_lifecycle.queries import (
    ExpiringDomainsQuery,
    PurgeableDomainsQuery,
    RestoredDomainsQuery,
)
from domain_lifecycle.exceptions import (
    LifecycleError,
    ConfigError,
    InvalidQueryError,
    AdminAPIError,
    TransportError,
    ServerError,
    BusinessRuleError,
    NotFoundError,
    AutoRenewNotEnabledError,
    DecodeError,
)

__all__ = [
    # Client
    "AdminAPIClient",
    # Config
    "AppConfig",
    "AdminAPIConfig",
    "LoopConfig",
    "TemporalConfig",
    # Models
    "BatchReport",
    "CountResult",
    "CreateRegistrarCommand",
    "Domain",
    "DomainExpiryItem",
    "DomainRestoredItem",
    "DomainStatus",
    "DomainStatusCommand",
    "IANARegistrar",
    "ItemFailure",
    "LoopInput",
    "RegistrarListItem",
    "RenewDomainCommand",
    "SyncReport",
    # Queries
    "ExpiringDomainsQuery",
    "PurgeableDomainsQuery",
    "RestoredDomainsQuery",
    # Exceptions
    "LifecycleError",
    "ConfigError",
    "InvalidQueryError",
    "AdminAPIError",
    "TransportError",
    "ServerError",
    "BusinessRuleError",
    "NotFoundError",
    "AutoRenewNotEnabledError",
    "DecodeError",
]
