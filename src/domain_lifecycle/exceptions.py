"""
Domain Lifecycle Exceptions

Custom exception hierarchy for Admin API and lifecycle operations.
"""

from typing import Any, Optional


class LifecycleError(Exception):
    """Base lifecycle exception."""

    def __init__(self, message: str, code: int = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(LifecycleError):
    """Configuration file or value is invalid."""

    def __init__(self, message: str = "Configuration error"):
        super().__init__(message)


class InvalidQueryError(LifecycleError):
    """A query filter failed validation before any request was sent."""

    retryable = False

    def __init__(self, message: str, field: str = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


# =============================================================================
# Admin API errors
# =============================================================================

class AdminAPIError(LifecycleError):
    """Admin API request failed."""

    retryable = True

    def __init__(self, message: str, code: int = None, reason: str = None):
        super().__init__(message, code)
        self.reason = reason

    def __str__(self):
        base = super().__str__()
        if self.reason:
            base += f" - {self.reason}"
        return base


class TransportError(AdminAPIError):
    """Connection, DNS or timeout failure talking to the Admin API."""

    def __init__(self, message: str = "Transport error", reason: str = None):
        super().__init__(message, reason=reason)


class ServerError(AdminAPIError):
    """Admin API answered with a 5xx status."""


class BusinessRuleError(AdminAPIError):
    """Admin API refused the request on a domain rule (4xx)."""

    retryable = False


class NotFoundError(BusinessRuleError):
    """Object does not exist (404)."""


class AutoRenewNotEnabledError(BusinessRuleError):
    """Domain is not eligible for auto-renew."""


class DecodeError(AdminAPIError):
    """Response body could not be decoded."""

    retryable = False

    def __init__(self, message: str = "Malformed response body", reason: str = None):
        super().__init__(message, reason=reason)


# Admin API error codes that select a narrower rule class
RULE_ERRORS = {
    "AUTO_RENEW_NOT_ENABLED": AutoRenewNotEnabledError,
}

# Lower-case message fragments that select a narrower rule class when the
# body carries no code
RULE_MESSAGES = [
    ("auto renew is not enabled", AutoRenewNotEnabledError),
]

# Classes the durable engine must never retry
NON_RETRYABLE_ERRORS = [
    BusinessRuleError.__name__,
    NotFoundError.__name__,
    AutoRenewNotEnabledError.__name__,
    DecodeError.__name__,
    InvalidQueryError.__name__,
]

def _error_detail(body: Any) -> tuple:
    """Pull (code, message) out of an Admin API error body."""
    if not isinstance(body, dict):
        return None, str(body) if body else None
    code = body.get("code")
    message = body.get("error") or body.get("message")
    return code, message


def _rule_class(code: Any, detail: Optional[str]):
    """Pick the rule error class from the error code, then the message."""
    if code in RULE_ERRORS:
        return RULE_ERRORS[code]
    if detail:
        lowered = str(detail).lower()
        for marker, exc_class in RULE_MESSAGES:
            if marker in lowered:
                return exc_class
    return BusinessRuleError


def raise_for_status(status: int, body: Any = None, path: str = None):
    """Raise the appropriate exception for an Admin API HTTP status.

    Only 2xx counts as success. Informational and redirect responses mean
    the request never reached the Admin API handler.
    """
    if 200 <= status < 300:
        return

    code, detail = _error_detail(body)
    where = f" {path}" if path else ""

    if status >= 500 or status < 400:
        raise ServerError(
            f"Unexpected Admin API response{where}" if status < 400
            else f"Admin API server error{where}",
            code=status,
            reason=detail,
        )

    if status == 404:
        raise NotFoundError(f"Object not found{where}", code=status, reason=detail)

    exc_class = _rule_class(code, detail)
    raise exc_class(f"Admin API refused request{where}", code=status, reason=detail)
