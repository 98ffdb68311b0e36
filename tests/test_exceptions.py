"""
Tests for the Admin API error mapping.
"""

import pytest

from domain_lifecycle.exceptions import (
    AdminAPIError,
    AutoRenewNotEnabledError,
    BusinessRuleError,
    DecodeError,
    InvalidQueryError,
    NON_RETRYABLE_ERRORS,
    NotFoundError,
    ServerError,
    TransportError,
    raise_for_status,
)


class TestRaiseForStatus:
    """Tests for HTTP status classification."""

    def test_success_does_not_raise(self):
        """2xx statuses pass through."""
        raise_for_status(200, {"count": 1})
        raise_for_status(201)
        raise_for_status(204)

    @pytest.mark.parametrize("status", [100, 301, 302, 304, 307])
    def test_non_2xx_below_400_raises(self, status):
        """Informational and redirect responses are not a completed call."""
        with pytest.raises(ServerError) as exc:
            raise_for_status(status, None, path="DELETE /domains/a.ae/expire")
        assert exc.value.code == status
        assert exc.value.retryable

    def test_server_error(self):
        """5xx maps to a retryable server error."""
        with pytest.raises(ServerError) as exc:
            raise_for_status(503, {"error": "maintenance"}, path="GET /domains")
        assert exc.value.code == 503
        assert exc.value.reason == "maintenance"
        assert exc.value.retryable

    def test_not_found(self):
        """404 maps to NotFoundError."""
        with pytest.raises(NotFoundError) as exc:
            raise_for_status(404, {"error": "domain not found"})
        assert not exc.value.retryable

    def test_business_rule(self):
        """Other 4xx map to a non-retryable rule error."""
        with pytest.raises(BusinessRuleError) as exc:
            raise_for_status(422, {"message": "domain is locked"})
        assert type(exc.value) is BusinessRuleError
        assert exc.value.reason == "domain is locked"

    def test_auto_renew_not_enabled_by_code(self):
        """A known error code selects the narrower class."""
        with pytest.raises(AutoRenewNotEnabledError):
            raise_for_status(400, {"code": "AUTO_RENEW_NOT_ENABLED"})

    def test_auto_renew_not_enabled_by_message(self):
        """The error text also selects it."""
        with pytest.raises(AutoRenewNotEnabledError):
            raise_for_status(400, {"error": "auto renew is not enabled"})

    @pytest.mark.parametrize("message", [
        "auto renew is not enabled for domain a.com",
        "Auto renew is not enabled",
        "registrar1: AUTO RENEW IS NOT ENABLED",
    ])
    def test_auto_renew_not_enabled_message_with_context(self, message):
        """The refusal is found anywhere in the text, in any case."""
        with pytest.raises(AutoRenewNotEnabledError) as exc:
            raise_for_status(400, {"error": message})
        assert exc.value.reason == message

    def test_unknown_code_falls_back_to_message(self):
        """An unrecognised code still lets the message decide."""
        with pytest.raises(AutoRenewNotEnabledError):
            raise_for_status(400, {"code": "E1001", "message": "Auto renew is not enabled"})

    def test_non_json_body(self):
        """Plain-text bodies become the reason."""
        with pytest.raises(ServerError) as exc:
            raise_for_status(502, "Bad Gateway")
        assert exc.value.reason == "Bad Gateway"


class TestErrorClasses:
    """Tests for the exception hierarchy."""

    def test_str_includes_code_and_reason(self):
        """String form carries code and reason."""
        error = AdminAPIError("request failed", code=500, reason="boom")
        assert str(error) == "[500] request failed - boom"

    def test_retryability(self):
        """Transport and server errors retry, the rest do not."""
        assert TransportError().retryable
        assert ServerError("x").retryable
        assert not BusinessRuleError("x").retryable
        assert not DecodeError().retryable
        assert not InvalidQueryError("x").retryable

    def test_non_retryable_names(self):
        """The engine's non-retryable list covers every rule error."""
        for cls in (BusinessRuleError, NotFoundError, AutoRenewNotEnabledError,
                    DecodeError, InvalidQueryError):
            assert cls.__name__ in NON_RETRYABLE_ERRORS
        assert ServerError.__name__ not in NON_RETRYABLE_ERRORS
        assert TransportError.__name__ not in NON_RETRYABLE_ERRORS
