"""
Lifecycle Input Validator

Validates registrar identifiers, domain names, TLD filters and EPP status
names before they are sent to the Admin API.
"""

import re
from typing import Optional, Tuple


class LifecycleValidator:
    """
    Validates lifecycle input parameters.

    Provides validation for:
    - Registrar client identifiers (ClID)
    - Domain names and TLDs
    - EPP domain status names
    """

    DOMAIN_LABEL_PATTERN = re.compile(
        r'^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$',
        re.IGNORECASE
    )

    CLID_MIN_LENGTH = 3
    CLID_MAX_LENGTH = 16

    DOMAIN_MAX_LENGTH = 253
    LABEL_MAX_LENGTH = 63

    DOMAIN_STATUSES = {
        'ok', 'inactive',
        'clientDeleteProhibited', 'clientHold', 'clientRenewProhibited',
        'clientTransferProhibited', 'clientUpdateProhibited',
        'serverDeleteProhibited', 'serverHold', 'serverRenewProhibited',
        'serverTransferProhibited', 'serverUpdateProhibited',
        'pendingCreate', 'pendingDelete', 'pendingRenew',
        'pendingRestore', 'pendingTransfer', 'pendingUpdate',
    }

    @staticmethod
    def normalize(value: str) -> str:
        """Strip surrounding whitespace and drop non-printable characters."""
        return "".join(ch for ch in value.strip() if ch.isprintable())

    def validate_clid(self, clid: str) -> Tuple[bool, Optional[str]]:
        """
        Validate a registrar client identifier.

        Args:
            clid: ClID to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not clid:
            return False, "ClID is required"

        clid = self.normalize(clid)

        if len(clid) < self.CLID_MIN_LENGTH:
            return False, f"ClID must be at least {self.CLID_MIN_LENGTH} characters"

        if len(clid) > self.CLID_MAX_LENGTH:
            return False, f"ClID must be at most {self.CLID_MAX_LENGTH} characters"

        if not clid.isascii():
            return False, "ClID must contain only ASCII characters"

        return True, None

    def validate_domain_name(
        self,
        name: str,
        min_labels: int = 2
    ) -> Tuple[bool, Optional[str]]:
        """
        Validate domain name format.

        Args:
            name: Domain name to validate
            min_labels: Minimum number of labels (1 for a TLD)

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not name:
            return False, "Domain name is required"

        name = self.normalize(name).lower().strip(".")

        if not name:
            return False, "Domain name is required"

        if len(name) > self.DOMAIN_MAX_LENGTH:
            return False, "Domain name exceeds maximum length of 253 characters"

        labels = name.split(".")
        if len(labels) < min_labels:
            return False, f"Domain name must have at least {min_labels} labels"

        for label in labels:
            if not label:
                return False, "Domain name contains empty label"

            if len(label) > self.LABEL_MAX_LENGTH:
                return False, f"Label '{label}' exceeds maximum length of 63 characters"

            if not self.DOMAIN_LABEL_PATTERN.match(label):
                return False, f"Label '{label}' contains invalid characters"

            # IDN A-labels are the only legal double hyphen
            if "--" in label and not label.startswith("xn--"):
                return False, f"Label '{label}' contains consecutive hyphens"

        return True, None

    def validate_tld(self, tld: str) -> Tuple[bool, Optional[str]]:
        """Validate a TLD filter (a domain name of one or more labels)."""
        return self.validate_domain_name(tld, min_labels=1)

    def validate_status(self, status: str) -> Tuple[bool, Optional[str]]:
        """Validate an EPP domain status name."""
        if status not in self.DOMAIN_STATUSES:
            return False, f"Invalid domain status: {status}"
        return True, None


_validator: Optional[LifecycleValidator] = None


def get_validator() -> LifecycleValidator:
    """Get or create global validator instance."""
    global _validator
    if _validator is None:
        _validator = LifecycleValidator()
    return _validator


# Convenience functions
def validate_clid(clid: str) -> Tuple[bool, Optional[str]]:
    """Validate ClID."""
    return get_validator().validate_clid(clid)


def validate_domain_name(name: str) -> Tuple[bool, Optional[str]]:
    """Validate domain name."""
    return get_validator().validate_domain_name(name)


def validate_tld(tld: str) -> Tuple[bool, Optional[str]]:
    """Validate TLD."""
    return get_validator().validate_tld(tld)


def validate_status(status: str) -> Tuple[bool, Optional[str]]:
    """Validate domain status."""
    return get_validator().validate_status(status)
