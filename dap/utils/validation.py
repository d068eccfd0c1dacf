"""
Input Validation - Checks on user-entered values before anything is sent.

Validators return (is_valid, error_message) so callers decide how to
report a failure. Domain names are otherwise opaque: the registrar is the
authority on what it accepts.
"""

from typing import Any, Tuple

from dap.crypto import is_valid_address
from dap.core.amount import to_base_units
from dap.core.errors import ParseError

# =============================================================================
# Constants
# =============================================================================

MAX_DOMAIN_LENGTH = 253
MAX_SECRET_LENGTH = 1024


# =============================================================================
# Validation Functions
# =============================================================================


def validate_domain(domain: Any) -> Tuple[bool, str]:
    """Validate a domain name (non-empty text, no surrounding whitespace)."""
    if not isinstance(domain, str):
        return False, f"domain must be text, got {type(domain).__name__}"

    if not domain:
        return False, "domain must not be empty"

    if domain != domain.strip():
        return False, "domain must not start or end with whitespace"

    if len(domain) > MAX_DOMAIN_LENGTH:
        return False, f"domain exceeds max length {MAX_DOMAIN_LENGTH}, got {len(domain)}"

    return True, ""


def validate_address(address: Any) -> Tuple[bool, str]:
    """Validate an account address (0x + 40 hex chars)."""
    if not is_valid_address(address):
        return False, f"not a valid address: {address!r}"
    return True, ""


def validate_amount(text: Any) -> Tuple[bool, str]:
    """Validate decimal amount text."""
    try:
        to_base_units(text)
    except ParseError as exc:
        return False, exc.message
    return True, ""


def validate_secret(secret: Any) -> Tuple[bool, str]:
    """Validate a bid secret."""
    if not isinstance(secret, str):
        return False, f"secret must be text, got {type(secret).__name__}"

    if not secret:
        return False, "secret must not be empty"

    if len(secret) > MAX_SECRET_LENGTH:
        return False, f"secret exceeds max length {MAX_SECRET_LENGTH}, got {len(secret)}"

    return True, ""
