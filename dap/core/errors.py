"""
Error taxonomy for the DAP client.

Every error carries a short ``kind`` string so the presentation layer can
render a status line without inspecting exception classes. None of these
errors is fatal: the session stays usable after any of them.

Kinds:
- parse / encoding:     malformed local input, re-prompt
- illegal_phase:        local phase guard tripped, nothing was sent
- request_in_progress:  single-flight violation, nothing was sent
- contract_rejected:    the ledger refused the request, resynchronize first
- unresolved:           outcome unknown, resynchronize, never retry blindly
- unavailable:          transient read failure, next poll retries
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from dap.core.auction.state import AuctionPhase, RequestKind
    from dap.network.gateway import Receipt


class DAPError(Exception):
    """Base class for all client errors."""

    kind = "error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ParseError(DAPError):
    """Decimal amount text could not be converted to base units."""

    kind = "parse"


class EncodingError(DAPError):
    """Commitment inputs could not be encoded."""

    kind = "encoding"


class ConfigError(DAPError):
    """Invalid client configuration."""

    kind = "config"


class IllegalPhaseError(DAPError):
    """The believed phase does not permit the requested action."""

    kind = "illegal_phase"

    def __init__(
        self,
        action: "RequestKind",
        domain: str,
        phase: "AuctionPhase",
    ):
        super().__init__(
            f"Cannot {action.describe()} for {domain!r} while phase is {phase.label}"
        )
        self.action = action
        self.domain = domain
        self.phase = phase


class RequestInProgressError(DAPError):
    """Another state-changing request for the same key is still pending."""

    kind = "request_in_progress"

    def __init__(self, key: str, pending_kind: "RequestKind"):
        super().__init__(f"A {pending_kind.describe()} request for {key!r} is still pending")
        self.key = key
        self.pending_kind = pending_kind


class ContractRejected(DAPError):
    """The ledger refused the request."""

    kind = "contract_rejected"

    def __init__(self, reason: str = "", receipt: Optional["Receipt"] = None):
        super().__init__(reason or "Request rejected by contract")
        self.reason = reason
        self.receipt = receipt


class UnresolvedError(DAPError):
    """The outcome of a submitted request is unknown."""

    kind = "unresolved"

    def __init__(self, message: str = "", receipt: Optional["Receipt"] = None):
        super().__init__(message or "Request outcome unknown")
        self.receipt = receipt


class UnavailableError(DAPError):
    """A read could not be completed (network or provider fault)."""

    kind = "unavailable"


class UnresolvedOwnerError(DAPError):
    """The target domain has no registered owner."""

    kind = "unresolved_owner"

    def __init__(self, domain: str):
        super().__init__(f"Domain owner address not found for {domain!r}")
        self.domain = domain


class WalletUnavailableError(DAPError):
    """No wallet account is connected."""

    kind = "wallet_unavailable"


__all__ = [
    "DAPError",
    "ParseError",
    "EncodingError",
    "ConfigError",
    "IllegalPhaseError",
    "RequestInProgressError",
    "ContractRejected",
    "UnresolvedError",
    "UnavailableError",
    "UnresolvedOwnerError",
    "WalletUnavailableError",
]
