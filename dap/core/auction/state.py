"""
Auction state records held by the client.

The authoritative auction lives in the registrar contract. What the client
keeps is a *believed* copy: an immutable AuctionSnapshot per domain that is
replaced wholesale whenever a read completes or a transition is confirmed.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Optional
import time


# =============================================================================
# Enums
# =============================================================================


class AuctionPhase(IntEnum):
    """Phase of a domain auction."""
    NONE = 0        # No auction opened yet
    COMMIT = 1      # Accepting sealed commitments
    REVEAL = 2      # Accepting reveals
    FINALIZED = 3   # Winner registered as owner

    @property
    def label(self) -> str:
        """Name used by the contract ("None", "Commit", ...)."""
        return self.name.capitalize()

    @classmethod
    def parse(cls, value) -> "AuctionPhase":
        """
        Interpret a phase value returned by the registrar.

        Accepts the contract's string labels (case-insensitive) and
        integer-encoded phases.

        Raises:
            ValueError: If the value is not a known phase
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if isinstance(value, str):
            key = value.strip().upper()
            if key.isdigit():
                return cls(int(key))
            if key in cls.__members__:
                return cls[key]
        raise ValueError(f"Unknown auction phase: {value!r}")


class RequestKind(Enum):
    """
    State-changing requests, valued by the registrar function they call.

    TRANSFER is a plain value transfer to a domain owner, not a contract call.
    """
    START_COMMIT = "startCommitPhase"
    COMMIT_BID = "commitBid"
    START_REVEAL = "startRevealPhase"
    REVEAL_BID = "revealBid"
    FINALIZE = "finalizeAuction"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"

    def describe(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def takes_domain(self) -> bool:
        return self not in (RequestKind.WITHDRAW, RequestKind.TRANSFER)

    @property
    def idempotent(self) -> bool:
        """False for requests that move bid funds or bid data if repeated."""
        return self not in (RequestKind.COMMIT_BID, RequestKind.REVEAL_BID)


_DESCRIPTIONS = {
    RequestKind.START_COMMIT: "start commit phase",
    RequestKind.COMMIT_BID: "commit bid",
    RequestKind.START_REVEAL: "start reveal phase",
    RequestKind.REVEAL_BID: "reveal bid",
    RequestKind.FINALIZE: "finalize auction",
    RequestKind.WITHDRAW: "withdraw",
    RequestKind.TRANSFER: "send value",
}


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class AuctionSnapshot:
    """
    Read-only view of one domain auction.

    Never mutated in place; use with_phase() or build a new one.
    """
    phase: AuctionPhase = AuctionPhase.NONE
    bidders_count: int = 0
    highest_bidder: Optional[str] = None
    highest_bid: int = 0

    def with_phase(self, phase: AuctionPhase) -> "AuctionSnapshot":
        return replace(self, phase=phase)


@dataclass(frozen=True)
class PendingRequest:
    """A state-changing request awaiting its outcome."""
    kind: RequestKind
    key: str                     # domain, or account for withdraw
    submitted_at: float = field(default_factory=time.time)

    @property
    def age(self) -> float:
        return time.time() - self.submitted_at


__all__ = [
    "AuctionPhase",
    "RequestKind",
    "AuctionSnapshot",
    "PendingRequest",
]
