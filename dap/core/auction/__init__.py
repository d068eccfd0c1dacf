"""
DAP Auction Module.

This module provides the client side of the commit-reveal registrar:
- Auction phases and snapshots
- Bid commitments
- The session controller (dap.core.auction.controller)
"""

from dap.core.auction.state import (
    AuctionPhase,
    AuctionSnapshot,
    PendingRequest,
    RequestKind,
)

from dap.core.auction.commitment import (
    Commitment,
    MAX_UINT256,
    encode_commitment_preimage,
    compute_commitment,
    commitment_hex,
)

__all__ = [
    # State
    "AuctionPhase",
    "AuctionSnapshot",
    "PendingRequest",
    "RequestKind",
    # Commitments
    "Commitment",
    "MAX_UINT256",
    "encode_commitment_preimage",
    "compute_commitment",
    "commitment_hex",
]
