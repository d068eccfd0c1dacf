"""
Domain Auction Platform (DAP)

Client for a sealed-bid, commit-reveal domain registrar running on an
EVM ledger:
- Deterministic bid commitments
- Phase-aware request sequencing against the registrar
- Polling-based reconciliation of believed auction state
- Registered-domain directory and owner payments
"""

__version__ = "0.1.0"
