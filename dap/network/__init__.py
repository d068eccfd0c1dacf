"""
DAP Network Module - Everything that talks to the ledger.

Provides the wallet boundary, the registrar gateway and the polling loop.
"""

from dap.network.abi import DOMAIN_REGISTRAR_ABI, DEFAULT_CONTRACT_ADDRESS
from dap.network.wallet import (
    PendingHandle,
    Wallet,
    Web3PendingHandle,
    Web3Wallet,
)
from dap.network.gateway import (
    Outcome,
    Receipt,
    LedgerGateway,
    Web3LedgerGateway,
    await_receipt,
    send_and_wait,
    DEFAULT_RECEIPT_TIMEOUT,
)
from dap.network.scheduler import PollingScheduler, DEFAULT_POLL_INTERVAL

__all__ = [
    # ABI
    "DOMAIN_REGISTRAR_ABI",
    "DEFAULT_CONTRACT_ADDRESS",
    # Wallet
    "PendingHandle",
    "Wallet",
    "Web3PendingHandle",
    "Web3Wallet",
    # Gateway
    "Outcome",
    "Receipt",
    "LedgerGateway",
    "Web3LedgerGateway",
    "await_receipt",
    "send_and_wait",
    "DEFAULT_RECEIPT_TIMEOUT",
    # Polling
    "PollingScheduler",
    "DEFAULT_POLL_INTERVAL",
]
