"""
Ledger Gateway - The only component that talks to the registrar.

Two operation families:

1. Reads (get_snapshot, get_phase, list_registered_domains, resolve_owner,
   resolve_domains): side-effect free, safe to retry, fail only with
   UnavailableError.

2. submit(kind, domain, args, value): builds the contract call, hands it to
   the Wallet for signing and waits for the receipt. It never raises for
   ledger outcomes; it returns a Receipt whose outcome is one of

   - CONFIRMED:  included and executed
   - REJECTED:   refused by the contract or provider (revert reason kept)
   - UNRESOLVED: contact lost before the outcome was known. The request
                 may still land, so callers must re-read state instead
                 of resubmitting.

The gateway holds no auction state.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, List, Optional, Sequence, Tuple

from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, Web3Exception, Web3RPCError

from dap.crypto import is_zero_address
from dap.core.auction.state import AuctionPhase, AuctionSnapshot, RequestKind
from dap.core.errors import (
    ContractRejected,
    UnavailableError,
    UnresolvedError,
    WalletUnavailableError,
)
from dap.network.abi import DOMAIN_REGISTRAR_ABI
from dap.network.wallet import PendingHandle, Wallet
from dap.utils.logger import get_logger

logger = get_logger("gateway")

DEFAULT_RECEIPT_TIMEOUT = 120.0

READ_ERRORS = (Web3Exception, OSError, asyncio.TimeoutError, ValueError)


# =============================================================================
# Receipts
# =============================================================================


class Outcome(IntEnum):
    """Resolution of a state-changing request."""
    CONFIRMED = 0
    REJECTED = 1
    UNRESOLVED = 2


@dataclass(frozen=True)
class Receipt:
    """Result of submit() or a value transfer."""
    outcome: Outcome
    tx_hash: Optional[str] = None
    reason: str = ""
    block_number: Optional[int] = None

    @property
    def confirmed(self) -> bool:
        return self.outcome == Outcome.CONFIRMED


async def await_receipt(handle: PendingHandle, timeout: float) -> Receipt:
    """
    Wait for a pending handle and classify the result.

    A missing receipt is UNRESOLVED, status 1 is CONFIRMED and anything
    else is REJECTED.
    """
    try:
        raw = await handle.wait(timeout)
    except UnresolvedError as exc:
        logger.warning(f"Outcome of {handle.tx_hash} unknown: {exc.message}")
        return Receipt(Outcome.UNRESOLVED, tx_hash=handle.tx_hash, reason=exc.message)

    block_number = raw.get("blockNumber")
    if raw.get("status") == 1:
        return Receipt(Outcome.CONFIRMED, tx_hash=handle.tx_hash, block_number=block_number)

    return Receipt(
        Outcome.REJECTED,
        tx_hash=handle.tx_hash,
        reason="transaction reverted",
        block_number=block_number,
    )


async def send_and_wait(
    wallet: Wallet,
    to: str,
    payload=b"",
    value: int = 0,
    timeout: float = DEFAULT_RECEIPT_TIMEOUT,
) -> Receipt:
    """Send through the wallet and resolve to a Receipt; never raises for outcomes."""
    try:
        handle = await wallet.send_request(to, payload, value)
    except ContractRejected as exc:
        return Receipt(Outcome.REJECTED, reason=exc.reason)
    except UnresolvedError as exc:
        return Receipt(Outcome.UNRESOLVED, reason=exc.message)
    return await await_receipt(handle, timeout)


# =============================================================================
# Gateway Interface
# =============================================================================


class LedgerGateway(ABC):
    """Read and submit operations against the registrar."""

    @abstractmethod
    async def get_snapshot(self, domain: str) -> AuctionSnapshot:
        """Full auction record for a domain."""

    @abstractmethod
    async def get_phase(self, domain: str) -> AuctionPhase:
        """Current phase of a domain auction."""

    @abstractmethod
    async def list_registered_domains(self) -> List[str]:
        """Every domain with a registered owner."""

    @abstractmethod
    async def resolve_owner(self, domain: str) -> Optional[str]:
        """Owner of a domain, None if unregistered."""

    @abstractmethod
    async def resolve_domains(self, account: str) -> List[str]:
        """Domains owned by an account, in ledger order."""

    @abstractmethod
    async def submit(
        self,
        kind: RequestKind,
        domain: Optional[str],
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> Receipt:
        """Send a state-changing request and wait for its outcome."""


# =============================================================================
# Web3 Implementation
# =============================================================================


class Web3LedgerGateway(LedgerGateway):
    """
    LedgerGateway over a web3 provider.

    Reads are eth_call against the registrar; submissions are built with
    build_transaction (which runs gas estimation, so a call the contract
    would revert is rejected before anything is signed) and then sent
    through the wallet.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        contract_address: str,
        wallet: Wallet,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        contract=None,
    ):
        self.w3 = w3
        self.wallet = wallet
        self.receipt_timeout = receipt_timeout
        self.contract_address = AsyncWeb3.to_checksum_address(contract_address)
        self.contract = contract or w3.eth.contract(
            address=self.contract_address,
            abi=DOMAIN_REGISTRAR_ABI,
        )

    async def _call(self, fn_name: str, *args):
        try:
            return await getattr(self.contract.functions, fn_name)(*args).call()
        except READ_ERRORS as exc:
            raise UnavailableError(f"{fn_name} failed: {exc}") from exc

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_phase(self, domain: str) -> AuctionPhase:
        raw = await self._call("retrieveDomainPhase", domain)
        try:
            return AuctionPhase.parse(raw)
        except ValueError as exc:
            raise UnavailableError(f"Unrecognised phase for {domain!r}: {raw!r}") from exc

    async def get_snapshot(self, domain: str) -> AuctionSnapshot:
        bidders_count = await self._call("getBiddersCountByDomain", domain)
        phase = await self.get_phase(domain)
        highest_bidder, highest_bid = await self._call("domainAuctions", domain)

        snapshot = AuctionSnapshot(
            phase=phase,
            bidders_count=int(bidders_count),
            highest_bidder=None if is_zero_address(highest_bidder) else highest_bidder,
            highest_bid=int(highest_bid),
        )
        logger.debug(f"Snapshot for {domain}: {snapshot}")
        return snapshot

    async def list_registered_domains(self) -> List[str]:
        return list(await self._call("getRegisteredDomains"))

    async def resolve_owner(self, domain: str) -> Optional[str]:
        owner = await self._call("resolveDomainToAddress", domain)
        return None if is_zero_address(owner) else owner

    async def resolve_domains(self, account: str) -> List[str]:
        try:
            owner = AsyncWeb3.to_checksum_address(account)
        except ValueError as exc:
            raise UnavailableError(f"Invalid owner address {account!r}") from exc
        return list(await self._call("resolveAddressToDomains", owner))

    # =========================================================================
    # Submission
    # =========================================================================

    @staticmethod
    def _call_args(kind: RequestKind, domain: Optional[str], args: Sequence[Any]) -> Tuple:
        if kind.takes_domain:
            return (domain, *args)
        return tuple(args)

    async def submit(
        self,
        kind: RequestKind,
        domain: Optional[str],
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> Receipt:
        if kind == RequestKind.TRANSFER:
            raise ValueError("Value transfers are sent through the wallet, not the registrar")

        sender = self.wallet.active_account
        if not sender:
            raise WalletUnavailableError("No connected account")

        fn = getattr(self.contract.functions, kind.value)(*self._call_args(kind, domain, args))
        try:
            tx = await fn.build_transaction({
                "from": AsyncWeb3.to_checksum_address(sender),
                "value": value,
            })
        except (ContractLogicError, Web3RPCError) as exc:
            reason = getattr(exc, "message", None) or str(exc)
            logger.warning(f"{kind.value}({domain}) rejected during estimation: {reason}")
            return Receipt(Outcome.REJECTED, reason=reason)
        except READ_ERRORS as exc:
            # Nothing was signed yet, but the caller still resynchronizes
            logger.warning(f"{kind.value}({domain}) could not be prepared: {exc}")
            return Receipt(Outcome.UNRESOLVED, reason=str(exc))

        logger.debug(f"Submitting {kind.value}({domain}) from {sender}")
        receipt = await send_and_wait(
            self.wallet,
            to=self.contract_address,
            payload=tx["data"],
            value=value,
            timeout=self.receipt_timeout,
        )
        logger.info(f"{kind.value}({domain}) -> {receipt.outcome.name} {receipt.tx_hash or ''}".rstrip())
        return receipt


__all__ = [
    "Outcome",
    "Receipt",
    "await_receipt",
    "send_and_wait",
    "LedgerGateway",
    "Web3LedgerGateway",
    "DEFAULT_RECEIPT_TIMEOUT",
]
