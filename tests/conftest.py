"""
Shared fakes for DAP tests.

FakeRegistrar plays the registrar contract in memory (same phase rules,
same bookkeeping) behind the LedgerGateway interface. Outcomes can be
forced per submission and reads can be made to fail.
"""

import asyncio
from collections import deque
from typing import Dict, List, Optional

import pytest

from dap.core.auction.controller import AuctionSessionController
from dap.core.auction.state import AuctionPhase, AuctionSnapshot, RequestKind
from dap.core.errors import UnavailableError, WalletUnavailableError
from dap.network.gateway import LedgerGateway, Outcome, Receipt
from dap.network.wallet import PendingHandle, Wallet


ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c3" * 20


# =============================================================================
# Registrar
# =============================================================================


class FakeRegistrar(LedgerGateway):
    """In-memory registrar behind the gateway interface."""

    # (required phase, phase afterwards)
    RULES = {
        RequestKind.START_COMMIT: (AuctionPhase.NONE, AuctionPhase.COMMIT),
        RequestKind.COMMIT_BID: (AuctionPhase.COMMIT, AuctionPhase.COMMIT),
        RequestKind.START_REVEAL: (AuctionPhase.COMMIT, AuctionPhase.REVEAL),
        RequestKind.REVEAL_BID: (AuctionPhase.REVEAL, AuctionPhase.REVEAL),
        RequestKind.FINALIZE: (AuctionPhase.REVEAL, AuctionPhase.FINALIZED),
    }

    def __init__(self, sender: str = ALICE):
        self.sender = sender
        self.auctions: Dict[str, AuctionSnapshot] = {}
        self.owners: Dict[str, str] = {}
        self.balances: Dict[str, int] = {}
        self.reads: List[tuple] = []
        self.submissions: List[tuple] = []
        self.fail_reads = False
        self.gate: Optional[asyncio.Event] = None
        self._forced = deque()
        self._tx_counter = 0

    # ---- helpers ----------------------------------------------------------

    def force_outcome(self, outcome: Outcome, reason: str = "", apply: bool = False) -> None:
        """Make the next submission resolve to outcome; apply=True still executes it."""
        self._forced.append((outcome, reason, apply))

    def set_phase(self, domain: str, phase: AuctionPhase) -> None:
        self.auctions[domain] = self.auctions.get(domain, AuctionSnapshot()).with_phase(phase)

    def submitted_kinds(self) -> List[RequestKind]:
        return [kind for kind, *_ in self.submissions]

    def _read(self, name: str, arg=None) -> None:
        self.reads.append((name, arg))
        if self.fail_reads:
            raise UnavailableError(f"{name} failed: connection refused")

    def _tx_hash(self) -> str:
        self._tx_counter += 1
        return "0x" + f"{self._tx_counter:064x}"

    # ---- reads ------------------------------------------------------------

    async def get_snapshot(self, domain: str) -> AuctionSnapshot:
        self._read("get_snapshot", domain)
        return self.auctions.get(domain, AuctionSnapshot())

    async def get_phase(self, domain: str) -> AuctionPhase:
        self._read("get_phase", domain)
        return self.auctions.get(domain, AuctionSnapshot()).phase

    async def list_registered_domains(self) -> List[str]:
        self._read("list_registered_domains")
        return list(self.owners)

    async def resolve_owner(self, domain: str) -> Optional[str]:
        self._read("resolve_owner", domain)
        return self.owners.get(domain)

    async def resolve_domains(self, account: str) -> List[str]:
        self._read("resolve_domains", account)
        return [d for d, owner in self.owners.items() if owner.lower() == account.lower()]

    # ---- submission -------------------------------------------------------

    async def submit(self, kind, domain, args=(), value=0) -> Receipt:
        self.submissions.append((kind, domain, tuple(args), value))
        if self.gate is not None:
            await self.gate.wait()

        if self._forced:
            outcome, reason, apply = self._forced.popleft()
            if apply:
                self._execute(kind, domain, args, value)
            return Receipt(outcome, tx_hash=self._tx_hash(), reason=reason)

        error = self._execute(kind, domain, args, value)
        if error:
            return Receipt(Outcome.REJECTED, reason=error)
        return Receipt(Outcome.CONFIRMED, tx_hash=self._tx_hash(), block_number=self._tx_counter)

    def _execute(self, kind, domain, args, value) -> str:
        if kind == RequestKind.WITHDRAW:
            self.balances[self.sender] = 0
            return ""

        snapshot = self.auctions.get(domain, AuctionSnapshot())
        required, after = self.RULES[kind]
        if snapshot.phase != required:
            return f"execution reverted: not in {required.label} phase"

        if kind == RequestKind.COMMIT_BID:
            snapshot = AuctionSnapshot(
                phase=after,
                bidders_count=snapshot.bidders_count + 1,
                highest_bidder=snapshot.highest_bidder,
                highest_bid=snapshot.highest_bid,
            )
        elif kind == RequestKind.REVEAL_BID and args[0] > snapshot.highest_bid:
            snapshot = AuctionSnapshot(
                phase=after,
                bidders_count=snapshot.bidders_count,
                highest_bidder=self.sender,
                highest_bid=args[0],
            )
        else:
            snapshot = snapshot.with_phase(after)

        if kind == RequestKind.FINALIZE and snapshot.highest_bidder:
            self.owners[domain] = snapshot.highest_bidder

        self.auctions[domain] = snapshot
        return ""


# =============================================================================
# Wallet
# =============================================================================


class FakePendingHandle(PendingHandle):
    """Handle resolving to a fixed receipt, or raising UnresolvedError."""

    def __init__(self, tx_hash: str, receipt: Optional[dict] = None, error: Optional[Exception] = None):
        self.tx_hash = tx_hash
        self.receipt = receipt if receipt is not None else {"status": 1, "blockNumber": 7}
        self.error = error
        self.waited_with: Optional[float] = None

    async def wait(self, timeout: float):
        self.waited_with = timeout
        if self.error is not None:
            raise self.error
        return self.receipt


class FakeWallet(Wallet):
    """Wallet with scripted accounts and send results."""

    def __init__(self, accounts=None):
        super().__init__()
        self.accounts = list(accounts if accounts is not None else [ALICE])
        self.sent: List[tuple] = []
        self.next_receipt: Optional[dict] = None
        self.next_wait_error: Optional[Exception] = None
        self.next_send_error: Optional[Exception] = None

    async def request_accounts(self):
        if not self.accounts:
            raise WalletUnavailableError("Wallet provider exposes no accounts")
        self.active_account = self.accounts[0]
        return list(self.accounts)

    async def send_request(self, to, payload=b"", value=0):
        self.sent.append((to, payload, value))
        if self.next_send_error is not None:
            error, self.next_send_error = self.next_send_error, None
            raise error
        handle = FakePendingHandle(
            "0x" + f"{len(self.sent):064x}",
            receipt=self.next_receipt,
            error=self.next_wait_error,
        )
        self.next_receipt = None
        self.next_wait_error = None
        return handle

    async def switch_accounts(self, accounts):
        self.accounts = list(accounts)
        await self.notify_accounts_changed(self.accounts)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def registrar():
    return FakeRegistrar(sender=ALICE)


@pytest.fixture
def wallet():
    return FakeWallet([ALICE])


@pytest.fixture
def controller(registrar):
    return AuctionSessionController(registrar, ALICE)


__all__ = [
    "ALICE",
    "BOB",
    "CAROL",
    "FakeRegistrar",
    "FakePendingHandle",
    "FakeWallet",
]
