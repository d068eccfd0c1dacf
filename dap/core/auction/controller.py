"""
Auction Session Controller - Client-side protocol state machine.

The registrar enforces the real rules; this controller tracks the phase it
*believes* each domain is in and drives the ordered sequence

    start commit -> commit bid -> start reveal -> reveal bid -> finalize -> withdraw

Every transition follows the same dispatch contract:

1. Guard:     refuse locally (IllegalPhaseError) if the believed phase does
              not allow the action, and refuse (RequestInProgressError) if
              another request for the same key is still pending.
2. Build:     compute the commitment where relevant.
3. Submit:    hand the request to the LedgerGateway and wait.
4. Confirmed: advance the believed snapshot and notify observers.
5. Otherwise: keep the believed phase, force a snapshot read to
              resynchronize, then raise ContractRejected / UnresolvedError.

The guard is optimistic only: the believed phase may be stale, which is
why the ledger's answer always wins in reconcile().
"""

import asyncio
from typing import Callable, Dict, List, Optional, Set, Union

from dap.core.auction.commitment import Commitment, commitment_hex, compute_commitment
from dap.core.auction.state import (
    AuctionPhase,
    AuctionSnapshot,
    PendingRequest,
    RequestKind,
)
from dap.core.errors import (
    ContractRejected,
    EncodingError,
    IllegalPhaseError,
    RequestInProgressError,
    UnavailableError,
    UnresolvedError,
)
from dap.network.gateway import LedgerGateway, Outcome, Receipt
from dap.utils.logger import get_logger

logger = get_logger("controller")

SnapshotObserver = Callable[[str, AuctionSnapshot], None]


class AuctionSessionController:
    """
    Believed auction state for one connected account.

    Owns one AuctionSnapshot per tracked domain plus the single-flight
    bookkeeping. Constructed per session and discarded when the account
    changes; nothing here is global.
    """

    # Phases in which each request may be sent (None = any phase)
    ALLOWED_PHASES: Dict[RequestKind, Optional[Set[AuctionPhase]]] = {
        RequestKind.START_COMMIT: {AuctionPhase.NONE},
        RequestKind.COMMIT_BID: {AuctionPhase.COMMIT},
        RequestKind.START_REVEAL: {AuctionPhase.COMMIT},
        RequestKind.REVEAL_BID: {AuctionPhase.REVEAL},
        RequestKind.FINALIZE: {AuctionPhase.REVEAL},
        RequestKind.WITHDRAW: None,
    }

    # Phase reached when a transition is confirmed
    NEXT_PHASE: Dict[RequestKind, AuctionPhase] = {
        RequestKind.START_COMMIT: AuctionPhase.COMMIT,
        RequestKind.START_REVEAL: AuctionPhase.REVEAL,
        RequestKind.FINALIZE: AuctionPhase.FINALIZED,
    }

    def __init__(self, gateway: LedgerGateway, account: str):
        self.gateway = gateway
        self.account = account
        self.tracked_domain: Optional[str] = None

        self._snapshots: Dict[str, AuctionSnapshot] = {}
        self._pending: Dict[str, PendingRequest] = {}
        self._commitments: Dict[str, Commitment] = {}
        self._unacknowledged: Dict[str, RequestKind] = {}
        self._observers: List[SnapshotObserver] = []

    # =========================================================================
    # Believed State
    # =========================================================================

    def track(self, domain: str) -> None:
        """Make a domain the one the scheduler keeps in sync."""
        self.tracked_domain = domain
        self._snapshots.setdefault(domain, AuctionSnapshot())
        logger.debug(f"Tracking {domain}")

    def untrack(self) -> None:
        self.tracked_domain = None

    def snapshot(self, domain: str) -> AuctionSnapshot:
        """Believed snapshot (an empty NONE-phase record if never read)."""
        return self._snapshots.get(domain, AuctionSnapshot())

    def phase(self, domain: str) -> AuctionPhase:
        return self.snapshot(domain).phase

    def pending(self, key: str) -> Optional[PendingRequest]:
        return self._pending.get(key)

    def commitment_for(self, domain: str) -> Optional[Commitment]:
        """Commitment of the last bid confirmed from this session."""
        return self._commitments.get(domain)

    def needs_acknowledgement(self, domain: str) -> bool:
        return domain in self._unacknowledged

    def acknowledge_unresolved(self, domain: str) -> None:
        """
        Allow bids on a domain again after an unresolved commit/reveal.

        Call only after checking the resynchronized snapshot: the earlier
        request may still have been executed.
        """
        if self._unacknowledged.pop(domain, None) is not None:
            logger.info(f"Unresolved request for {domain} acknowledged")

    def subscribe(self, observer: SnapshotObserver) -> Callable[[], None]:
        """Call observer(domain, snapshot) whenever a snapshot is replaced."""
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def reconcile(self, domain: str, snapshot: AuctionSnapshot) -> None:
        """
        Overwrite the believed snapshot with ledger truth.

        Unconditional and safe at any time, including while a request for
        the domain is pending; pending bookkeeping is left alone.
        """
        previous = self._snapshots.get(domain)
        self._snapshots[domain] = snapshot
        if previous is not None and previous.phase != snapshot.phase:
            logger.info(f"{domain}: phase {previous.phase.label} -> {snapshot.phase.label}")
        self._notify(domain, snapshot)

    async def refresh(self, domain: str) -> AuctionSnapshot:
        """
        Read the ledger and reconcile.

        Raises:
            UnavailableError: The read failed; believed state is unchanged
        """
        snapshot = await self.gateway.get_snapshot(domain)
        self.reconcile(domain, snapshot)
        return snapshot

    def _notify(self, domain: str, snapshot: AuctionSnapshot) -> None:
        for observer in list(self._observers):
            observer(domain, snapshot)

    # =========================================================================
    # Transitions
    # =========================================================================

    async def start_commit_phase(self, domain: str) -> Receipt:
        return await self._dispatch(RequestKind.START_COMMIT, domain)

    async def commit_bid(self, domain: str, amount: int, secret: Union[str, bytes]) -> Receipt:
        """
        Commit a sealed bid; the amount is attached as the payment.

        Raises:
            EncodingError: amount/secret cannot be committed
        """
        self._guard(RequestKind.COMMIT_BID, domain, domain)
        commitment = compute_commitment(self.account, amount, secret)
        receipt = await self._dispatch(
            RequestKind.COMMIT_BID,
            domain,
            args=(amount, _secret_text(secret)),
            value=amount,
        )
        self._commitments[domain] = commitment
        logger.info(f"Bid committed for {domain}: {commitment_hex(commitment)}")
        return receipt

    async def start_reveal_phase(self, domain: str) -> Receipt:
        return await self._dispatch(RequestKind.START_REVEAL, domain)

    async def reveal_bid(self, domain: str, amount: int, secret: Union[str, bytes]) -> Receipt:
        self._guard(RequestKind.REVEAL_BID, domain, domain)
        revealed = compute_commitment(self.account, amount, secret)
        expected = self._commitments.get(domain)
        if expected is not None and revealed != expected:
            # The ledger decides; a bid committed elsewhere may still match
            logger.warning(f"Reveal for {domain} does not match the bid committed in this session")
        return await self._dispatch(
            RequestKind.REVEAL_BID,
            domain,
            args=(amount, _secret_text(secret)),
        )

    async def finalize_auction(self, domain: str) -> Receipt:
        return await self._dispatch(RequestKind.FINALIZE, domain)

    async def withdraw(self) -> Receipt:
        """Withdraw refunds owed to this account. Legal in any phase."""
        return await self._dispatch(RequestKind.WITHDRAW, None)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _check_acknowledged(self, kind: RequestKind, domain: str) -> None:
        previous = self._unacknowledged.get(domain)
        if previous is not None:
            raise UnresolvedError(
                f"Outcome of the earlier {previous.describe()} for {domain!r} is unknown; "
                f"check the auction state and acknowledge it before trying to {kind.describe()} again"
            )

    def _guard(self, kind: RequestKind, domain: Optional[str], key: str) -> None:
        allowed = self.ALLOWED_PHASES[kind]
        if allowed is not None:
            phase = self.phase(domain)
            if phase not in allowed:
                raise IllegalPhaseError(kind, domain, phase)

        in_flight = self._pending.get(key)
        if in_flight is not None:
            raise RequestInProgressError(key, in_flight.kind)

        if not kind.idempotent:
            self._check_acknowledged(kind, key)

    async def _dispatch(
        self,
        kind: RequestKind,
        domain: Optional[str],
        args=(),
        value: int = 0,
    ) -> Receipt:
        key = domain if kind.takes_domain else self.account
        self._guard(kind, domain, key)

        self._pending[key] = PendingRequest(kind=kind, key=key)
        try:
            receipt = await self.gateway.submit(kind, domain, args, value)
        except asyncio.CancelledError:
            # Already signed requests cannot be recalled; stop waiting only
            logger.warning(f"Stopped waiting for {kind.value}({key}); outcome unresolved")
            if not kind.idempotent:
                self._unacknowledged[key] = kind
            raise
        finally:
            self._pending.pop(key, None)

        if receipt.outcome == Outcome.CONFIRMED:
            self._apply_confirmed(kind, domain)
            return receipt

        if receipt.outcome == Outcome.UNRESOLVED and not kind.idempotent:
            self._unacknowledged[key] = kind

        if domain is not None:
            await self._resynchronize(domain)

        if receipt.outcome == Outcome.REJECTED:
            raise ContractRejected(receipt.reason, receipt=receipt)
        raise UnresolvedError(
            f"Outcome of {kind.describe()} unknown ({receipt.reason or 'no receipt'}); "
            f"auction state was re-read, check it before retrying",
            receipt=receipt,
        )

    def _apply_confirmed(self, kind: RequestKind, domain: Optional[str]) -> None:
        next_phase = self.NEXT_PHASE.get(kind)
        if next_phase is None or domain is None:
            return
        # Bidder counts and highest bid are left for the next poll
        self.reconcile(domain, self.snapshot(domain).with_phase(next_phase))

    async def _resynchronize(self, domain: str) -> None:
        try:
            await self.refresh(domain)
        except UnavailableError as exc:
            logger.warning(f"Resynchronization of {domain} failed: {exc.message}")


def _secret_text(secret: Union[str, bytes]) -> str:
    """The registrar takes the secret as a string argument."""
    if isinstance(secret, str):
        return secret
    if not isinstance(secret, (bytes, bytearray)):
        raise EncodingError(f"Secret must be str or bytes, got {type(secret).__name__}")
    try:
        return bytes(secret).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncodingError("Secret bytes must be UTF-8 to be sent to the registrar") from exc


__all__ = ["AuctionSessionController"]
