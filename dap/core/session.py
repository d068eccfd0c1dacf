"""
Auction Session - One connected account's view of the registrar.

Wires together the pieces a front end needs:

- an AuctionSessionController for the connected account
- a DirectoryIndex for registered domains and owner lookups
- a PollingScheduler that runs while a domain is tracked
- the wallet's account-change notifications

It is also the presentation boundary: every operation returns a plain
success value (bool / result / None) and records a status message plus
error kind instead of raising. Subscribers receive a read-only SessionView
after every change.
"""

from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from dap.core.amount import to_base_units, to_display_string
from dap.core.auction.controller import AuctionSessionController
from dap.core.auction.state import AuctionPhase, AuctionSnapshot
from dap.core.directory import DirectoryIndex
from dap.core.errors import DAPError, ParseError, WalletUnavailableError
from dap.network.gateway import DEFAULT_RECEIPT_TIMEOUT, LedgerGateway
from dap.network.scheduler import DEFAULT_POLL_INTERVAL, PollingScheduler
from dap.network.wallet import Wallet
from dap.utils.logger import get_logger
from dap.utils.validation import validate_address, validate_domain, validate_secret

logger = get_logger("session")

INITIAL_STATUS = "Start by entering a domain name to auction, e.g. example.ntu"


class SessionView(BaseModel):
    """Read-only projection handed to the presentation layer."""

    model_config = ConfigDict(frozen=True)

    account: Optional[str] = None
    tracked_domain: Optional[str] = None
    snapshot: Optional[AuctionSnapshot] = None
    phase: AuctionPhase = AuctionPhase.NONE
    pending: Optional[str] = None
    pending_age: Optional[float] = None
    status_message: str = INITIAL_STATUS
    error_kind: Optional[str] = None
    poll_error: Optional[str] = None
    registered_domains: Tuple[str, ...] = ()
    owner_lookups: Dict[str, Optional[str]] = {}
    owned_domains: Dict[str, Tuple[str, ...]] = {}

    @property
    def highest_bid_display(self) -> str:
        return to_display_string(self.snapshot.highest_bid if self.snapshot else 0)


ViewSubscriber = Callable[[SessionView], None]


class AuctionSession:
    """
    Session for the account currently selected in the wallet.

    Usage:
        async with AuctionSession(wallet, gateway) as session:
            await session.track("alice.ntu")
            await session.start_commit_phase()
    """

    def __init__(
        self,
        wallet: Wallet,
        gateway: LedgerGateway,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
    ):
        self.wallet = wallet
        self.gateway = gateway
        self.poll_interval = poll_interval
        self.directory = DirectoryIndex(gateway, wallet, receipt_timeout)

        self.controller: Optional[AuctionSessionController] = None
        self.scheduler: Optional[PollingScheduler] = None

        self.status_message = INITIAL_STATUS
        self.error_kind: Optional[str] = None
        self.poll_error: Optional[str] = None

        self._subscribers: List[ViewSubscriber] = []
        self._unsubscribe_wallet: Optional[Callable[[], None]] = None

    async def __aenter__(self) -> "AuctionSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def account(self) -> Optional[str]:
        return self.controller.account if self.controller else None

    @property
    def tracked_domain(self) -> Optional[str]:
        return self.controller.tracked_domain if self.controller else None

    async def connect(self) -> Optional[str]:
        """Ask the wallet for accounts and bind the first one."""
        if self._unsubscribe_wallet is None:
            self._unsubscribe_wallet = self.wallet.on_accounts_changed(self._on_accounts_changed)

        try:
            accounts = await self.wallet.request_accounts()
        except DAPError as exc:
            self._fail("Error connecting to wallet", exc)
            return None

        self._bind(accounts[0])
        logger.info(f"Session connected for {accounts[0]}")
        self._publish()
        return accounts[0]

    async def close(self) -> None:
        """Stop polling and detach from the wallet."""
        await self._stop_polling()
        if self._unsubscribe_wallet is not None:
            self._unsubscribe_wallet()
            self._unsubscribe_wallet = None
        logger.info("Session closed")

    def _bind(self, account: str) -> None:
        self.controller = AuctionSessionController(self.gateway, account)
        self.controller.subscribe(lambda domain, snapshot: self._publish())
        self.scheduler = PollingScheduler(
            self.controller,
            directory=self.directory,
            wallet=self.wallet,
            interval=self.poll_interval,
            on_error=self._on_poll_error,
        )

    async def _stop_polling(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()

    async def _on_accounts_changed(self, accounts: List[str]) -> None:
        """Drop everything tied to the previous account."""
        previous = self.account
        await self._stop_polling()
        self.directory.clear_owned()
        self.controller = None
        self.scheduler = None

        if accounts:
            self._bind(accounts[0])
            self._set_status(f"Account changed to {accounts[0]}")
        else:
            self._set_status("Wallet disconnected")
        logger.info(f"Session account {previous} -> {self.account}")

    # =========================================================================
    # Presentation
    # =========================================================================

    def subscribe(self, subscriber: ViewSubscriber) -> None:
        self._subscribers.append(subscriber)

    def view(self) -> SessionView:
        domain = self.tracked_domain
        snapshot = self.controller.snapshot(domain) if domain else None
        pending = self.controller.pending(domain) if domain else None
        return SessionView(
            account=self.account,
            tracked_domain=domain,
            snapshot=snapshot,
            phase=snapshot.phase if snapshot else AuctionPhase.NONE,
            pending=pending.kind.describe() if pending else None,
            pending_age=pending.age if pending else None,
            status_message=self.status_message,
            error_kind=self.error_kind,
            poll_error=self.poll_error,
            registered_domains=self.directory.registered_domains,
            owner_lookups=self.directory.owner_lookups,
            owned_domains=self.directory.owned_lookups,
        )

    def _publish(self) -> None:
        if not self._subscribers:
            return
        view = self.view()
        for subscriber in list(self._subscribers):
            subscriber(view)

    def _set_status(self, message: str, error_kind: Optional[str] = None) -> None:
        self.status_message = message
        self.error_kind = error_kind
        self._publish()

    def _fail(self, context: str, exc: DAPError) -> None:
        logger.warning(f"{context}: {exc.message}")
        self._set_status(f"{context}: {exc.message}", exc.kind)

    def _on_poll_error(self, exc: DAPError) -> None:
        self.poll_error = exc.message
        self._publish()

    def _require_controller(self) -> AuctionSessionController:
        if self.controller is None:
            raise WalletUnavailableError("No connected account")
        return self.controller

    def _require_domain(self) -> str:
        domain = self._require_controller().tracked_domain
        if not domain:
            raise ParseError("Enter a domain name first")
        return domain

    # =========================================================================
    # Auction Tracking
    # =========================================================================

    async def track(self, domain: str) -> Optional[AuctionSnapshot]:
        """Load auction details for a domain and keep them in sync."""
        try:
            controller = self._require_controller()
            ok, error = validate_domain(domain)
            if not ok:
                raise ParseError(error)

            controller.track(domain)
            self.scheduler.start()
            snapshot = await controller.refresh(domain)
        except DAPError as exc:
            self._fail("Error fetching auction data", exc)
            return None

        self.poll_error = None
        self._set_status(f"Auction details loaded for {domain}")
        return snapshot

    async def untrack(self) -> None:
        await self._stop_polling()
        if self.controller is not None:
            self.controller.untrack()
        self._publish()

    async def refresh(self) -> Optional[AuctionSnapshot]:
        """Re-read the tracked domain now."""
        try:
            return await self._require_controller().refresh(self._require_domain())
        except DAPError as exc:
            self._fail("Error fetching auction data", exc)
            return None

    def acknowledge_unresolved(self) -> None:
        """Re-enable bidding on the tracked domain after an unresolved bid."""
        if self.controller is not None and self.tracked_domain:
            self.controller.acknowledge_unresolved(self.tracked_domain)
            self._set_status(f"Unresolved request for {self.tracked_domain} acknowledged")

    # =========================================================================
    # Transitions
    # =========================================================================

    async def _transition(
        self,
        busy: Callable[[str], str],
        done: str,
        failed: str,
        action: Callable[[AuctionSessionController, str], Awaitable],
    ) -> bool:
        try:
            controller = self._require_controller()
            domain = self._require_domain()
            self._set_status(busy(domain))
            await action(controller, domain)
        except DAPError as exc:
            self._fail(failed, exc)
            return False

        self._set_status(done)
        return True

    async def start_commit_phase(self) -> bool:
        return await self._transition(
            lambda d: f"Starting commit phase for domain: {d}, Please Wait...",
            "Commit phase started",
            "Error starting commit phase",
            lambda c, d: c.start_commit_phase(d),
        )

    async def commit_bid(self, amount_text: str, secret: str) -> bool:
        """Commit a bid given as decimal text (e.g. "1.5")."""
        try:
            amount = self._parse_bid(amount_text, secret)
        except DAPError as exc:
            self._fail("Error committing bid", exc)
            return False

        return await self._transition(
            lambda d: f"Committing bid for domain: {d}, with amount: {amount_text}, Please Wait...",
            "Bid committed",
            "Error committing bid",
            lambda c, d: c.commit_bid(d, amount, secret),
        )

    async def start_reveal_phase(self) -> bool:
        return await self._transition(
            lambda d: f"Starting reveal phase for domain: {d}, Please Wait...",
            "Reveal phase started",
            "Error starting reveal phase",
            lambda c, d: c.start_reveal_phase(d),
        )

    async def reveal_bid(self, amount_text: str, secret: str) -> bool:
        try:
            amount = self._parse_bid(amount_text, secret)
        except DAPError as exc:
            self._fail("Error revealing bid", exc)
            return False

        return await self._transition(
            lambda d: f"Revealing bid for domain: {d}, with amount {amount_text}, Please Wait...",
            "Bid revealed",
            "Error revealing bid",
            lambda c, d: c.reveal_bid(d, amount, secret),
        )

    async def finalize_auction(self) -> bool:
        return await self._transition(
            lambda d: f"Finalizing auction for domain: {d}, Please Wait...",
            "Auction finalized",
            "Error finalizing auction",
            lambda c, d: c.finalize_auction(d),
        )

    async def withdraw(self) -> bool:
        try:
            controller = self._require_controller()
            self._set_status(f"Withdrawing funds for account: {controller.account}, Please Wait...")
            await controller.withdraw()
        except DAPError as exc:
            self._fail("Error withdrawing funds", exc)
            return False

        self._set_status("Funds withdrawn")
        return True

    @staticmethod
    def _parse_bid(amount_text: str, secret: str) -> int:
        amount = to_base_units(amount_text)
        ok, error = validate_secret(secret)
        if not ok:
            raise ParseError(error)
        return amount

    # =========================================================================
    # Directory
    # =========================================================================

    async def refresh_registered(self) -> Optional[Tuple[str, ...]]:
        try:
            await self.directory.refresh_registered()
        except DAPError as exc:
            self._fail("Error fetching registered domains", exc)
            return None
        self._publish()
        return self.directory.registered_domains

    async def find_owner(self, domain: str) -> Optional[str]:
        """Owner of a domain (None if unregistered or on failure)."""
        try:
            ok, error = validate_domain(domain)
            if not ok:
                raise ParseError(error)
            owner = await self.directory.resolve_owner(domain)
        except DAPError as exc:
            self._fail("Error fetching domain owner", exc)
            return None

        self._publish()
        return owner

    async def find_domains(self, account: str) -> Optional[List[str]]:
        try:
            ok, error = validate_address(account)
            if not ok:
                raise ParseError(error)
            domains = await self.directory.resolve_domains(account)
        except DAPError as exc:
            self._fail("Error fetching owned domains", exc)
            return None

        self._publish()
        return domains

    async def send_to_domain_owner(self, domain: str, amount_text: str) -> bool:
        try:
            ok, error = validate_domain(domain)
            if not ok:
                raise ParseError(error)
            amount = to_base_units(amount_text)
            self._set_status(f"Sending {amount_text} ETH to the owner of {domain}. Please Wait...")
            await self.directory.transfer_value(domain, amount)
        except DAPError as exc:
            self._fail("Error sending Ether to domain owner", exc)
            return False

        self._set_status(f"Sent {amount_text} ETH to the owner of {domain}")
        return True
