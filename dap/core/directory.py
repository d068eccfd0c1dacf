"""
Directory Index - Registered domains and owner lookups.

A read-through cache over registrar queries used for presentation. Every
lookup queries the ledger and stores the answer; entries are replaced only
by a later query of the same key (there is no expiry).

An unregistered domain is a normal answer (owner None), not an error.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from dap.core.amount import to_display_string
from dap.crypto import normalize_address
from dap.core.errors import (
    ContractRejected,
    UnresolvedError,
    UnresolvedOwnerError,
    WalletUnavailableError,
)
from dap.network.gateway import (
    DEFAULT_RECEIPT_TIMEOUT,
    LedgerGateway,
    Outcome,
    Receipt,
    send_and_wait,
)
from dap.network.wallet import Wallet
from dap.utils.logger import get_logger

logger = get_logger("directory")


@dataclass(frozen=True)
class DomainRecord:
    """Cached owner lookup."""
    domain: str
    owner: Optional[str] = None

    @property
    def registered(self) -> bool:
        return self.owner is not None


class DirectoryIndex:
    """
    Locally known registered domains and owner lookups.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        wallet: Optional[Wallet] = None,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
    ):
        self.gateway = gateway
        self.wallet = wallet
        self.receipt_timeout = receipt_timeout

        self._registered: Tuple[str, ...] = ()
        self._records: Dict[str, DomainRecord] = {}
        self._owned: Dict[str, Tuple[str, ...]] = {}

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def registered_domains(self) -> Tuple[str, ...]:
        """Registered domains in ledger order, as of the last refresh."""
        return self._registered

    async def refresh_registered(self) -> FrozenSet[str]:
        """
        Replace the registered-domain list with the ledger's.

        Raises:
            UnavailableError: Read failed; the cached list is kept
        """
        domains = await self.gateway.list_registered_domains()
        self._registered = tuple(domains)
        logger.debug(f"Registered domains: {len(self._registered)}")
        return frozenset(self._registered)

    async def resolve_owner(self, domain: str) -> Optional[str]:
        """Owner of a domain, or None when it is not registered."""
        owner = await self.gateway.resolve_owner(domain)
        self._records[domain] = DomainRecord(domain=domain, owner=owner)
        logger.debug(f"Owner of domain {domain}: {owner}")
        return owner

    async def resolve_domains(self, account: str) -> List[str]:
        """Domains owned by an account, in ledger order."""
        domains = await self.gateway.resolve_domains(account)
        self._owned[normalize_address(account)] = tuple(domains)
        logger.debug(f"Domains owned by {account}: {domains}")
        return list(domains)

    def cached_record(self, domain: str) -> Optional[DomainRecord]:
        return self._records.get(domain)

    @property
    def owner_lookups(self) -> Dict[str, Optional[str]]:
        return {domain: record.owner for domain, record in self._records.items()}

    @property
    def owned_lookups(self) -> Dict[str, Tuple[str, ...]]:
        return dict(self._owned)

    def clear_owned(self) -> None:
        """Forget account lookups (used when the connected account changes)."""
        self._owned.clear()

    # =========================================================================
    # Value Transfer
    # =========================================================================

    async def transfer_value(self, target_domain: str, amount: int) -> Receipt:
        """
        Pay the owner of a domain with a plain value transfer.

        Raises:
            EncodingError: amount is not a non-negative integer
            UnresolvedOwnerError: The domain has no owner
            ContractRejected: The wallet or ledger refused the transfer
            UnresolvedError: Outcome unknown, check the balance before resending
        """
        display = to_display_string(amount)
        if self.wallet is None:
            raise WalletUnavailableError("No wallet available for value transfers")

        owner = await self.resolve_owner(target_domain)
        if owner is None:
            raise UnresolvedOwnerError(target_domain)

        receipt = await send_and_wait(
            self.wallet,
            to=owner,
            value=amount,
            timeout=self.receipt_timeout,
        )
        if receipt.outcome == Outcome.REJECTED:
            raise ContractRejected(receipt.reason, receipt=receipt)
        if receipt.outcome == Outcome.UNRESOLVED:
            raise UnresolvedError(
                f"Outcome of transfer to the owner of {target_domain} unknown "
                f"({receipt.reason or 'no receipt'})",
                receipt=receipt,
            )

        logger.info(f"Sent {display} ETH to the owner of {target_domain}")
        return receipt
