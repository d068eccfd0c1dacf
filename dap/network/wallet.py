"""
Wallet - Signing provider boundary.

The client never holds private keys. A Wallet exposes the accounts it can
sign for, sends requests on their behalf and returns a PendingHandle that
resolves once the ledger has included the request.

Web3Wallet talks to a node that manages its own (unlocked) accounts over
JSON-RPC. HTTP providers cannot push account changes, so poll_accounts()
compares the node's account list on every scheduler tick and notifies
listeners when it changed.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Mapping, Optional, Union

from web3 import AsyncWeb3
from web3.exceptions import (
    ContractLogicError,
    TimeExhausted,
    Web3Exception,
    Web3RPCError,
)

from dap.core.errors import ContractRejected, UnresolvedError, WalletUnavailableError
from dap.utils.logger import get_logger

logger = get_logger("wallet")

AccountsListener = Callable[[List[str]], Any]

# Faults after which a request may or may not have reached the ledger
TRANSPORT_ERRORS = (Web3Exception, OSError, asyncio.TimeoutError)


# =============================================================================
# Interfaces
# =============================================================================


class PendingHandle(ABC):
    """A submitted request whose inclusion has not been observed yet."""

    tx_hash: str

    @abstractmethod
    async def wait(self, timeout: float) -> Mapping:
        """
        Wait for the receipt.

        Returns:
            Receipt mapping with at least "status" (1 = success)

        Raises:
            UnresolvedError: Timed out or lost contact before a receipt
        """


class Wallet(ABC):
    """Signing provider used for every state-changing request."""

    def __init__(self):
        self.active_account: Optional[str] = None
        self._listeners: List[AccountsListener] = []

    @abstractmethod
    async def request_accounts(self) -> List[str]:
        """
        Ask the provider for its accounts; the first becomes active.

        Raises:
            WalletUnavailableError: No provider or no accounts
        """

    @abstractmethod
    async def send_request(
        self,
        to: str,
        payload: Union[bytes, str] = b"",
        value: int = 0,
    ) -> PendingHandle:
        """
        Sign and send a request from the active account.

        Raises:
            WalletUnavailableError: No active account
            ContractRejected: The provider refused the request up front
            UnresolvedError: Transport failure while sending
        """

    async def poll_accounts(self) -> bool:
        """Check for an account change; True if listeners were notified."""
        return False

    def on_accounts_changed(self, listener: AccountsListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def notify_accounts_changed(self, accounts: List[str]) -> None:
        """Switch the active account and tell every listener."""
        self.active_account = accounts[0] if accounts else None
        logger.info(f"Account changed: {self.active_account}")
        for listener in list(self._listeners):
            result = listener(list(accounts))
            if inspect.isawaitable(result):
                await result


# =============================================================================
# Web3 Implementation
# =============================================================================


class Web3PendingHandle(PendingHandle):
    """Receipt wait for a transaction hash on a web3 provider."""

    def __init__(self, w3: AsyncWeb3, tx_hash: str):
        self.w3 = w3
        self.tx_hash = tx_hash

    async def wait(self, timeout: float) -> Mapping:
        try:
            return await self.w3.eth.wait_for_transaction_receipt(
                self.tx_hash, timeout=timeout
            )
        except TimeExhausted as exc:
            raise UnresolvedError(
                f"No receipt for {self.tx_hash} after {timeout}s"
            ) from exc
        except TRANSPORT_ERRORS as exc:
            raise UnresolvedError(
                f"Lost contact while waiting for {self.tx_hash}: {exc}"
            ) from exc


class Web3Wallet(Wallet):
    """Wallet backed by node-managed accounts (eth_accounts / eth_sendTransaction)."""

    def __init__(self, w3: AsyncWeb3):
        super().__init__()
        self.w3 = w3
        self._known_accounts: List[str] = []

    async def _fetch_accounts(self) -> List[str]:
        try:
            accounts = await self.w3.eth.accounts
        except TRANSPORT_ERRORS as exc:
            raise WalletUnavailableError(f"Cannot reach wallet provider: {exc}") from exc
        return [str(account) for account in accounts]

    async def request_accounts(self) -> List[str]:
        accounts = await self._fetch_accounts()
        if not accounts:
            raise WalletUnavailableError("Wallet provider exposes no accounts")

        self._known_accounts = accounts
        self.active_account = accounts[0]
        logger.info(f"Connected account: {self.active_account}")
        return accounts

    async def poll_accounts(self) -> bool:
        try:
            accounts = await self._fetch_accounts()
        except WalletUnavailableError as exc:
            logger.debug(f"Account poll skipped: {exc}")
            return False

        if accounts == self._known_accounts:
            return False

        self._known_accounts = accounts
        await self.notify_accounts_changed(accounts)
        return True

    async def send_request(
        self,
        to: str,
        payload: Union[bytes, str] = b"",
        value: int = 0,
    ) -> PendingHandle:
        if not self.active_account:
            raise WalletUnavailableError("No connected account")

        tx = {
            "from": AsyncWeb3.to_checksum_address(self.active_account),
            "to": AsyncWeb3.to_checksum_address(to),
            "value": value,
        }
        if payload:
            tx["data"] = payload

        try:
            tx_hash = await self.w3.eth.send_transaction(tx)
        except (ContractLogicError, Web3RPCError, ValueError) as exc:
            raise ContractRejected(getattr(exc, "message", None) or str(exc)) from exc
        except TRANSPORT_ERRORS as exc:
            raise UnresolvedError(f"Send failed: {exc}") from exc

        tx_hash = AsyncWeb3.to_hex(tx_hash)
        logger.debug(f"Sent {tx_hash} to {to} (value={value})")
        return Web3PendingHandle(self.w3, tx_hash)
