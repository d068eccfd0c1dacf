"""
Polling Scheduler - Periodic resynchronization with the registrar.

Every tick, independent of user actions:
- re-read the tracked domain's snapshot and reconcile it into the controller
- refresh the registered-domain list in the directory
- ask the wallet whether the active account changed

A failed read is logged and reported, never fatal; the next tick retries.
An unexpected exception from a tick (a raising observer, say) is logged
and reported the same way instead of ending the loop.
The loop runs as one asyncio task that stop() cancels and awaits, so no
timer outlives the session.
"""

import asyncio
from typing import Callable, Optional, TYPE_CHECKING

from dap.core.errors import DAPError, UnavailableError
from dap.utils.logger import get_logger

if TYPE_CHECKING:
    from dap.core.auction.controller import AuctionSessionController
    from dap.core.directory import DirectoryIndex
    from dap.network.wallet import Wallet

logger = get_logger("scheduler")

DEFAULT_POLL_INTERVAL = 10.0  # seconds

ErrorReporter = Callable[[DAPError], None]


class PollingScheduler:
    """Fixed-interval sync loop with an explicit start/stop lifecycle."""

    def __init__(
        self,
        controller: "AuctionSessionController",
        directory: Optional["DirectoryIndex"] = None,
        wallet: Optional["Wallet"] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_error: Optional[ErrorReporter] = None,
    ):
        if interval <= 0:
            raise ValueError("Poll interval must be positive")
        self.controller = controller
        self.directory = directory
        self.wallet = wallet
        self.interval = interval
        self.on_error = on_error
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop; a no-op if it is already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._poll_loop())
        logger.debug(f"Polling every {self.interval}s")

    async def stop(self) -> None:
        """Cancel the loop and wait until its task has finished."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        if task is asyncio.current_task():
            # Stopped from inside a tick; the cancel lands at the next await
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Polling stopped")

    async def tick(self) -> bool:
        """
        Run one synchronization pass.

        Returns:
            True if every read succeeded
        """
        self.ticks += 1
        ok = True

        domain = self.controller.tracked_domain
        if domain:
            try:
                await self.controller.refresh(domain)
            except UnavailableError as exc:
                ok = False
                self._report(f"Error fetching auction data for {domain}", exc)

        if self.directory is not None:
            try:
                await self.directory.refresh_registered()
            except UnavailableError as exc:
                ok = False
                self._report("Error fetching registered domains", exc)

        if self.wallet is not None:
            await self.wallet.poll_accounts()

        return ok

    def _report(self, context: str, exc: DAPError) -> None:
        logger.warning(f"{context}: {exc.message}")
        if self.on_error is not None:
            self.on_error(exc)

    def _report_failed_tick(self, exc: Exception) -> None:
        if self.on_error is None:
            return
        error = exc if isinstance(exc, DAPError) else DAPError(f"Polling failed: {exc}")
        try:
            self.on_error(error)
        except Exception:
            logger.exception("Poll error reporter raised")

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as exc:
                # The next tick retries; only cancellation ends the loop
                logger.exception(f"Poll tick {self.ticks} failed")
                self._report_failed_tick(exc)
