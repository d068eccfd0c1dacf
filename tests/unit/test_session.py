"""
Tests for the auction session facade.

Tests cover:
1. Connecting and tracking
2. Status messages for every transition (success and failure)
3. Directory operations and value transfers
4. Account changes
5. Poll errors and the published view
"""

import asyncio

import pytest
from pydantic import ValidationError

from conftest import ALICE, BOB, FakeWallet
from dap.core.auction.state import AuctionPhase, AuctionSnapshot, RequestKind
from dap.core.session import INITIAL_STATUS, AuctionSession
from dap.network.gateway import Outcome

DOMAIN = "alice.ntu"


@pytest.fixture
def session(wallet, registrar):
    return AuctionSession(wallet, registrar, poll_interval=60)


@pytest.fixture
def statuses(session):
    seen = []
    session.subscribe(lambda view: seen.append(view.status_message))
    return seen


async def _tracked(session, registrar, phase=AuctionPhase.NONE):
    registrar.set_phase(DOMAIN, phase)
    await session.connect()
    await session.track(DOMAIN)
    return session


# =============================================================================
# Connect / Track
# =============================================================================


class TestConnect:
    """Binding the wallet account."""

    @pytest.mark.asyncio
    async def test_connect_binds_first_account(self, session):
        assert await session.connect() == ALICE

        view = session.view()
        assert view.account == ALICE
        assert view.status_message == INITIAL_STATUS
        assert view.error_kind is None
        await session.close()

    @pytest.mark.asyncio
    async def test_connect_without_accounts(self, registrar):
        session = AuctionSession(FakeWallet([]), registrar)

        assert await session.connect() is None
        assert session.error_kind == "wallet_unavailable"
        assert session.status_message.startswith("Error connecting to wallet")

    @pytest.mark.asyncio
    async def test_context_manager_stops_polling(self, wallet, registrar):
        async with AuctionSession(wallet, registrar, poll_interval=60) as session:
            assert session.account == ALICE
            await session.track(DOMAIN)
            assert session.scheduler.running

        assert not session.scheduler.running


class TestTrack:
    """Loading auction details."""

    @pytest.mark.asyncio
    async def test_track_loads_snapshot(self, session, registrar):
        await _tracked(session, registrar, AuctionPhase.COMMIT)

        view = session.view()
        assert view.tracked_domain == DOMAIN
        assert view.phase == AuctionPhase.COMMIT
        assert view.status_message == f"Auction details loaded for {DOMAIN}"
        assert session.scheduler.running
        await session.close()

    @pytest.mark.asyncio
    async def test_track_invalid_domain(self, session):
        await session.connect()

        assert await session.track("") is None
        assert session.error_kind == "parse"
        assert session.status_message.startswith("Error fetching auction data")

    @pytest.mark.asyncio
    async def test_track_read_failure(self, session, registrar):
        await session.connect()
        registrar.fail_reads = True

        assert await session.track(DOMAIN) is None
        assert session.error_kind == "unavailable"
        await session.close()

    @pytest.mark.asyncio
    async def test_track_before_connect(self, session):
        assert await session.track(DOMAIN) is None
        assert session.error_kind == "wallet_unavailable"

    @pytest.mark.asyncio
    async def test_poll_error_keeps_status(self, session, registrar):
        await _tracked(session, registrar)
        registrar.fail_reads = True

        await session.scheduler.tick()

        view = session.view()
        assert view.poll_error is not None
        assert view.status_message == f"Auction details loaded for {DOMAIN}"
        await session.close()

    @pytest.mark.asyncio
    async def test_raising_subscriber_keeps_polling(self, wallet, registrar):
        session = AuctionSession(wallet, registrar, poll_interval=0.01)
        await _tracked(session, registrar)

        def failing_subscriber(view):
            raise RuntimeError("subscriber failed")

        session.subscribe(failing_subscriber)
        await asyncio.sleep(0.1)

        assert session.scheduler.running
        assert session.scheduler.ticks >= 2
        await session.close()
        assert not session.scheduler.running

    @pytest.mark.asyncio
    async def test_untrack_stops_polling(self, session, registrar):
        await _tracked(session, registrar)
        await session.untrack()

        assert session.tracked_domain is None
        assert not session.scheduler.running


# =============================================================================
# Transitions
# =============================================================================


class TestTransitions:
    """Status messages around each state-changing request."""

    @pytest.mark.asyncio
    async def test_start_commit_phase(self, session, registrar, statuses):
        await _tracked(session, registrar)

        assert await session.start_commit_phase() is True
        assert f"Starting commit phase for domain: {DOMAIN}, Please Wait..." in statuses
        assert session.status_message == "Commit phase started"
        assert session.view().phase == AuctionPhase.COMMIT
        await session.close()

    @pytest.mark.asyncio
    async def test_commit_bid(self, session, registrar, statuses):
        await _tracked(session, registrar, AuctionPhase.COMMIT)

        assert await session.commit_bid("1.5", "s3cr3t") is True

        assert registrar.submissions[-1][2] == (1_500_000_000_000_000_000, "s3cr3t")
        assert f"Committing bid for domain: {DOMAIN}, with amount: 1.5, Please Wait..." in statuses
        assert session.status_message == "Bid committed"
        assert not any("s3cr3t" in status for status in statuses)
        await session.close()

    @pytest.mark.asyncio
    async def test_commit_bid_bad_amount(self, session, registrar):
        await _tracked(session, registrar, AuctionPhase.COMMIT)

        assert await session.commit_bid("1.5.0", "s3cr3t") is False
        assert session.error_kind == "parse"
        assert session.status_message.startswith("Error committing bid")
        assert registrar.submissions == []
        await session.close()

    @pytest.mark.asyncio
    async def test_commit_bid_oversized_amount(self, session, registrar):
        await _tracked(session, registrar, AuctionPhase.COMMIT)

        assert await session.commit_bid("9" * 5000, "s3cr3t") is False
        assert session.error_kind == "parse"
        assert registrar.submissions == []

        assert await session.reveal_bid("9" * 5000, "s3cr3t") is False
        assert session.error_kind == "parse"
        await session.close()

    @pytest.mark.asyncio
    async def test_commit_bid_empty_secret(self, session, registrar):
        await _tracked(session, registrar, AuctionPhase.COMMIT)

        assert await session.commit_bid("1", "") is False
        assert session.error_kind == "parse"
        assert registrar.submissions == []
        await session.close()

    @pytest.mark.asyncio
    async def test_reveal_in_wrong_phase(self, session, registrar):
        await _tracked(session, registrar, AuctionPhase.COMMIT)

        assert await session.reveal_bid("1", "s3cr3t") is False
        assert session.error_kind == "illegal_phase"
        assert session.status_message.startswith("Error revealing bid")
        await session.close()

    @pytest.mark.asyncio
    async def test_rejected_finalize_is_reported_as_failure(self, session, registrar, statuses):
        await _tracked(session, registrar, AuctionPhase.REVEAL)
        registrar.force_outcome(Outcome.REJECTED, "execution reverted: too early")

        assert await session.finalize_auction() is False
        assert session.error_kind == "contract_rejected"
        assert session.status_message == "Error finalizing auction: execution reverted: too early"
        assert "Auction finalized" not in statuses
        await session.close()

    @pytest.mark.asyncio
    async def test_unresolved_commit_then_acknowledge(self, session, registrar):
        await _tracked(session, registrar, AuctionPhase.COMMIT)
        registrar.force_outcome(Outcome.UNRESOLVED, "timeout")

        assert await session.commit_bid("1", "x") is False
        assert session.error_kind == "unresolved"

        assert await session.commit_bid("1", "x") is False
        assert len(registrar.submissions) == 1

        session.acknowledge_unresolved()
        assert await session.commit_bid("1", "x") is True
        await session.close()

    @pytest.mark.asyncio
    async def test_transition_without_domain(self, session):
        await session.connect()

        assert await session.start_commit_phase() is False
        assert session.status_message == "Error starting commit phase: Enter a domain name first"

    @pytest.mark.asyncio
    async def test_transition_before_connect(self, session):
        assert await session.finalize_auction() is False
        assert session.error_kind == "wallet_unavailable"

    @pytest.mark.asyncio
    async def test_withdraw(self, session, registrar, statuses):
        await session.connect()

        assert await session.withdraw() is True
        assert f"Withdrawing funds for account: {ALICE}, Please Wait..." in statuses
        assert session.status_message == "Funds withdrawn"
        assert registrar.submitted_kinds() == [RequestKind.WITHDRAW]

    @pytest.mark.asyncio
    async def test_successful_action_clears_error(self, session, registrar):
        await _tracked(session, registrar)
        await session.reveal_bid("1", "x")
        assert session.error_kind is not None

        await session.start_commit_phase()
        assert session.error_kind is None
        await session.close()


# =============================================================================
# Directory
# =============================================================================


class TestDirectory:
    """Lookups and transfers through the session."""

    @pytest.mark.asyncio
    async def test_registered_domains_in_view(self, session, registrar):
        registrar.owners = {"bob.ntu": BOB}
        await session.connect()

        assert await session.refresh_registered() == ("bob.ntu",)
        assert session.view().registered_domains == ("bob.ntu",)

    @pytest.mark.asyncio
    async def test_find_owner_of_unregistered_domain(self, session):
        await session.connect()

        assert await session.find_owner("nobody.ntu") is None
        assert session.error_kind is None
        assert session.view().owner_lookups == {"nobody.ntu": None}

    @pytest.mark.asyncio
    async def test_find_domains_invalid_address(self, session):
        assert await session.find_domains("not-an-address") is None
        assert session.error_kind == "parse"

    @pytest.mark.asyncio
    async def test_find_domains(self, session, registrar):
        registrar.owners = {"bob.ntu": BOB}

        assert await session.find_domains(BOB) == ["bob.ntu"]
        assert session.view().owned_domains == {BOB: ("bob.ntu",)}

    @pytest.mark.asyncio
    async def test_send_to_owner(self, session, registrar, wallet, statuses):
        registrar.owners = {"bob.ntu": BOB}
        await session.connect()

        assert await session.send_to_domain_owner("bob.ntu", "0.5") is True
        assert "Sending 0.5 ETH to the owner of bob.ntu. Please Wait..." in statuses
        assert session.status_message == "Sent 0.5 ETH to the owner of bob.ntu"
        assert wallet.sent == [(BOB, b"", 500_000_000_000_000_000)]

    @pytest.mark.asyncio
    async def test_send_to_unregistered_domain(self, session, wallet):
        await session.connect()

        assert await session.send_to_domain_owner("nobody.ntu", "1") is False
        assert session.error_kind == "unresolved_owner"
        assert session.status_message.startswith("Error sending Ether to domain owner")
        assert wallet.sent == []

    @pytest.mark.asyncio
    async def test_send_oversized_amount(self, session, registrar, wallet):
        registrar.owners = {"bob.ntu": BOB}
        await session.connect()

        assert await session.send_to_domain_owner("bob.ntu", "9" * 5000) is False
        assert session.error_kind == "parse"
        assert wallet.sent == []


# =============================================================================
# Account Changes
# =============================================================================


class TestAccountChange:
    """Everything tied to the old account is dropped."""

    @pytest.mark.asyncio
    async def test_switch_account(self, session, registrar, wallet):
        await _tracked(session, registrar)
        old_scheduler = session.scheduler

        await wallet.switch_accounts([BOB])

        assert session.account == BOB
        assert session.tracked_domain is None
        assert not old_scheduler.running
        assert session.status_message == f"Account changed to {BOB}"

    @pytest.mark.asyncio
    async def test_disconnect(self, session, registrar, wallet):
        await _tracked(session, registrar)

        await wallet.switch_accounts([])

        assert session.account is None
        assert session.status_message == "Wallet disconnected"
        assert await session.start_commit_phase() is False
        assert session.error_kind == "wallet_unavailable"

    @pytest.mark.asyncio
    async def test_owned_lookups_cleared(self, session, registrar, wallet):
        registrar.owners = {"bob.ntu": BOB}
        await session.connect()
        await session.find_domains(BOB)

        await wallet.switch_accounts([BOB])

        assert session.view().owned_domains == {}

    @pytest.mark.asyncio
    async def test_close_detaches_from_wallet(self, session, wallet):
        await session.connect()
        await session.close()

        await wallet.switch_accounts([BOB])
        assert session.account == ALICE


class TestSessionView:
    """The published projection."""

    @pytest.mark.asyncio
    async def test_view_is_frozen(self, session):
        view = session.view()
        with pytest.raises(ValidationError):
            view.status_message = "changed"

    @pytest.mark.asyncio
    async def test_pending_request_in_view(self, session, registrar):
        await _tracked(session, registrar)
        assert session.view().pending is None
        assert session.view().pending_age is None

        registrar.gate = asyncio.Event()
        task = asyncio.create_task(session.start_commit_phase())
        await asyncio.sleep(0.05)

        view = session.view()
        assert view.pending == RequestKind.START_COMMIT.describe()
        assert view.pending_age > 0

        registrar.gate.set()
        assert await task is True
        assert session.view().pending is None
        await session.close()

    @pytest.mark.asyncio
    async def test_highest_bid_display(self, session, registrar):
        await _tracked(session, registrar, AuctionPhase.REVEAL)
        registrar.auctions[DOMAIN] = AuctionSnapshot(
            phase=AuctionPhase.REVEAL, bidders_count=1, highest_bidder=BOB, highest_bid=2 * 10 ** 18,
        )
        await session.refresh()

        assert session.view().highest_bid_display == "2.0"
        await session.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
