"""Tests for the escrow state machine"""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from carepay.domain.ledger.repository import LedgerRepository
from carepay.domain.payments.escrow import NO_ACTIVE_BOOKING_TEXT, ConfirmationOutcome
from carepay.models import PaymentStatus

from .conftest import CAREGIVER_ID, CUSTOMER_PHONE


class TestConfirmationReplies:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["YES", "ja", "  Yes \n"])
    async def test_positive_reply_pays_caregiver(
        self, escrow, make_payment, reload, account_provider, messaging_provider, reply
    ) -> None:
        make_payment()

        outcome = await escrow.handle_confirmation(CUSTOMER_PHONE, reply)

        assert outcome == ConfirmationOutcome.COMPLETED
        assert account_provider.transfers == [
            {
                "account_id": CAREGIVER_ID,
                "amount": 3500,
                "group_key": "booking_1",
                "description": "Payout for Jan Jansen - booking_1",
            }
        ]
        payment = reload("booking_1")
        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.payout_reference == "tr_1"
        assert payment.payout_at is not None
        assert payment.caregiver_amount + payment.platform_amount == payment.total_amount
        assert "payout has been processed" in messaging_provider.sent[-1][1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["NO", "nee"])
    async def test_negative_reply_disputes_without_payout(
        self, escrow, make_payment, reload, account_provider, messaging_provider, reply
    ) -> None:
        make_payment()

        outcome = await escrow.handle_confirmation(CUSTOMER_PHONE, reply)

        assert outcome == ConfirmationOutcome.DISPUTED
        assert account_provider.transfers == []
        assert reload("booking_1").status == PaymentStatus.DISPUTED.value
        assert "customer service" in messaging_provider.sent[-1][1]

    @pytest.mark.asyncio
    async def test_unrecognized_reply_reprompts(
        self, escrow, make_payment, reload, account_provider, messaging_provider
    ) -> None:
        make_payment()

        outcome = await escrow.handle_confirmation(CUSTOMER_PHONE, "maybe later")

        assert outcome == ConfirmationOutcome.REPROMPTED
        assert reload("booking_1").status == PaymentStatus.PENDING.value
        assert account_provider.transfers == []
        assert messaging_provider.sent == [(CUSTOMER_PHONE, "Please reply YES or NO for ref: booking_1")]

    @pytest.mark.asyncio
    async def test_reply_without_pending_booking(
        self, escrow, make_payment, messaging_provider
    ) -> None:
        make_payment(status=PaymentStatus.DISPUTED)

        outcome = await escrow.handle_confirmation(CUSTOMER_PHONE, "YES")

        assert outcome == ConfirmationOutcome.NO_ACTIVE_BOOKING
        assert messaging_provider.sent == [(CUSTOMER_PHONE, NO_ACTIVE_BOOKING_TEXT)]

    @pytest.mark.asyncio
    async def test_reply_from_unknown_number(self, escrow, messaging_provider) -> None:
        outcome = await escrow.handle_confirmation("+31699999999", "NO")
        assert outcome == ConfirmationOutcome.NO_ACTIVE_BOOKING

    @pytest.mark.asyncio
    async def test_payout_failure_marks_failed(
        self, escrow, make_payment, reload, account_provider, payout_error
    ) -> None:
        make_payment()
        account_provider.transfer_error = payout_error

        outcome = await escrow.handle_confirmation(CUSTOMER_PHONE, "YES")

        assert outcome == ConfirmationOutcome.FAILED
        payment = reload("booking_1")
        assert payment.status == PaymentStatus.FAILED.value
        assert "No such destination" in payment.last_error
        assert payment.payout_reference is None
        assert (payment.total_amount, payment.caregiver_amount, payment.platform_amount) == (
            10000,
            3500,
            6500,
        )

    @pytest.mark.asyncio
    async def test_sms_failure_does_not_affect_transition(
        self, escrow, make_payment, reload, messaging_provider
    ) -> None:
        make_payment()
        messaging_provider.fail = True

        outcome = await escrow.handle_confirmation(CUSTOMER_PHONE, "NEE")

        assert outcome == ConfirmationOutcome.DISPUTED
        assert reload("booking_1").status == PaymentStatus.DISPUTED.value


class TestReleaseTimer:
    @pytest.mark.asyncio
    async def test_timeout_without_reply_completes(
        self, escrow, make_payment, reload, account_provider
    ) -> None:
        make_payment()

        status = await escrow.release_on_timeout("booking_1")

        assert status == PaymentStatus.COMPLETED
        assert [t["amount"] for t in account_provider.transfers] == [3500]
        assert reload("booking_1").claimed_by == "timeout"

    @pytest.mark.asyncio
    async def test_timeout_after_dispute_is_noop(
        self, escrow, make_payment, reload, account_provider
    ) -> None:
        make_payment()
        await escrow.handle_confirmation(CUSTOMER_PHONE, "NO")

        assert await escrow.release_on_timeout("booking_1") is None
        assert account_provider.transfers == []
        assert reload("booking_1").status == PaymentStatus.DISPUTED.value

    @pytest.mark.asyncio
    async def test_timeout_after_confirmation_does_not_pay_twice(
        self, escrow, make_payment, account_provider
    ) -> None:
        make_payment()
        await escrow.handle_confirmation(CUSTOMER_PHONE, "YES")

        assert await escrow.release_on_timeout("booking_1") is None
        assert len(account_provider.transfers) == 1

    @pytest.mark.asyncio
    async def test_timeout_for_unknown_booking(self, escrow) -> None:
        assert await escrow.release_on_timeout("missing") is None

    @pytest.mark.asyncio
    async def test_timeout_payout_failure_is_absorbed(
        self, escrow, make_payment, reload, account_provider, payout_error
    ) -> None:
        make_payment()
        account_provider.transfer_error = payout_error

        status = await escrow.release_on_timeout("booking_1")

        assert status == PaymentStatus.FAILED
        assert reload("booking_1").last_error is not None

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_recorded(
        self, escrow, make_payment, reload, account_provider
    ) -> None:
        make_payment()
        account_provider.transfer_error = RuntimeError("connection reset")

        status = await escrow.release_on_timeout("booking_1")

        assert status == PaymentStatus.FAILED
        assert reload("booking_1").last_error == "RuntimeError: connection reset"

    @pytest.mark.asyncio
    async def test_unrecorded_payout_does_not_reach_the_sender(
        self, escrow, make_payment, reload, account_provider, monkeypatch
    ) -> None:
        make_payment()

        def locked(*args, **kwargs):
            raise OperationalError("UPDATE payment_records", {}, Exception("database is locked"))

        monkeypatch.setattr(LedgerRepository, "transition_status", staticmethod(locked))

        outcome = await escrow.handle_confirmation(CUSTOMER_PHONE, "YES")

        assert outcome == ConfirmationOutcome.COMPLETED
        assert len(account_provider.transfers) == 1
        payment = reload("booking_1")
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.claimed_by == "confirmation"

    @pytest.mark.asyncio
    async def test_unrecorded_failure_is_absorbed(
        self, escrow, make_payment, account_provider, payout_error, monkeypatch
    ) -> None:
        make_payment()
        account_provider.transfer_error = payout_error

        def locked(*args, **kwargs):
            raise OperationalError("UPDATE payment_records", {}, Exception("database is locked"))

        monkeypatch.setattr(LedgerRepository, "transition_status", staticmethod(locked))

        assert await escrow.release_on_timeout("booking_1") == PaymentStatus.FAILED


class TestRaces:
    @pytest.mark.asyncio
    async def test_dispute_and_timer_at_the_same_instant(
        self, escrow, make_payment, reload, account_provider
    ) -> None:
        make_payment()

        outcome, status = await asyncio.gather(
            escrow.handle_confirmation(CUSTOMER_PHONE, "NO"),
            escrow.release_on_timeout("booking_1"),
        )

        final = reload("booking_1").status
        if final == PaymentStatus.DISPUTED.value:
            assert outcome == ConfirmationOutcome.DISPUTED
            assert status is None
            assert account_provider.transfers == []
        else:
            assert final == PaymentStatus.COMPLETED.value
            assert outcome == ConfirmationOutcome.NO_ACTIVE_BOOKING
            assert len(account_provider.transfers) == 1

    @pytest.mark.asyncio
    async def test_reply_while_timer_payout_in_flight(
        self, escrow, make_payment, reload, account_provider
    ) -> None:
        make_payment()

        status, outcome = await asyncio.gather(
            escrow.release_on_timeout("booking_1"),
            escrow.handle_confirmation(CUSTOMER_PHONE, "NO"),
        )

        assert status == PaymentStatus.COMPLETED
        assert outcome == ConfirmationOutcome.NO_ACTIVE_BOOKING
        assert reload("booking_1").status == PaymentStatus.COMPLETED.value
        assert len(account_provider.transfers) == 1

    @pytest.mark.asyncio
    async def test_confirmation_and_timer_pay_exactly_once(
        self, escrow, make_payment, reload, account_provider
    ) -> None:
        make_payment()

        await asyncio.gather(
            escrow.release_on_timeout("booking_1"),
            escrow.handle_confirmation(CUSTOMER_PHONE, "YES"),
            escrow.release_on_timeout("booking_1"),
        )

        assert len(account_provider.transfers) == 1
        assert reload("booking_1").status == PaymentStatus.COMPLETED.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["NO", "YES"])
    async def test_reply_does_not_fall_through_to_older_booking(
        self, db, escrow, make_payment, reload, account_provider, messaging_provider, reply
    ) -> None:
        now = datetime(2026, 1, 10, 12, 0)
        make_payment("older", created_at=now - timedelta(hours=5))
        make_payment("newer", created_at=now)
        # Timer payout for the newer booking is in flight
        assert LedgerRepository.claim_for_release(db, "newer", "timeout")

        outcome = await escrow.handle_confirmation(CUSTOMER_PHONE, reply)

        assert outcome == ConfirmationOutcome.NO_ACTIVE_BOOKING
        assert reload("older").status == PaymentStatus.PENDING.value
        assert reload("newer").status == PaymentStatus.PENDING.value
        assert account_provider.transfers == []
        assert messaging_provider.sent == [(CUSTOMER_PHONE, NO_ACTIVE_BOOKING_TEXT)]


class TestConfirmationPrompt:
    @pytest.mark.asyncio
    async def test_prompt_sent_once(self, escrow, make_payment, reload, messaging_provider) -> None:
        make_payment()

        assert await escrow.request_confirmation("booking_1")
        assert not await escrow.request_confirmation("booking_1")

        assert len(messaging_provider.sent) == 1
        to, text = messaging_provider.sent[0]
        assert to == CUSTOMER_PHONE
        assert "Anna de Vries" in text and "Ref: booking_1" in text
        assert reload("booking_1").confirmation_requested

    @pytest.mark.asyncio
    async def test_failed_prompt_is_not_retried(
        self, escrow, make_payment, reload, messaging_provider
    ) -> None:
        make_payment()
        messaging_provider.fail = True

        assert await escrow.request_confirmation("booking_1")
        messaging_provider.fail = False
        assert not await escrow.request_confirmation("booking_1")

        assert messaging_provider.sent == []
        assert reload("booking_1").confirmation_requested

    @pytest.mark.asyncio
    async def test_no_prompt_for_settled_booking(self, escrow, make_payment, messaging_provider) -> None:
        make_payment(status=PaymentStatus.COMPLETED)
        assert not await escrow.request_confirmation("booking_1")
        assert messaging_provider.sent == []
