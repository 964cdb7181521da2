"""
Escrow state machine for booking payments

pending → completed   customer replies YES, or the release timer fires unanswered
pending → disputed    customer replies NO before the payout is claimed
pending → failed      the payout transfer was rejected (never retried here)

Confirmation replies and the release timer race each other. Both go through
compare-and-transition updates in LedgerRepository, so exactly one of them acts
on a pending record and the loser sees it as settled.
"""

import enum
import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import CONFIRM_KEYWORDS, DISPUTE_KEYWORDS
from ...models import PaymentRecord, PaymentStatus
from ...services.providers import AccountProvider, MessagingProvider
from ...shared.errors import MessagingProviderError, PayoutProviderError
from ...shared.validators import utcnow
from ..ledger.repository import LedgerRepository
from .split import to_display_units

logger = logging.getLogger(__name__)

NO_ACTIVE_BOOKING_TEXT = "No active booking found for this number."


class ConfirmationOutcome(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    DISPUTED = "disputed"
    REPROMPTED = "reprompted"
    NO_ACTIVE_BOOKING = "no_active_booking"


class ReleaseTrigger(str, enum.Enum):
    CONFIRMATION = "confirmation"
    TIMEOUT = "timeout"


class EscrowStateMachine:
    """Drives payment records from pending to their final status"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        account_provider: AccountProvider,
        messaging_provider: MessagingProvider,
        confirm_keywords: frozenset = frozenset(CONFIRM_KEYWORDS),
        dispute_keywords: frozenset = frozenset(DISPUTE_KEYWORDS),
    ):
        self.session_factory = session_factory
        self.account_provider = account_provider
        self.messaging_provider = messaging_provider
        self.confirm_keywords = confirm_keywords
        self.dispute_keywords = dispute_keywords

    async def request_confirmation(self, payment_id: str) -> bool:
        """
        Ask the customer whether the care was satisfactory.

        The prompt is attempted once per record: the flag is set before sending
        so a delivery failure does not lead to repeated attempts.

        Returns:
            True if a prompt was attempted by this call
        """
        db = self.session_factory()
        try:
            payment = LedgerRepository.find_payment_by_id(db, payment_id)
            if payment is None or payment.is_terminal or payment.confirmation_requested:
                logger.info(f"Confirmation prompt skipped for booking {payment_id}")
                return False

            to = payment.customer_phone
            text = (
                f"Hello {payment.customer_name}, were you satisfied with the care provided by "
                f"{payment.caregiver_name}? Reply YES or NO. Ref: {payment.id}"
            )
            if not LedgerRepository.mark_confirmation_requested(db, payment_id):
                return False
        finally:
            db.close()

        await self._notify(to, text)
        return True

    async def handle_confirmation(self, channel_id: str, raw_text: Optional[str]) -> ConfirmationOutcome:
        """Apply a customer's SMS reply to their pending booking"""
        token = (raw_text or "").strip().upper()

        db = self.session_factory()
        try:
            payment = LedgerRepository.find_pending_payment_by_contact(db, channel_id)
            if payment is None:
                logger.info(f"No active payment found for {channel_id}")
                outcome, reply = ConfirmationOutcome.NO_ACTIVE_BOOKING, NO_ACTIVE_BOOKING_TEXT
            elif token in self.confirm_keywords:
                outcome, reply = await self._confirm(db, payment)
            elif token in self.dispute_keywords:
                outcome, reply = self._dispute(db, payment)
            else:
                logger.info(f"Unrecognized reply {token!r} for booking {payment.id}")
                outcome = ConfirmationOutcome.REPROMPTED
                reply = f"Please reply YES or NO for ref: {payment.id}"
        finally:
            db.close()

        await self._notify(channel_id, reply)
        return outcome

    async def release_on_timeout(self, payment_id: str) -> Optional[PaymentStatus]:
        """
        Release timer callback: an unanswered booking counts as accepted.

        A no-op when the record is gone or has already left pending.
        """
        db = self.session_factory()
        try:
            payment = LedgerRepository.find_payment_by_id(db, payment_id)
            if payment is None:
                logger.warning(f"⚠️ Release timer fired for unknown booking {payment_id}")
                return None
            if payment.is_terminal:
                logger.info(f"Release timer ignored for booking {payment_id}: already {payment.status}")
                return None

            logger.info(f"⏰ Release window elapsed for booking {payment_id}")
            return await self._release(db, payment, ReleaseTrigger.TIMEOUT)
        finally:
            db.close()

    async def _confirm(self, db: Session, payment: PaymentRecord) -> tuple[ConfirmationOutcome, str]:
        payment_id = payment.id
        status = await self._release(db, payment, ReleaseTrigger.CONFIRMATION)
        if status is None:
            return ConfirmationOutcome.NO_ACTIVE_BOOKING, NO_ACTIVE_BOOKING_TEXT
        if status == PaymentStatus.COMPLETED:
            return (
                ConfirmationOutcome.COMPLETED,
                f"Thank you for your positive feedback! The payout has been processed. Ref: {payment_id}",
            )
        return (
            ConfirmationOutcome.FAILED,
            f"Thank you for your feedback! We will complete the payout shortly. Ref: {payment_id}",
        )

    def _dispute(self, db: Session, payment: PaymentRecord) -> tuple[ConfirmationOutcome, str]:
        payment_id = payment.id
        disputed = LedgerRepository.transition_status(
            db, payment_id, PaymentStatus.DISPUTED, require_unclaimed=True
        )
        if not disputed:
            logger.info(f"Dispute for booking {payment_id} arrived after it was settled")
            return ConfirmationOutcome.NO_ACTIVE_BOOKING, NO_ACTIVE_BOOKING_TEXT

        logger.info(f"⚠️ Complaint received for booking {payment_id}; payout held")
        return (
            ConfirmationOutcome.DISPUTED,
            f"We have received your feedback. Our customer service will contact you. Ref: {payment_id}",
        )

    async def _release(
        self, db: Session, payment: PaymentRecord, trigger: ReleaseTrigger
    ) -> Optional[PaymentStatus]:
        """
        Claim the record and pay the caregiver share.

        Returns the resulting status, or None if another trigger holds the claim.
        Payout errors end in FAILED with the error stored; they are not raised.
        """
        payment_id = payment.id
        caregiver_id = payment.caregiver_id
        amount = payment.caregiver_amount
        description = f"Payout for {payment.customer_name} - {payment_id}"

        if not LedgerRepository.claim_for_release(db, payment_id, trigger.value):
            logger.info(f"Booking {payment_id} already claimed; {trigger.value} does nothing")
            return None

        try:
            reference = await self.account_provider.transfer(
                caregiver_id, amount, group_key=payment_id, description=description
            )
        except PayoutProviderError as e:
            error = e.message
        except Exception as e:
            logger.exception(f"❌ Unexpected payout error for booking {payment_id}")
            error = f"{type(e).__name__}: {e}"
        else:
            try:
                LedgerRepository.transition_status(
                    db,
                    payment_id,
                    PaymentStatus.COMPLETED,
                    payout_reference=reference,
                    payout_at=utcnow(),
                )
            except SQLAlchemyError as e:
                # Money has moved; the record stays claimed until fixed by hand
                db.rollback()
                logger.error(
                    f"❌ Payout {reference} sent for booking {payment_id} but not recorded: {e}"
                )
                return PaymentStatus.COMPLETED
            logger.info(
                f"💸 Payout of €{to_display_units(amount):.2f} processed for booking {payment_id} "
                f"(transfer {reference}, via {trigger.value})"
            )
            return PaymentStatus.COMPLETED

        logger.error(f"❌ Payout failed for booking {payment_id}: {error}")
        try:
            LedgerRepository.transition_status(db, payment_id, PaymentStatus.FAILED, last_error=error)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed payout for booking {payment_id} not recorded: {e}")
        return PaymentStatus.FAILED

    async def _notify(self, to: str, text: str) -> bool:
        try:
            await self.messaging_provider.send(to, text)
            return True
        except MessagingProviderError as e:
            logger.warning(f"⚠️ SMS to {to} not delivered: {e.message}")
            return False
