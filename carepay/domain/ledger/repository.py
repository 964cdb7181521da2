"""Ledger repository - Database operations for caregivers and payment records"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Caregiver, PaymentRecord, PaymentStatus, assert_transition
from ...shared.errors import DuplicateId
from ...shared.validators import normalize_contact, utcnow

logger = logging.getLogger(__name__)

_PENDING = PaymentStatus.PENDING.value


class LedgerRepository:
    """Repository for the caregiver and payment record store"""

    # Caregivers
    @staticmethod
    def add_caregiver(db: Session, caregiver: Caregiver) -> Caregiver:
        db.add(caregiver)
        db.commit()
        db.refresh(caregiver)
        return caregiver

    @staticmethod
    def find_caregiver_by_provider_id(db: Session, account_id: str) -> Optional[Caregiver]:
        return db.query(Caregiver).filter(Caregiver.id == account_id).first()

    @staticmethod
    def count_caregivers(db: Session) -> int:
        return db.query(func.count(Caregiver.id)).scalar() or 0

    # Payment records
    @staticmethod
    def add_payment(db: Session, payment: PaymentRecord) -> PaymentRecord:
        """
        Insert a new payment record.

        Raises:
            DuplicateId: if a record with the same booking id already exists
        """
        if db.get(PaymentRecord, payment.id) is not None:
            raise DuplicateId(f"Booking {payment.id} already exists")

        payment.customer_phone_normalized = normalize_contact(payment.customer_phone)
        db.add(payment)
        try:
            db.commit()
        except IntegrityError:
            # Lost an insert race with another request for the same id
            db.rollback()
            raise DuplicateId(f"Booking {payment.id} already exists") from None
        db.refresh(payment)
        return payment

    @staticmethod
    def find_payment_by_id(db: Session, payment_id: str) -> Optional[PaymentRecord]:
        return db.query(PaymentRecord).filter(PaymentRecord.id == payment_id).first()

    @staticmethod
    def find_pending_payment_by_contact(db: Session, channel_id: str) -> Optional[PaymentRecord]:
        """
        Find the pending payment for a contact identifier.

        If more than one pending booking shares the number, the most recently
        created one is used, even when its payout is already claimed. The claim
        guards in the state machine then turn the reply away.
        """
        normalized = normalize_contact(channel_id)
        if not normalized:
            return None

        return (
            db.query(PaymentRecord)
            .filter(
                PaymentRecord.customer_phone_normalized == normalized,
                PaymentRecord.status == _PENDING,
            )
            .order_by(PaymentRecord.created_at.desc())
            .first()
        )

    @staticmethod
    def list_payments(db: Session, *criteria) -> list[PaymentRecord]:
        """List payment records matching all filter criteria, newest first"""
        return (
            db.query(PaymentRecord)
            .filter(*criteria)
            .order_by(PaymentRecord.created_at.desc())
            .all()
        )

    @staticmethod
    def remove_payments(db: Session, *criteria) -> int:
        """Delete payment records matching all filter criteria and return the count"""
        deleted = db.query(PaymentRecord).filter(*criteria).delete(synchronize_session=False)
        db.commit()
        return deleted

    # Escrow transitions (compare-and-transition on status)
    @staticmethod
    def claim_for_release(db: Session, payment_id: str, claimant: str) -> bool:
        """
        Claim a pending payment for payout.

        Only one caller can hold the claim; returns False when the record is
        missing, no longer pending, or already claimed.
        """
        claimed = (
            db.query(PaymentRecord)
            .filter(
                PaymentRecord.id == payment_id,
                PaymentRecord.status == _PENDING,
                PaymentRecord.claimed_at.is_(None),
            )
            .update(
                {PaymentRecord.claimed_by: claimant, PaymentRecord.claimed_at: utcnow()},
                synchronize_session=False,
            )
        )
        db.commit()
        return claimed == 1

    @staticmethod
    def transition_status(
        db: Session,
        payment_id: str,
        new_status: PaymentStatus,
        require_unclaimed: bool = False,
        **fields,
    ) -> bool:
        """
        Move a pending payment to a terminal status.

        The update only applies while the stored status is still pending, so a
        record that another trigger already settled is never overwritten.
        """
        assert_transition(_PENDING, new_status.value)

        criteria = [PaymentRecord.id == payment_id, PaymentRecord.status == _PENDING]
        if require_unclaimed:
            criteria.append(PaymentRecord.claimed_at.is_(None))

        values = {getattr(PaymentRecord, name): value for name, value in fields.items()}
        values[PaymentRecord.status] = new_status.value

        updated = db.query(PaymentRecord).filter(*criteria).update(values, synchronize_session=False)
        db.commit()
        if updated == 1:
            logger.info(f"✅ Payment {payment_id} transitioned: pending → {new_status.value}")
        return updated == 1

    @staticmethod
    def mark_confirmation_requested(db: Session, payment_id: str) -> bool:
        """Flag that the satisfaction prompt was attempted; False if it already was"""
        updated = (
            db.query(PaymentRecord)
            .filter(
                PaymentRecord.id == payment_id,
                PaymentRecord.status == _PENDING,
                PaymentRecord.confirmation_requested.is_(False),
            )
            .update({PaymentRecord.confirmation_requested: True}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    # Reporting helpers
    @staticmethod
    def count_payments_by_status(db: Session) -> dict[str, int]:
        counts = {status.value: 0 for status in PaymentStatus}
        rows = (
            db.query(PaymentRecord.status, func.count(PaymentRecord.id))
            .group_by(PaymentRecord.status)
            .all()
        )
        for status, count in rows:
            counts[status] = count
        return counts

    @staticmethod
    def sum_platform_amount(db: Session, status: PaymentStatus) -> int:
        return (
            db.query(func.sum(PaymentRecord.platform_amount))
            .filter(PaymentRecord.status == status.value)
            .scalar()
            or 0
        )

    @staticmethod
    def recent_payments(db: Session, limit: int = 10) -> list[PaymentRecord]:
        return db.query(PaymentRecord).order_by(PaymentRecord.created_at.desc()).limit(limit).all()
