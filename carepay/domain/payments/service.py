"""Booking service - Intake of new bookings into escrow"""

import logging
import uuid

from sqlalchemy.orm import Session

from ...config import CAREGIVER_SPLIT_RATIO, RELEASE_DELAY_SECONDS
from ...models import PaymentRecord, PaymentStatus
from ...services.release_scheduler import ReleaseScheduler
from ...shared.errors import CaregiverNotFound, PaymentNotFound
from ...shared.validators import require_fields, validate_email
from ..ledger.repository import LedgerRepository
from .schemas import BookingRequest
from .split import compute_split, to_display_units, to_minor_units

logger = logging.getLogger(__name__)


def generate_booking_id() -> str:
    """Booking id used when the form submission carries none"""
    return f"payment_{uuid.uuid4().hex[:16]}"


class BookingService:
    """Service layer for booking intake"""

    def __init__(
        self,
        db: Session,
        scheduler: ReleaseScheduler,
        caregiver_ratio: float = CAREGIVER_SPLIT_RATIO,
        release_delay: float = RELEASE_DELAY_SECONDS,
    ):
        self.db = db
        self.scheduler = scheduler
        self.caregiver_ratio = caregiver_ratio
        self.release_delay = release_delay
        self.repo = LedgerRepository()

    async def create_booking(self, data: BookingRequest) -> PaymentRecord:
        """
        Record a booking as a pending payment and start its release timer.

        Raises:
            ValidationError: missing or malformed field
            InvalidAmount: total is not a non-negative amount
            CaregiverNotFound: caregiverId is not a registered caregiver
            DuplicateId: submissionId was already booked
        """
        require_fields(
            fullName=data.fullName,
            email=data.email,
            phoneNumber=data.phoneNumber,
            formCalculation=data.formCalculation,
            caregiverId=data.caregiverId,
        )
        email = validate_email(data.email)
        total_amount = to_minor_units(data.formCalculation)

        caregiver = self.repo.find_caregiver_by_provider_id(self.db, data.caregiverId)
        if not caregiver:
            logger.warning(f"⚠️ Booking references unknown caregiver {data.caregiverId}")
            raise CaregiverNotFound(f"Caregiver {data.caregiverId} not found")

        caregiver_amount, platform_amount = compute_split(total_amount, self.caregiver_ratio)

        payment = PaymentRecord(
            id=data.submissionId or generate_booking_id(),
            customer_name=data.fullName.strip(),
            customer_email=email,
            customer_phone=data.phoneNumber.strip(),
            caregiver_id=caregiver.id,
            caregiver_name=caregiver.name,
            total_amount=total_amount,
            caregiver_amount=caregiver_amount,
            platform_amount=platform_amount,
            status=PaymentStatus.PENDING.value,
        )
        payment = self.repo.add_payment(self.db, payment)

        logger.info(f"📥 Booking {payment.id} received for caregiver {caregiver.name}")
        logger.info(
            f"Total: €{to_display_units(total_amount):.2f}, "
            f"Caregiver: €{to_display_units(caregiver_amount):.2f}, "
            f"Platform: €{to_display_units(platform_amount):.2f}"
        )

        try:
            await self.scheduler.schedule(payment.id, self.release_delay)
        except Exception as e:
            # Booking stays pending and can still be settled by the customer's reply
            logger.error(f"❌ Failed to schedule release for booking {payment.id}: {e}")

        return payment

    def get_payment(self, payment_id: str) -> PaymentRecord:
        payment = self.repo.find_payment_by_id(self.db, payment_id)
        if not payment:
            raise PaymentNotFound(f"Payment {payment_id} not found")
        return payment
