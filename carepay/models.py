import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base
from .shared.errors import InvalidTransition
from .shared.validators import utcnow


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    FAILED = "failed"


TERMINAL_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.DISPUTED, PaymentStatus.FAILED)

# Legal escrow transitions; every terminal status is final for this core
ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.DISPUTED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.DISPUTED: set(),
    PaymentStatus.FAILED: set(),
}


def assert_transition(current: str, new: str) -> None:
    """Raise InvalidTransition unless current -> new is a legal escrow transition"""
    if PaymentStatus(new) not in ALLOWED_TRANSITIONS.get(PaymentStatus(current), set()):
        raise InvalidTransition(f"Illegal payment transition: {current} -> {new}")


class Caregiver(Base):
    __tablename__ = "caregivers"

    # Stripe Connect account id doubles as the caregiver id
    id = Column(String(255), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    submission_id = Column(String(255), nullable=True)  # Form submission that created the caregiver
    created_at = Column(DateTime, default=utcnow, nullable=False)

    payments = relationship("PaymentRecord", back_populates="caregiver")


class PaymentRecord(Base):
    __tablename__ = "payment_records"

    id = Column(String(255), primary_key=True, index=True)  # Booking / submission id
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)
    customer_phone_normalized = Column(String(50), nullable=False, index=True)

    caregiver_id = Column(String(255), ForeignKey("caregivers.id"), nullable=False, index=True)
    caregiver_name = Column(String(255), nullable=True)

    # Amounts in minor currency units (cents); caregiver + platform == total
    total_amount = Column(Integer, nullable=False)
    caregiver_amount = Column(Integer, nullable=False)
    platform_amount = Column(Integer, nullable=False)

    status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False, index=True)
    confirmation_requested = Column(Boolean, default=False, nullable=False)

    # Release claim: set by whichever trigger (confirmation or timeout) requests the payout
    claimed_by = Column(String(20), nullable=True)
    claimed_at = Column(DateTime, nullable=True)

    payout_reference = Column(String(255), nullable=True)  # Stripe transfer id
    payout_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    caregiver = relationship("Caregiver", back_populates="payments")

    @property
    def is_terminal(self) -> bool:
        return self.status != PaymentStatus.PENDING.value
