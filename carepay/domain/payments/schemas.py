"""Payment domain schemas - Pydantic models for booking intake and inspection"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel


class BookingRequest(BaseModel):
    """Booking webhook body; required fields are checked by BookingService"""

    fullName: Optional[str] = None
    email: Optional[str] = None
    phoneNumber: Optional[str] = None
    formCalculation: Optional[Union[int, float, str]] = None  # Total in euros, e.g. "100.00"
    caregiverId: Optional[str] = None  # Stripe account id of the caregiver
    submissionId: Optional[str] = None


class BookingResponse(BaseModel):
    success: bool = True
    paymentId: str
    caregiverName: Optional[str]
    totalAmount: float


class PaymentResponse(BaseModel):
    """Schema for payment record inspection"""

    id: str
    customer_name: str
    caregiver_id: str
    caregiver_name: Optional[str]
    total_amount: int
    caregiver_amount: int
    platform_amount: int
    status: str
    confirmation_requested: bool
    payout_reference: Optional[str] = None
    payout_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
