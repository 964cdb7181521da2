"""Booking router - booking webhook and payment inspection"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_escrow_machine, get_release_scheduler
from .escrow import EscrowStateMachine
from .schemas import BookingRequest, BookingResponse, PaymentResponse
from .service import BookingService
from .split import to_display_units

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(
    db: Session = Depends(get_db), scheduler=Depends(get_release_scheduler)
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, scheduler)


@router.post("/webhook", response_model=BookingResponse)
async def booking_webhook(
    body: BookingRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    escrow: EscrowStateMachine = Depends(get_escrow_machine),
):
    """Put a new booking into escrow and prompt the customer for confirmation"""
    logger.info(f"Booking webhook received: submission={body.submissionId}")
    payment = await service.create_booking(body)

    # Send the satisfaction prompt after responding
    background_tasks.add_task(escrow.request_confirmation, payment.id)

    return BookingResponse(
        paymentId=payment.id,
        caregiverName=payment.caregiver_name,
        totalAmount=to_display_units(payment.total_amount),
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str, service: BookingService = Depends(get_booking_service)):
    """Inspect the escrow state of a booking"""
    return service.get_payment(payment_id)
