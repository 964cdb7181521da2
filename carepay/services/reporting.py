"""
Reporting view over the ledger
Read-only aggregates for the dashboard and health endpoints
"""

import time

from sqlalchemy.orm import Session

from ..config import ENVIRONMENT
from ..domain.ledger.repository import LedgerRepository
from ..domain.payments.split import to_display_units
from ..models import PaymentStatus
from ..shared.validators import utcnow

STARTED_AT = time.monotonic()


def build_dashboard(db: Session, recent_limit: int = 10) -> dict:
    """
    Counts, platform revenue and the most recent bookings.

    Revenue is the platform share of completed bookings in display units.
    """
    counts = LedgerRepository.count_payments_by_status(db)
    revenue = LedgerRepository.sum_platform_amount(db, PaymentStatus.COMPLETED)

    return {
        "summary": {
            "totalCaregivers": LedgerRepository.count_caregivers(db),
            "pendingPayments": counts[PaymentStatus.PENDING.value],
            "completedPayments": counts[PaymentStatus.COMPLETED.value],
            "disputedPayments": counts[PaymentStatus.DISPUTED.value],
            "failedPayments": counts[PaymentStatus.FAILED.value],
            "totalRevenue": to_display_units(revenue),
        },
        "recentPayments": [
            {
                "id": p.id,
                "customer": p.customer_name,
                "caregiver": p.caregiver_name,
                "amount": to_display_units(p.total_amount),
                "status": p.status,
                "createdAt": p.created_at,
            }
            for p in LedgerRepository.recent_payments(db, recent_limit)
        ],
    }


def build_health(db: Session) -> dict:
    counts = LedgerRepository.count_payments_by_status(db)
    return {
        "status": "OK",
        "timestamp": utcnow().isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 1),
        "pendingPayments": counts[PaymentStatus.PENDING.value],
        "caregivers": LedgerRepository.count_caregivers(db),
        "environment": ENVIRONMENT,
    }
