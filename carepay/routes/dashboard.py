"""
Monitoring endpoints
Health, dashboard aggregates and a manual retention run
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import RETENTION_DAYS
from ..database import get_db
from ..services.reporting import build_dashboard, build_health
from ..services.retention import sweep_expired_payments

router = APIRouter(tags=["Monitoring"])


class RetentionResult(BaseModel):
    removed: int
    retention_days: int


@router.get("/health")
def health(db: Session = Depends(get_db)):
    return build_health(db)


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db)):
    """Booking counts, platform revenue and the ten most recent bookings"""
    return build_dashboard(db)


@router.post("/maintenance/retention/run", response_model=RetentionResult)
def run_retention(db: Session = Depends(get_db)):
    """
    Manually trigger the retention sweep
    (In production this runs daily from the worker cron)
    """
    removed = sweep_expired_payments(db, RETENTION_DAYS)
    return RetentionResult(removed=removed, retention_days=RETENTION_DAYS)
