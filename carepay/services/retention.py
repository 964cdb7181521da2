"""
Retention sweep for settled bookings
Deletes completed, disputed and failed payment records after the retention window
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config import RETENTION_DAYS, RETENTION_SWEEP_HOUR
from ..domain.ledger.repository import LedgerRepository
from ..models import TERMINAL_STATUSES, PaymentRecord
from ..shared.validators import utcnow

logger = logging.getLogger(__name__)


def sweep_expired_payments(
    db: Session, retention_days: int = RETENTION_DAYS, now: Optional[datetime] = None
) -> int:
    """
    Delete terminal payment records created before now - retention_days.

    Pending records are never deleted, however old they are.

    Returns:
        int: number of records removed
    """
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    removed = LedgerRepository.remove_payments(
        db,
        PaymentRecord.status.in_([status.value for status in TERMINAL_STATUSES]),
        PaymentRecord.created_at < cutoff,
    )
    logger.info(f"🧹 Cleanup: {removed} old payment(s) removed (cutoff {cutoff.isoformat()})")
    return removed


def seconds_until_next_run(now: datetime, hour: int = RETENTION_SWEEP_HOUR) -> float:
    """Seconds from now until the next daily run at hour:00 UTC"""
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def run_retention_loop(
    session_factory: Callable[[], Session],
    retention_days: int = RETENTION_DAYS,
    hour: int = RETENTION_SWEEP_HOUR,
) -> None:
    """Daily sweep inside the API process (used with the in-process release scheduler)"""
    while True:
        await asyncio.sleep(seconds_until_next_run(utcnow(), hour))
        db = session_factory()
        try:
            sweep_expired_payments(db, retention_days)
        except Exception as e:
            logger.error(f"❌ Retention sweep failed: {str(e)}")
            db.rollback()
        finally:
            db.close()
