"""
Process-wide collaborators for FastAPI dependency injection

Tests replace these through app.dependency_overrides.
"""

from functools import lru_cache

from .config import RELEASE_SCHEDULER_BACKEND
from .database import SessionLocal
from .domain.payments.escrow import EscrowStateMachine
from .services.release_scheduler import build_release_scheduler
from .services.stripe_service import StripeConnectService
from .services.twilio_service import TwilioMessagingService


@lru_cache
def get_account_provider() -> StripeConnectService:
    return StripeConnectService()


@lru_cache
def get_messaging_provider() -> TwilioMessagingService:
    return TwilioMessagingService()


@lru_cache
def get_escrow_machine() -> EscrowStateMachine:
    return EscrowStateMachine(SessionLocal, get_account_provider(), get_messaging_provider())


@lru_cache
def get_release_scheduler():
    return build_release_scheduler(
        RELEASE_SCHEDULER_BACKEND, callback=get_escrow_machine().release_on_timeout
    )
