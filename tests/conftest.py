import asyncio
from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from carepay.database import Base
from carepay.domain.ledger.repository import LedgerRepository
from carepay.domain.payments.escrow import EscrowStateMachine
from carepay.models import Caregiver, PaymentRecord, PaymentStatus
from carepay.shared.errors import MessagingProviderError, PayoutProviderError

CAREGIVER_ID = "acct_1Anna"
CUSTOMER_PHONE = "+31 6 1234 5678"


class FakeAccountProvider:
    """Records account and transfer requests instead of calling Stripe"""

    def __init__(self):
        self.accounts: list[str] = []
        self.links: list[tuple[str, str, str]] = []
        self.transfers: list[dict] = []
        self.transfer_error: Optional[Exception] = None

    async def create_account(self, email: str) -> str:
        account_id = f"acct_{len(self.accounts) + 1}"
        self.accounts.append(email)
        return account_id

    async def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        self.links.append((account_id, refresh_url, return_url))
        return f"https://connect.stripe.test/setup/{account_id}"

    async def transfer(self, account_id: str, amount: int, group_key: str, description: str) -> str:
        # Yield to the event loop like a real network call
        await asyncio.sleep(0)
        if self.transfer_error is not None:
            raise self.transfer_error
        self.transfers.append(
            {"account_id": account_id, "amount": amount, "group_key": group_key, "description": description}
        )
        return f"tr_{len(self.transfers)}"


class FakeMessagingProvider:
    """Records outgoing SMS instead of calling Twilio"""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send(self, to: str, text: str) -> str:
        await asyncio.sleep(0)
        if self.fail:
            raise MessagingProviderError("[21211] Invalid 'To' Phone Number")
        self.sent.append((to, text))
        return f"SM{len(self.sent)}"


class RecordingScheduler:
    """Release scheduler that only remembers what was scheduled"""

    def __init__(self):
        self.scheduled: list[tuple[str, float]] = []

    async def schedule(self, payment_id: str, delay_seconds: float) -> bool:
        self.scheduled.append((payment_id, delay_seconds))
        return True

    async def shutdown(self) -> None:
        pass


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def account_provider() -> FakeAccountProvider:
    return FakeAccountProvider()


@pytest.fixture
def messaging_provider() -> FakeMessagingProvider:
    return FakeMessagingProvider()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def escrow(session_factory, account_provider, messaging_provider) -> EscrowStateMachine:
    return EscrowStateMachine(session_factory, account_provider, messaging_provider)


@pytest.fixture
def caregiver(db) -> Caregiver:
    return LedgerRepository.add_caregiver(
        db,
        Caregiver(id=CAREGIVER_ID, name="Anna de Vries", email="anna@example.com", submission_id="sub_1"),
    )


@pytest.fixture
def make_payment(db, caregiver):
    """Factory inserting a payment record with a 100.00 total split 35/65"""

    def _make(
        payment_id: str = "booking_1",
        phone: str = CUSTOMER_PHONE,
        status: PaymentStatus = PaymentStatus.PENDING,
        created_at: Optional[datetime] = None,
        total: int = 10000,
    ) -> PaymentRecord:
        caregiver_amount = round(total * 0.35)
        payment = PaymentRecord(
            id=payment_id,
            customer_name="Jan Jansen",
            customer_email="jan@example.com",
            customer_phone=phone,
            caregiver_id=caregiver.id,
            caregiver_name=caregiver.name,
            total_amount=total,
            caregiver_amount=caregiver_amount,
            platform_amount=total - caregiver_amount,
            status=status.value,
        )
        if created_at is not None:
            payment.created_at = created_at
        return LedgerRepository.add_payment(db, payment)

    return _make


@pytest.fixture
def reload(session_factory):
    """Read a payment record through a fresh session"""

    def _reload(payment_id: str) -> Optional[PaymentRecord]:
        session = session_factory()
        try:
            payment = LedgerRepository.find_payment_by_id(session, payment_id)
            if payment is not None:
                session.expunge(payment)
            return payment
        finally:
            session.close()

    return _reload


@pytest.fixture
def payout_error():
    return PayoutProviderError("[account_invalid] No such destination: 'acct_1Anna'")
