"""Caregiver service - Signup and Stripe onboarding"""

import logging

from sqlalchemy.orm import Session

from ...config import PUBLIC_BASE_URL
from ...models import Caregiver
from ...services.providers import AccountProvider
from ...shared.errors import CaregiverNotFound
from ...shared.validators import require_fields, validate_email
from ..ledger.repository import LedgerRepository
from .schemas import CaregiverSignupRequest

logger = logging.getLogger(__name__)


class CaregiverService:
    """Service layer for caregiver signup"""

    def __init__(self, db: Session, account_provider: AccountProvider, base_url: str = PUBLIC_BASE_URL):
        self.db = db
        self.account_provider = account_provider
        self.base_url = base_url.rstrip("/")
        self.repo = LedgerRepository()

    async def register(self, data: CaregiverSignupRequest) -> tuple[Caregiver, str]:
        """
        Create a payout account and caregiver record.

        Returns:
            (caregiver, onboarding_url)
        """
        require_fields(fullName=data.fullName, email=data.email)
        email = validate_email(data.email)

        account_id = await self.account_provider.create_account(email)
        caregiver = self.repo.add_caregiver(
            self.db,
            Caregiver(
                id=account_id,
                name=data.fullName.strip(),
                email=email,
                submission_id=data.submissionId,
            ),
        )

        link = await self.onboarding_link(account_id)
        logger.info(f"✅ Caregiver {caregiver.name} registered with account {account_id}")
        return caregiver, link

    async def refresh_onboarding_link(self, account_id: str) -> str:
        """New onboarding link for a caregiver whose previous link expired"""
        if not self.repo.find_caregiver_by_provider_id(self.db, account_id):
            raise CaregiverNotFound(f"Caregiver {account_id} not found")
        return await self.onboarding_link(account_id)

    async def onboarding_link(self, account_id: str) -> str:
        return await self.account_provider.create_onboarding_link(
            account_id,
            refresh_url=f"{self.base_url}/caregivers/{account_id}/onboarding-link",
            return_url=f"{self.base_url}/caregivers/onboarding/complete",
        )
