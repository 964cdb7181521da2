"""Caregiver router - signup webhook and Stripe onboarding redirects"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_account_provider
from .schemas import CaregiverSignupRequest, CaregiverSignupResponse
from .service import CaregiverService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/caregivers", tags=["Caregivers"])


def get_caregiver_service(
    db: Session = Depends(get_db), account_provider=Depends(get_account_provider)
) -> CaregiverService:
    """Dependency injection for CaregiverService"""
    return CaregiverService(db, account_provider)


@router.post("/signup-webhook", response_model=CaregiverSignupResponse)
async def caregiver_signup_webhook(
    body: CaregiverSignupRequest,
    service: CaregiverService = Depends(get_caregiver_service),
):
    """Register a caregiver from the signup form and return their onboarding link"""
    logger.info(f"Caregiver signup webhook received: submission={body.submissionId}")
    caregiver, link = await service.register(body)
    return CaregiverSignupResponse(accountId=caregiver.id, accountLink=link)


@router.get("/onboarding/complete")
async def onboarding_complete():
    """Stripe return_url after onboarding"""
    return {"message": "Onboarding completed. You can close this page."}


@router.get("/{account_id}/onboarding-link")
async def refresh_onboarding_link(
    account_id: str, service: CaregiverService = Depends(get_caregiver_service)
):
    """Stripe refresh_url: redirect to a fresh onboarding link"""
    link = await service.refresh_onboarding_link(account_id)
    return RedirectResponse(url=link)
