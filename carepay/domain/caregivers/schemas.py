"""Caregiver domain schemas"""

from typing import Optional

from pydantic import BaseModel


class CaregiverSignupRequest(BaseModel):
    """Caregiver signup webhook body"""

    fullName: Optional[str] = None
    email: Optional[str] = None
    submissionId: Optional[str] = None


class CaregiverSignupResponse(BaseModel):
    success: bool = True
    accountId: str
    accountLink: str

