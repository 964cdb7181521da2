"""
Error taxonomy for the escrow core

Intake errors are raised to the caller and mapped to HTTP responses in main.py.
Provider errors raised during the escrow lifecycle are absorbed into the
payment record by the state machine and never reach an unrelated caller.
"""


class CarePayError(Exception):
    """Base class for all domain errors"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CarePayError):
    """Missing or malformed intake field"""

    status_code = 400


class InvalidAmount(CarePayError):
    """Booking total is not a non-negative amount"""

    status_code = 400


class CaregiverNotFound(CarePayError):
    """Booking references a caregiver account that is not in the ledger"""

    status_code = 404


class DuplicateId(CarePayError):
    """Booking id already exists in the ledger"""

    status_code = 409


class InvalidTransition(CarePayError):
    """Status change not permitted by the escrow state machine"""

    status_code = 409


class AccountProviderError(CarePayError):
    """Account provider rejected an account or onboarding link request"""

    status_code = 502


class PayoutProviderError(CarePayError):
    """Transfer to the caregiver account failed on the provider side"""

    status_code = 502


class MessagingProviderError(CarePayError):
    """SMS delivery failed on the provider side"""

    status_code = 502


class PaymentNotFound(CarePayError):
    """No payment record with the requested booking id"""

    status_code = 404
