"""
Collaborator contracts consumed by the escrow core

Stripe Connect and Twilio implement these in stripe_service.py and
twilio_service.py; tests substitute recording fakes.
"""

from typing import Protocol


class AccountProvider(Protocol):
    async def create_account(self, email: str) -> str:
        """Create a payout account and return its id"""

    async def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        """Return a URL where the caregiver completes onboarding"""

    async def transfer(self, account_id: str, amount: int, group_key: str, description: str) -> str:
        """Transfer amount (minor units) to the account; raises PayoutProviderError"""


class MessagingProvider(Protocol):
    async def send(self, to: str, text: str) -> str:
        """Send an SMS and return the message id; raises MessagingProviderError"""
