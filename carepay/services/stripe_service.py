"""
Stripe Connect Service
Creates Express accounts for caregivers and transfers their share of a booking
"""

import logging
from typing import Optional

import httpx

from ..config import CURRENCY, STRIPE_ACCOUNT_COUNTRY, STRIPE_API_URL, STRIPE_SECRET_KEY
from ..shared.errors import AccountProviderError, PayoutProviderError

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Extract Stripe's error message from a failed response"""
    try:
        error = response.json().get("error", {})
    except ValueError:
        return f"HTTP {response.status_code}"
    code = error.get("code")
    message = error.get("message", "Unknown error")
    return f"[{code}] {message}" if code else message


class StripeConnectService:
    """Account provider backed by the Stripe REST API"""

    def __init__(
        self,
        secret_key: Optional[str] = STRIPE_SECRET_KEY,
        api_url: str = STRIPE_API_URL,
        currency: str = CURRENCY,
        country: str = STRIPE_ACCOUNT_COUNTRY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.currency = currency
        self.country = country
        self.transport = transport

        if not self.secret_key:
            logger.warning("STRIPE_SECRET_KEY not set; caregiver signup and payouts will fail")

    async def _post(self, path: str, data: dict, idempotency_key: Optional[str] = None) -> httpx.Response:
        headers = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        async with httpx.AsyncClient(transport=self.transport, timeout=30.0) as client:
            return await client.post(
                f"{self.api_url}{path}",
                auth=(self.secret_key or "", ""),
                data=data,
                headers=headers,
            )

    async def create_account(self, email: str) -> str:
        """Create an Express account with manual payouts"""
        data = {
            "type": "express",
            "country": self.country,
            "email": email,
            "capabilities[card_payments][requested]": "true",
            "capabilities[transfers][requested]": "true",
            "settings[payouts][schedule][interval]": "manual",
        }
        try:
            response = await self._post("/accounts", data)
        except httpx.HTTPError as e:
            logger.error(f"❌ Stripe account creation failed for {email}: {e}")
            raise AccountProviderError(f"Stripe unavailable: {e}") from e

        if response.status_code != 200:
            message = _error_message(response)
            logger.error(f"❌ Stripe account creation rejected for {email}: {message}")
            raise AccountProviderError(message)

        account_id = response.json()["id"]
        logger.info(f"✅ Stripe account created: {account_id}")
        return account_id

    async def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        data = {
            "account": account_id,
            "refresh_url": refresh_url,
            "return_url": return_url,
            "type": "account_onboarding",
        }
        try:
            response = await self._post("/account_links", data)
        except httpx.HTTPError as e:
            logger.error(f"❌ Stripe onboarding link failed for {account_id}: {e}")
            raise AccountProviderError(f"Stripe unavailable: {e}") from e

        if response.status_code != 200:
            message = _error_message(response)
            logger.error(f"❌ Stripe onboarding link rejected for {account_id}: {message}")
            raise AccountProviderError(message)

        return response.json()["url"]

    async def transfer(self, account_id: str, amount: int, group_key: str, description: str) -> str:
        """
        Transfer the caregiver share to their connected account.

        The booking id is used as transfer group and idempotency key so a
        repeated request for the same booking cannot pay out twice.

        Raises:
            PayoutProviderError: on any network or Stripe-side failure
        """
        data = {
            "amount": str(amount),
            "currency": self.currency,
            "destination": account_id,
            "transfer_group": group_key,
            "description": description,
        }
        try:
            response = await self._post("/transfers", data, idempotency_key=f"transfer-{group_key}")
        except httpx.HTTPError as e:
            logger.error(f"❌ Stripe transfer failed for {group_key}: {e}")
            raise PayoutProviderError(f"Stripe unavailable: {e}") from e

        if response.status_code != 200:
            message = _error_message(response)
            logger.error(f"❌ Stripe transfer rejected for {group_key}: {message}")
            raise PayoutProviderError(message)

        transfer_id = response.json()["id"]
        logger.info(f"💸 Transfer {transfer_id}: {amount} {self.currency} to {account_id} ({group_key})")
        return transfer_id
