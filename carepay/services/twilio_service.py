"""
Twilio SMS Service
Sends satisfaction prompts and replies to customers
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_API_URL, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
from ..shared.errors import MessagingProviderError

logger = logging.getLogger(__name__)


class TwilioMessagingService:
    """Messaging provider backed by the Twilio Messages API"""

    def __init__(
        self,
        account_sid: Optional[str] = TWILIO_ACCOUNT_SID,
        auth_token: Optional[str] = TWILIO_AUTH_TOKEN,
        from_number: Optional[str] = TWILIO_PHONE_NUMBER,
        api_url: str = TWILIO_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_url = api_url.rstrip("/")
        self.transport = transport

        if not (self.account_sid and self.auth_token and self.from_number):
            logger.warning("Twilio configuration incomplete; SMS delivery will fail")

    async def send(self, to: str, text: str) -> str:
        """
        Send an SMS via Twilio

        Returns:
            The Twilio message SID

        Raises:
            MessagingProviderError: if Twilio is not configured or rejects the message
        """
        if not (self.account_sid and self.auth_token and self.from_number):
            raise MessagingProviderError("Twilio is not configured")

        logger.info(f"📱 Sending SMS to {to}")
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
                response = await client.post(
                    f"{self.api_url}/Accounts/{self.account_sid}/Messages.json",
                    auth=(self.account_sid, self.auth_token),
                    data={"To": to, "From": self.from_number, "Body": text},
                )
        except httpx.HTTPError as e:
            logger.error(f"Twilio API error: {str(e)}")
            raise MessagingProviderError(str(e)) from e

        if response.status_code not in (200, 201):
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            error_message = error_data.get("message", f"HTTP {response.status_code}")
            error_code = error_data.get("code")
            logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
            raise MessagingProviderError(
                f"[{error_code}] {error_message}" if error_code else error_message
            )

        message_sid = response.json().get("sid")
        logger.info(f"✅ SMS sent to {to} (SID: {message_sid})")
        return message_sid
