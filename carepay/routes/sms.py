"""
Inbound SMS webhook
Twilio posts customer replies to the satisfaction prompt here
"""

import logging

from fastapi import APIRouter, Depends, Form

from ..dependencies import get_escrow_machine
from ..domain.payments.escrow import EscrowStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sms", tags=["SMS"])


@router.post("/webhook")
async def sms_webhook(
    Body: str = Form(""),
    From: str = Form(...),
    escrow: EscrowStateMachine = Depends(get_escrow_machine),
):
    """Apply a YES/NO reply to the sender's pending booking"""
    logger.info(f"📱 SMS reply received from {From}")
    outcome = await escrow.handle_confirmation(From, Body)
    return {"success": True, "outcome": outcome.value}
