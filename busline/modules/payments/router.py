import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from busline.config import settings
from busline.db.session import get_session
from busline.logging_setup import BOOKING_REF_CTX
from busline.schemas.payment import WebhookAck
from busline.services.errors import CallbackError
from busline.services.lifecycle import BookingLifecycle
from busline.services.payment_gateway import handle_callback

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post("/callback", response_model=WebhookAck)
async def payment_callback(request: Request, db: AsyncSession = Depends(get_session)):
    """Hubtel payment notification.

    Always acknowledged with 200 so the gateway stops retrying; bad or
    unattributable payloads are only logged.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("Data"), dict):
        BOOKING_REF_CTX.set(payload["Data"].get("ClientReference"))
    logger.info("Received Hubtel callback: %s", payload)

    try:
        booking = await handle_callback(BookingLifecycle(db), payload)
    except CallbackError as exc:
        logger.error("Callback error: %s", exc)
        return WebhookAck(received=True, message="Invalid callback data")

    if booking is None:
        return WebhookAck(received=True, message="Booking not found or already processed")
    return WebhookAck(received=True, message=f"Booking {booking.status}")


@router.get("/return")
async def payment_return(clientreference: Optional[str] = None, error: Optional[str] = None):
    """Where the gateway sends the customer's browser after checkout."""
    base = settings.FRONTEND_URL.rstrip("/")
    if clientreference:
        return RedirectResponse(f"{base}/booking-confirmation?{urlencode({'ref': clientreference})}", status_code=302)
    target = f"{base}/"
    if error:
        target += "?" + urlencode({"error": error})
    return RedirectResponse(target, status_code=302)
