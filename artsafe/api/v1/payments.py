from fastapi import APIRouter, Depends, Request, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
from artsafe.database import get_db
from artsafe.services.offer_service import OfferService
from artsafe.integrations.stripe_client import StripeClient
from artsafe.utils.logger import logger

router = APIRouter()


def _offer_id_from_metadata(data: dict):
    offer_id = (data.get("metadata") or {}).get("offer_id")
    if not offer_id:
        return None
    try:
        return UUID(offer_id)
    except ValueError:
        logger.warning(f"Webhook carried malformed offer_id: {offer_id}")
        return None


@router.post("/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Handle Stripe webhook events for escrow payments"""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        raise HTTPException(status_code=400, detail="Missing signature")

    event = StripeClient.verify_webhook_signature(payload, signature)
    if not event:
        raise HTTPException(status_code=400, detail="Invalid signature")

    event_type = event.get("type")
    data = event.get("data", {}).get("object", {})

    if event_type == "payment_intent.succeeded":
        offer_id = _offer_id_from_metadata(data)
        if offer_id:
            await OfferService.update_offer_payment_intent(db, offer_id, data.get("id"))

    elif event_type == "payment_intent.payment_failed":
        offer_id = _offer_id_from_metadata(data)
        if offer_id:
            error_message = (data.get("last_payment_error") or {}).get("message")
            await OfferService.mark_payment_failed(db, offer_id, data.get("id"), error_message)
            logger.info(f"Payment failed for offer {offer_id}")

    else:
        logger.debug(f"Ignoring Stripe event {event_type}")

    return {"status": "success"}
