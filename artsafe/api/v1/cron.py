import time
from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from artsafe.database import get_db
from artsafe.api.deps import verify_cron_secret, get_session_factory
from artsafe.schemas.pricing import BatchEvaluationResponse
from artsafe.services.pricing_evaluation import PricingEvaluationService
from artsafe.services.offer_service import OfferService
from artsafe.services.escrow_service import EscrowService
from artsafe.services.email_service import EmailService
from artsafe.utils.logger import logger

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.get("/evaluate-prices", response_model=BatchEvaluationResponse)
async def cron_evaluate_prices(session_factory: async_sessionmaker = Depends(get_session_factory)):
    """External trigger for the daily price evaluation"""
    logger.info("Starting scheduled price evaluation...")
    started = time.monotonic()

    result = await PricingEvaluationService.evaluate_all_artworks(session_factory)

    return BatchEvaluationResponse(
        message="Price evaluation completed",
        duration_ms=int((time.monotonic() - started) * 1000),
        **result,
    )


@router.get("/process-timeouts")
async def cron_process_timeouts(db: AsyncSession = Depends(get_db)):
    expired = await OfferService.expire_offers(db)
    stalled = await EscrowService.flag_stalled_escrows(db)
    reminded = await EscrowService.send_approval_deadline_reminders(db)
    return {
        "expired_offers": expired,
        "stalled_escrows": stalled,
        "deadline_reminders": reminded,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/send-emails")
async def cron_send_emails(db: AsyncSession = Depends(get_db)):
    return await EmailService.process_pending_emails(db)
