from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from artsafe.utils.logger import logger

scheduler = AsyncIOScheduler(timezone="UTC")


def setup_scheduled_tasks():
    """Setup all scheduled background tasks"""
    try:
        # Offer expiration - every hour
        scheduler.add_job(
            expire_offers,
            IntervalTrigger(hours=1),
            id='expire_offers',
            replace_existing=True,
            max_instances=1
        )

        # Approval deadline reminders - every 6 hours
        scheduler.add_job(
            send_approval_deadline_reminders,
            IntervalTrigger(hours=6),
            id='send_approval_deadline_reminders',
            replace_existing=True,
            max_instances=1
        )

        # Stalled escrow approvals - every 6 hours
        scheduler.add_job(
            flag_stalled_escrows,
            IntervalTrigger(hours=6),
            id='flag_stalled_escrows',
            replace_existing=True,
            max_instances=1
        )

        # Price evaluation - daily at 2 AM UTC
        scheduler.add_job(
            evaluate_artwork_prices,
            CronTrigger(hour=2, minute=0),
            id='evaluate_artwork_prices',
            replace_existing=True,
            max_instances=1
        )

        # Email queue - every 5 minutes
        scheduler.add_job(
            send_queued_emails,
            IntervalTrigger(minutes=5),
            id='send_queued_emails',
            replace_existing=True,
            max_instances=1
        )

        logger.info("Background jobs scheduled successfully")
    except Exception as e:
        logger.error(f"Failed to setup scheduled tasks: {e}")


async def expire_offers():
    """Expire pending offers that have passed their expiration date"""
    from artsafe.database import AsyncSessionLocal
    from artsafe.services.offer_service import OfferService

    try:
        async with AsyncSessionLocal() as db:
            count = await OfferService.expire_offers(db)
            logger.info(f"Offer expiration job finished, {count} offers expired")
    except Exception as e:
        logger.error(f"Error in expire_offers job: {e}")


async def send_approval_deadline_reminders():
    """Remind parties whose approval deadline is approaching"""
    from artsafe.database import AsyncSessionLocal
    from artsafe.services.escrow_service import EscrowService

    try:
        async with AsyncSessionLocal() as db:
            count = await EscrowService.send_approval_deadline_reminders(db)
            logger.info(f"Approval reminder job finished, {count} escrows reminded")
    except Exception as e:
        logger.error(f"Error in send_approval_deadline_reminders job: {e}")


async def flag_stalled_escrows():
    """Flag escrows that passed their approval deadline"""
    from artsafe.database import AsyncSessionLocal
    from artsafe.services.escrow_service import EscrowService

    try:
        async with AsyncSessionLocal() as db:
            count = await EscrowService.flag_stalled_escrows(db)
            logger.info(f"Stalled escrow job finished, {count} escrows flagged")
    except Exception as e:
        logger.error(f"Error in flag_stalled_escrows job: {e}")


async def evaluate_artwork_prices():
    """Re-evaluate every available artwork against market data"""
    from artsafe.database import AsyncSessionLocal
    from artsafe.services.pricing_evaluation import PricingEvaluationService

    try:
        result = await PricingEvaluationService.evaluate_all_artworks(AsyncSessionLocal)
        logger.info(f"Price evaluation job finished: {result}")
    except Exception as e:
        logger.error(f"Error in evaluate_artwork_prices job: {e}")


async def send_queued_emails():
    """Deliver pending emails and retry failed ones"""
    from artsafe.database import AsyncSessionLocal
    from artsafe.services.email_service import EmailService

    try:
        async with AsyncSessionLocal() as db:
            result = await EmailService.process_pending_emails(db)
            if result["processed"] or result["failed"]:
                logger.info(f"Email job finished: {result}")
    except Exception as e:
        logger.error(f"Error in send_queued_emails job: {e}")
