from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List, Dict, Any
from datetime import datetime, timedelta
from uuid import UUID
from artsafe.config import settings
from artsafe.models.offer import Offer, OfferStatus, EnhancedOfferStatus, OfferAuditLog
from artsafe.models.artwork import Artwork
from artsafe.models.profile import Profile
from artsafe.models.alert import AlertType, AlertSeverity
from artsafe.models.notification import EmailNotificationType
from artsafe.core.permissions import Role
from artsafe.schemas.offer import OfferCreate
from artsafe.services.alert_service import AlertService
from artsafe.services.email_service import EmailService, dashboard_url
from artsafe.core.exceptions import (
    NotFoundException,
    ForbiddenException,
    BadRequestException,
    PreconditionFailedException,
)
from artsafe.utils.helpers import percent_deviation
from artsafe.utils.logger import logger

FUNDABLE_STATUSES = (
    EnhancedOfferStatus.OFFER_ACCEPTED,
    EnhancedOfferStatus.PAYMENT_LINK_CREATED,
    EnhancedOfferStatus.AWAITING_PAYMENT,
)


class OfferService:
    @staticmethod
    def _audit(
        db: AsyncSession,
        offer: Offer,
        event_type: str,
        actor_id: Optional[UUID],
        actor_role: str,
        old_status: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        db.add(OfferAuditLog(
            offer_id=offer.id,
            event_type=event_type,
            actor_id=actor_id,
            actor_role=actor_role,
            old_status=old_status,
            new_status=offer.enhanced_status.value,
            meta_data=metadata or {},
        ))

    @staticmethod
    async def _notify_admins(
        db: AsyncSession,
        notification_type: EmailNotificationType,
        template_data: Dict[str, Any],
        offer_id: Optional[UUID] = None,
    ) -> None:
        result = await db.execute(select(Profile.id).where(Profile.role == Role.ADMIN))
        for admin_id in result.scalars().all():
            await EmailService.queue_email_notification(db, admin_id, notification_type, template_data, offer_id)

    @staticmethod
    async def get_offer_by_id(db: AsyncSession, offer_id: UUID) -> Optional[Offer]:
        result = await db.execute(select(Offer).where(Offer.id == offer_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def require_offer(db: AsyncSession, offer_id: UUID) -> Offer:
        offer = await OfferService.get_offer_by_id(db, offer_id)
        if not offer:
            raise NotFoundException("Offer", str(offer_id))
        return offer

    @staticmethod
    async def get_buyer_offers(db: AsyncSession, buyer_id: UUID) -> List[Offer]:
        result = await db.execute(
            select(Offer).where(Offer.buyer_id == buyer_id).order_by(Offer.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_seller_offers(db: AsyncSession, seller_id: UUID) -> List[Offer]:
        result = await db.execute(
            select(Offer).where(Offer.seller_id == seller_id).order_by(Offer.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_artwork_offers(db: AsyncSession, artwork_id: UUID) -> List[Offer]:
        result = await db.execute(
            select(Offer).where(Offer.artwork_id == artwork_id).order_by(Offer.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_offer(db: AsyncSession, buyer_id: UUID, offer_data: OfferCreate) -> Offer:
        """
        Create a pending offer from a buyer.

        Offers that deviate from the list price by more than
        PRICE_DEVIATION_ALERT_PERCENT raise an admin alert. The offer itself is
        still created, the alert is advisory.
        """
        if offer_data.offered_price_cents <= 0:
            raise BadRequestException("Offered price must be positive")

        if offer_data.seller_id == buyer_id:
            raise BadRequestException("Cannot make an offer on your own artwork")

        result = await db.execute(select(Artwork).where(Artwork.id == offer_data.artwork_id))
        artwork = result.scalar_one_or_none()
        if not artwork:
            raise NotFoundException("Artwork", str(offer_data.artwork_id))

        if artwork.artist_id != offer_data.seller_id:
            raise BadRequestException("Seller does not own this artwork")

        if not artwork.price_cents or artwork.price_cents <= 0:
            raise BadRequestException("Artwork has no list price")

        offer = Offer(
            artwork_id=offer_data.artwork_id,
            buyer_id=buyer_id,
            seller_id=offer_data.seller_id,
            list_price_cents=artwork.price_cents,
            offered_price_cents=offer_data.offered_price_cents,
            message=offer_data.message,
            status=OfferStatus.PENDING,
            enhanced_status=EnhancedOfferStatus.PENDING_OFFER,
            expires_at=datetime.utcnow() + timedelta(days=settings.OFFER_EXPIRY_DAYS),
        )
        db.add(offer)
        await db.flush()

        deviation = percent_deviation(offer.offered_price_cents, offer.list_price_cents)
        alert_needed = deviation is not None and abs(deviation) > settings.PRICE_DEVIATION_ALERT_PERCENT
        if alert_needed:
            offer.price_deviation_alert_sent = True

        OfferService._audit(
            db, offer, "offer_created", buyer_id, "buyer",
            metadata={"offered_price_cents": offer.offered_price_cents},
        )
        await EmailService.queue_email_notification(
            db,
            offer.seller_id,
            EmailNotificationType.OFFER_CREATED,
            {
                "offered_price_cents": offer.offered_price_cents,
                "list_price_cents": offer.list_price_cents,
                "message": offer.message,
                "dashboard_url": dashboard_url(offer.id),
            },
            offer.id,
        )
        await db.commit()
        await db.refresh(offer)

        if alert_needed:
            await OfferService._raise_price_deviation_alert(db, offer, deviation)

        logger.info(f"Offer created: {offer.id} by buyer {buyer_id} for artwork {offer.artwork_id}")
        return offer

    @staticmethod
    async def _raise_price_deviation_alert(db: AsyncSession, offer: Offer, deviation: float) -> None:
        rounded = round(deviation, 1)
        template_data = {
            "list_price_cents": offer.list_price_cents,
            "offered_price_cents": offer.offered_price_cents,
            "deviation_percent": rounded,
        }
        await OfferService._notify_admins(db, EmailNotificationType.PRICE_DEVIATION_ALERT, template_data, offer.id)
        await AlertService.create_alert(
            db,
            AlertType.PRICE_DEVIATION,
            AlertSeverity.HIGH if abs(deviation) >= 50 else AlertSeverity.MEDIUM,
            "Price deviation detected",
            f"Offer {offer.id} deviates {rounded}% from the list price",
            offer_id=offer.id,
            metadata=template_data,
        )

    @staticmethod
    async def _respond_to_offer(db: AsyncSession, offer_id: UUID, actor_id: UUID, accept: bool) -> Offer:
        offer = await OfferService.require_offer(db, offer_id)

        if offer.seller_id != actor_id:
            raise ForbiddenException("Only seller can accept offer" if accept else "Only seller can reject offer")

        if offer.status != OfferStatus.PENDING:
            raise PreconditionFailedException("Offer is not pending")

        old_status = offer.enhanced_status.value
        now = datetime.utcnow()

        if accept:
            offer.status = OfferStatus.ACCEPTED
            offer.enhanced_status = EnhancedOfferStatus.OFFER_ACCEPTED
            offer.accepted_at = now
            from artsafe.services.escrow_service import EscrowService
            await EscrowService.create_escrow_approval(
                db,
                offer,
                approval_deadline=now + timedelta(days=settings.ESCROW_APPROVAL_WINDOW_DAYS),
                commit=False,
            )
            notification_type = EmailNotificationType.OFFER_ACCEPTED
        else:
            offer.status = OfferStatus.REJECTED
            offer.rejected_at = now
            notification_type = EmailNotificationType.OFFER_REJECTED

        OfferService._audit(
            db, offer, "offer_accepted" if accept else "offer_rejected", actor_id, "seller", old_status
        )
        await EmailService.queue_email_notification(
            db,
            offer.buyer_id,
            notification_type,
            {"offered_price_cents": offer.offered_price_cents, "dashboard_url": dashboard_url(offer.id)},
            offer.id,
        )
        await db.commit()
        await db.refresh(offer)

        logger.info(f"Offer {offer.id} {'accepted' if accept else 'rejected'} by seller {actor_id}")
        return offer

    @staticmethod
    async def accept_offer(db: AsyncSession, offer_id: UUID, actor_id: UUID) -> Offer:
        return await OfferService._respond_to_offer(db, offer_id, actor_id, accept=True)

    @staticmethod
    async def reject_offer(db: AsyncSession, offer_id: UUID, actor_id: UUID) -> Offer:
        return await OfferService._respond_to_offer(db, offer_id, actor_id, accept=False)

    @staticmethod
    async def update_offer_payment_link(
        db: AsyncSession,
        offer_id: UUID,
        payment_link_id: str,
        payment_link_url: str,
        actor_id: Optional[UUID] = None,
    ) -> Offer:
        offer = await OfferService.require_offer(db, offer_id)

        if offer.status != OfferStatus.ACCEPTED:
            raise PreconditionFailedException("Offer must be accepted before a payment link is attached")

        old_status = offer.enhanced_status.value
        offer.payment_link_id = payment_link_id
        offer.payment_link_url = payment_link_url
        offer.enhanced_status = EnhancedOfferStatus.PAYMENT_LINK_CREATED
        offer.payment_deadline = datetime.utcnow() + timedelta(hours=settings.PAYMENT_WINDOW_HOURS)

        OfferService._audit(
            db, offer, "payment_link_created", actor_id, "seller" if actor_id else "system", old_status,
            {"payment_link_id": payment_link_id},
        )
        await EmailService.queue_email_notification(
            db,
            offer.buyer_id,
            EmailNotificationType.PAYMENT_LINK_READY,
            {
                "amount_cents": offer.offered_price_cents,
                "payment_link_url": payment_link_url,
                "hours_until_expiry": settings.PAYMENT_WINDOW_HOURS,
            },
            offer.id,
        )
        await db.commit()
        await db.refresh(offer)

        logger.info(f"Payment link {payment_link_id} attached to offer {offer.id}")
        return offer

    @staticmethod
    async def update_offer_payment_intent(db: AsyncSession, offer_id: UUID, payment_intent_id: str) -> Optional[Offer]:
        """
        Record a succeeded payment and mark the escrow funded.

        Stripe redelivers events, so a repeated intent is a no-op and offers
        past the payment stage keep their status. Unknown offers return None.
        """
        offer = await OfferService.get_offer_by_id(db, offer_id)
        if not offer:
            logger.warning(f"Payment {payment_intent_id} succeeded for unknown offer {offer_id}")
            return None

        if offer.stripe_payment_intent_id == payment_intent_id:
            logger.info(f"Payment intent {payment_intent_id} already recorded for offer {offer.id}")
            return offer

        if offer.status != OfferStatus.ACCEPTED or offer.enhanced_status not in FUNDABLE_STATUSES:
            logger.warning(
                f"Ignoring payment {payment_intent_id} for offer {offer.id} "
                f"in status {offer.status.value}/{offer.enhanced_status.value}"
            )
            return offer

        old_status = offer.enhanced_status.value
        offer.stripe_payment_intent_id = payment_intent_id
        offer.enhanced_status = EnhancedOfferStatus.ESCROW_FUNDED

        OfferService._audit(
            db, offer, "payment_received", None, "system", old_status,
            {"payment_intent_id": payment_intent_id},
        )
        for recipient_id in (offer.buyer_id, offer.seller_id):
            await EmailService.queue_email_notification(
                db,
                recipient_id,
                EmailNotificationType.PAYMENT_RECEIVED,
                {"amount_cents": offer.offered_price_cents},
                offer.id,
            )
        await db.commit()
        await db.refresh(offer)

        logger.info(f"Payment intent {payment_intent_id} recorded for offer {offer.id}")
        return offer

    @staticmethod
    async def expire_offers(db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Expire pending offers whose expires_at has passed"""
        now = now or datetime.utcnow()
        result = await db.execute(
            select(Offer).where(
                Offer.status == OfferStatus.PENDING,
                Offer.expires_at.isnot(None),
                Offer.expires_at < now,
            )
        )
        offers = result.scalars().all()

        for offer in offers:
            old_status = offer.enhanced_status.value
            offer.status = OfferStatus.EXPIRED
            offer.enhanced_status = EnhancedOfferStatus.EXPIRED
            OfferService._audit(db, offer, "offer_expired", None, "system", old_status)
            await EmailService.queue_email_notification(
                db,
                offer.buyer_id,
                EmailNotificationType.OFFER_EXPIRED,
                {"offered_price_cents": offer.offered_price_cents},
                offer.id,
            )

        await db.commit()

        if offers:
            logger.info(f"Expired {len(offers)} offers")
        return len(offers)

    @staticmethod
    async def mark_payment_failed(
        db: AsyncSession,
        offer_id: UUID,
        payment_intent_id: str,
        error_message: Optional[str] = None,
    ) -> Optional[Offer]:
        offer = await OfferService.get_offer_by_id(db, offer_id)

        if not offer:
            logger.warning(f"Payment {payment_intent_id} failed for unknown offer {offer_id}")
            return None

        error_message = error_message or "unknown error"
        template_data = {"offer_id": str(offer.id), "error_message": error_message}
        OfferService._audit(
            db, offer, "payment_failed", None, "system", offer.enhanced_status.value,
            {"payment_intent_id": payment_intent_id, "error": error_message},
        )
        await OfferService._notify_admins(db, EmailNotificationType.PAYMENT_FAILED, template_data, offer.id)
        await AlertService.create_alert(
            db,
            AlertType.PAYMENT_FAILED,
            AlertSeverity.HIGH,
            "Payment failed",
            f"Payment failed for offer {offer.id}: {error_message}",
            offer_id=offer.id,
            metadata={"payment_intent_id": payment_intent_id, "last_payment_error": error_message},
        )

        logger.error(f"Payment failed for offer {offer.id}: {error_message}")
        return offer
