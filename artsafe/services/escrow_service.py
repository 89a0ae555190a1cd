import stripe
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional, Tuple
from datetime import datetime, timedelta
from uuid import UUID
from artsafe.config import settings
from artsafe.models.offer import Offer, EscrowApproval, EnhancedOfferStatus, OfferAuditLog
from artsafe.models.profile import Profile
from artsafe.models.alert import AlertType, AlertSeverity
from artsafe.models.notification import EmailNotificationType
from artsafe.core.permissions import Role
from artsafe.schemas.offer import EscrowAmounts
from artsafe.services.alert_service import AlertService
from artsafe.services.email_service import EmailService, dashboard_url
from artsafe.services.offer_service import OfferService
from artsafe.integrations.stripe_client import StripeClient
from artsafe.core.exceptions import (
    NotFoundException,
    ForbiddenException,
    BadRequestException,
    ConflictException,
    PreconditionFailedException,
)
from artsafe.utils.helpers import calculate_escrow_amounts, format_dkk
from artsafe.utils.logger import logger


class EscrowService:
    @staticmethod
    async def get_escrow_approval(db: AsyncSession, offer_id: UUID) -> Optional[EscrowApproval]:
        result = await db.execute(select(EscrowApproval).where(EscrowApproval.offer_id == offer_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def require_escrow_approval(db: AsyncSession, offer_id: UUID) -> EscrowApproval:
        approval = await EscrowService.get_escrow_approval(db, offer_id)
        if not approval:
            raise NotFoundException("Escrow approval", str(offer_id))
        return approval

    @staticmethod
    async def create_escrow_approval(
        db: AsyncSession,
        offer: Offer,
        approval_deadline: Optional[datetime] = None,
        commit: bool = True,
    ) -> EscrowApproval:
        existing = await EscrowService.get_escrow_approval(db, offer.id)
        if existing:
            raise ConflictException(f"Escrow approval already exists for offer {offer.id}")

        if approval_deadline is None:
            approval_deadline = datetime.utcnow() + timedelta(days=settings.ESCROW_APPROVAL_WINDOW_DAYS)

        approval = EscrowApproval(offer_id=offer.id, approval_deadline=approval_deadline)
        db.add(approval)
        if commit:
            await db.commit()
            await db.refresh(approval)
        else:
            await db.flush()

        logger.info(f"Escrow approval created for offer {offer.id}")
        return approval

    @staticmethod
    async def _approve(
        db: AsyncSession,
        offer_id: UUID,
        actor_id: UUID,
        party: str,
    ) -> Tuple[Offer, EscrowApproval]:
        offer = await OfferService.require_offer(db, offer_id)

        if party == "buyer" and offer.buyer_id != actor_id:
            raise ForbiddenException("Only buyer can approve")
        if party == "seller" and offer.seller_id != actor_id:
            raise ForbiddenException("Only seller can approve")

        approval = await EscrowService.require_escrow_approval(db, offer_id)
        now = datetime.utcnow()

        if party == "buyer":
            approval.buyer_approved = True
            approval.buyer_approved_at = now
            counterpart_id = offer.seller_id
            notification_type = EmailNotificationType.BUYER_APPROVED
        else:
            approval.seller_approved = True
            approval.seller_approved_at = now
            counterpart_id = offer.buyer_id
            notification_type = EmailNotificationType.SELLER_APPROVED

        approval.both_approved = bool(approval.buyer_approved and approval.seller_approved)

        old_status = offer.enhanced_status.value
        if not approval.funds_released and offer.enhanced_status != EnhancedOfferStatus.DISPUTED:
            offer.enhanced_status = (
                EnhancedOfferStatus.BOTH_APPROVED if approval.both_approved else EnhancedOfferStatus.AWAITING_APPROVALS
            )

        db.add(OfferAuditLog(
            offer_id=offer.id,
            event_type=f"{party}_approved",
            actor_id=actor_id,
            actor_role=party,
            old_status=old_status,
            new_status=offer.enhanced_status.value,
            meta_data={"both_approved": approval.both_approved},
        ))
        await EmailService.queue_email_notification(
            db, counterpart_id, notification_type, {"dashboard_url": dashboard_url(offer.id)}, offer.id
        )
        await db.commit()
        await db.refresh(approval)

        logger.info(f"Escrow for offer {offer.id} approved by {party} (both_approved={approval.both_approved})")
        return offer, approval

    @staticmethod
    async def buyer_approve_escrow(db: AsyncSession, offer_id: UUID, actor_id: UUID) -> EscrowApproval:
        _, approval = await EscrowService._approve(db, offer_id, actor_id, "buyer")
        return approval

    @staticmethod
    async def seller_approve_escrow(db: AsyncSession, offer_id: UUID, actor_id: UUID) -> EscrowApproval:
        _, approval = await EscrowService._approve(db, offer_id, actor_id, "seller")
        return approval

    @staticmethod
    async def update_escrow_release(
        db: AsyncSession,
        offer_id: UUID,
        transfer_id: str,
        amounts: EscrowAmounts,
    ) -> EscrowApproval:
        """Record a completed payout. Only valid once both parties have approved."""
        approval = await EscrowService.require_escrow_approval(db, offer_id)

        if not approval.both_approved:
            raise PreconditionFailedException("Both buyer and seller must approve before funds can be released")
        if approval.funds_released:
            raise ConflictException("Funds have already been released")

        approval.funds_released = True
        approval.funds_released_at = datetime.utcnow()
        approval.stripe_transfer_id = transfer_id
        approval.platform_fee_cents = amounts.platform_fee_cents
        approval.vat_cents = amounts.vat_cents
        approval.seller_amount_cents = amounts.seller_amount_cents

        offer = await OfferService.require_offer(db, offer_id)
        old_status = offer.enhanced_status.value
        offer.enhanced_status = EnhancedOfferStatus.RELEASED

        db.add(OfferAuditLog(
            offer_id=offer.id,
            event_type="escrow_released",
            actor_role="system",
            old_status=old_status,
            new_status=offer.enhanced_status.value,
            meta_data={"transfer_id": transfer_id, **amounts.model_dump()},
        ))
        await db.commit()
        await db.refresh(approval)

        logger.info(f"Escrow released for offer {offer_id} via transfer {transfer_id}")
        return approval

    @staticmethod
    async def release_escrow_funds(db: AsyncSession, offer_id: UUID, actor_id: UUID) -> Tuple[str, EscrowAmounts, Offer]:
        """
        Pay the seller their share of an approved escrow.

        Computes the fee split, creates the Stripe Connect transfer for the
        seller amount and records the release. Returns (transfer_id, amounts, offer).
        """
        offer = await OfferService.require_offer(db, offer_id)

        result = await db.execute(select(Profile).where(Profile.id == actor_id))
        actor = result.scalar_one_or_none()
        is_admin = actor is not None and actor.role == Role.ADMIN
        if actor_id not in (offer.buyer_id, offer.seller_id) and not is_admin:
            raise ForbiddenException("Only the buyer, seller or an admin can release escrow")

        approval = await EscrowService.require_escrow_approval(db, offer_id)

        if not approval.both_approved:
            raise PreconditionFailedException("Both buyer and seller must approve before funds can be released")
        if approval.funds_released:
            raise ConflictException("Funds have already been released")
        if offer.enhanced_status == EnhancedOfferStatus.DISPUTED:
            raise PreconditionFailedException("Offer is under dispute")
        if not offer.stripe_payment_intent_id:
            raise BadRequestException("No payment found for this offer")

        result = await db.execute(select(Profile).where(Profile.id == offer.seller_id))
        seller = result.scalar_one_or_none()
        if not seller or not seller.stripe_account_id:
            raise BadRequestException("Seller has not connected Stripe account")

        amounts = calculate_escrow_amounts(offer.offered_price_cents)

        try:
            transfer = StripeClient.create_transfer(
                amount=amounts.seller_amount_cents,
                destination=seller.stripe_account_id,
                transfer_group=f"offer_{offer.id}",
                metadata={
                    "offer_id": str(offer.id),
                    "artwork_id": str(offer.artwork_id),
                    "buyer_id": str(offer.buyer_id),
                    "seller_id": str(offer.seller_id),
                    "total_price_cents": str(offer.offered_price_cents),
                    "platform_fee_cents": str(amounts.platform_fee_cents),
                    "vat_cents": str(amounts.vat_cents),
                    "seller_amount_cents": str(amounts.seller_amount_cents),
                },
            )
        except stripe.error.InvalidRequestError as e:
            raise BadRequestException(f"Stripe error: {e.user_message or str(e)}")

        await EscrowService.update_escrow_release(db, offer_id, transfer["id"], amounts)

        template_data = {
            "amount_cents": offer.offered_price_cents,
            "platform_fee_cents": amounts.platform_fee_cents,
            "vat_cents": amounts.vat_cents,
            "seller_amount_cents": amounts.seller_amount_cents,
        }
        for recipient_id in (offer.buyer_id, offer.seller_id):
            await EmailService.queue_email_notification(
                db, recipient_id, EmailNotificationType.ESCROW_RELEASED, template_data, offer.id
            )
        await db.commit()

        logger.info(
            f"Escrow payout for offer {offer.id}: total {format_dkk(offer.offered_price_cents)}, "
            f"fee {format_dkk(amounts.platform_fee_cents)}, VAT {format_dkk(amounts.vat_cents)}, "
            f"seller {format_dkk(amounts.seller_amount_cents)}"
        )
        return transfer["id"], amounts, offer

    @staticmethod
    def _unapproved_party_ids(offer: Offer, approval: EscrowApproval) -> List[UUID]:
        parties = []
        if not approval.buyer_approved:
            parties.append(offer.buyer_id)
        if not approval.seller_approved:
            parties.append(offer.seller_id)
        return parties

    @staticmethod
    async def send_approval_deadline_reminders(
        db: AsyncSession,
        now: Optional[datetime] = None,
        days_before: Optional[int] = None,
    ) -> int:
        """
        Remind parties who have not approved yet that the approval deadline is near.

        Each approval is reminded once, when its deadline falls within
        ESCROW_REMINDER_DAYS_BEFORE days. Overdue approvals are left to
        flag_stalled_escrows.
        """
        now = now or datetime.utcnow()
        if days_before is None:
            days_before = settings.ESCROW_REMINDER_DAYS_BEFORE
        result = await db.execute(
            select(EscrowApproval).where(
                EscrowApproval.both_approved == False,
                EscrowApproval.funds_released == False,
                EscrowApproval.is_stalled == False,
                EscrowApproval.deadline_reminder_sent_at.is_(None),
                EscrowApproval.approval_deadline.isnot(None),
                EscrowApproval.approval_deadline >= now,
                EscrowApproval.approval_deadline < now + timedelta(days=days_before),
            )
        )
        approvals = result.scalars().all()

        for approval in approvals:
            approval.deadline_reminder_sent_at = now
            offer = await OfferService.get_offer_by_id(db, approval.offer_id)
            if not offer:
                continue
            for recipient_id in EscrowService._unapproved_party_ids(offer, approval):
                await EmailService.queue_email_notification(
                    db,
                    recipient_id,
                    EmailNotificationType.APPROVAL_DEADLINE_WARNING,
                    {
                        "deadline": approval.approval_deadline.strftime("%d-%m-%Y"),
                        "dashboard_url": dashboard_url(offer.id),
                    },
                    offer.id,
                )

        await db.commit()

        if approvals:
            logger.info(f"Sent approval deadline reminders for {len(approvals)} escrows")
        return len(approvals)

    @staticmethod
    async def flag_stalled_escrows(db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Flag approvals that passed their deadline without both parties approving"""
        now = now or datetime.utcnow()
        result = await db.execute(
            select(EscrowApproval).where(
                EscrowApproval.both_approved == False,
                EscrowApproval.funds_released == False,
                EscrowApproval.is_stalled == False,
                EscrowApproval.approval_deadline.isnot(None),
                EscrowApproval.approval_deadline < now,
            )
        )
        approvals = result.scalars().all()

        for approval in approvals:
            approval.is_stalled = True
            offer = await OfferService.get_offer_by_id(db, approval.offer_id)
            if offer:
                for recipient_id in EscrowService._unapproved_party_ids(offer, approval):
                    await EmailService.queue_email_notification(
                        db,
                        recipient_id,
                        EmailNotificationType.APPROVAL_DEADLINE_WARNING,
                        {"stalled": True, "dashboard_url": dashboard_url(offer.id)},
                        offer.id,
                    )
            await AlertService.create_alert(
                db,
                AlertType.ESCROW_ISSUE,
                AlertSeverity.MEDIUM,
                "Escrow approval stalled",
                f"Escrow for offer {approval.offer_id} passed its approval deadline "
                f"(buyer_approved={approval.buyer_approved}, seller_approved={approval.seller_approved})",
                offer_id=approval.offer_id,
            )

        await db.commit()

        if approvals:
            logger.warning(f"Flagged {len(approvals)} stalled escrows")
        return len(approvals)
