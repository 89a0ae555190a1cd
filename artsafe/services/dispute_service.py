from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID, uuid4
from artsafe.config import settings
from artsafe.models.offer import Offer, OfferDispute, OfferStatus, DisputeStatus, PartyRole, EnhancedOfferStatus, OfferAuditLog
from artsafe.models.profile import Profile
from artsafe.models.alert import AlertType, AlertSeverity
from artsafe.models.notification import EmailNotificationType
from artsafe.core.permissions import Role
from artsafe.services.alert_service import AlertService
from artsafe.services.email_service import EmailService, dashboard_url
from artsafe.services.escrow_service import EscrowService
from artsafe.services.offer_service import OfferService
from artsafe.integrations.supabase_client import SupabaseClient
from artsafe.core.exceptions import (
    NotFoundException,
    ForbiddenException,
    ConflictException,
    BadRequestException,
    PreconditionFailedException,
)
from artsafe.utils.logger import logger

OPEN_STATUSES = (DisputeStatus.OPEN, DisputeStatus.INVESTIGATING)


class DisputeService:
    @staticmethod
    async def get_dispute(db: AsyncSession, dispute_id: UUID) -> OfferDispute:
        result = await db.execute(select(OfferDispute).where(OfferDispute.id == dispute_id))
        dispute = result.scalar_one_or_none()
        if not dispute:
            raise NotFoundException("Dispute", str(dispute_id))
        return dispute

    @staticmethod
    async def get_offer_disputes(db: AsyncSession, offer_id: UUID) -> List[OfferDispute]:
        result = await db.execute(
            select(OfferDispute).where(OfferDispute.offer_id == offer_id).order_by(OfferDispute.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    def _party_role(offer: Offer, actor_id: UUID) -> PartyRole:
        if offer.buyer_id == actor_id:
            return PartyRole.BUYER
        if offer.seller_id == actor_id:
            return PartyRole.SELLER
        raise ForbiddenException("Only the buyer or seller can open a dispute")

    @staticmethod
    async def create_dispute(
        db: AsyncSession,
        offer_id: UUID,
        actor_id: UUID,
        reason: str,
        description: str,
        attachments: Optional[List[Any]] = None,
    ) -> OfferDispute:
        offer = await OfferService.require_offer(db, offer_id)
        initiator_role = DisputeService._party_role(offer, actor_id)

        if offer.status != OfferStatus.ACCEPTED:
            raise PreconditionFailedException("Disputes can only be opened on accepted offers")

        result = await db.execute(
            select(OfferDispute.id).where(OfferDispute.offer_id == offer_id, OfferDispute.status.in_(OPEN_STATUSES))
        )
        if result.first() is not None:
            raise ConflictException("An open dispute already exists for this offer")

        dispute = OfferDispute(
            offer_id=offer_id,
            initiator_id=actor_id,
            initiator_role=initiator_role,
            reason=reason,
            description=description,
            attachments=attachments or [],
            status=DisputeStatus.OPEN,
        )
        db.add(dispute)
        await db.flush()

        old_status = offer.enhanced_status.value
        offer.enhanced_status = EnhancedOfferStatus.DISPUTED
        db.add(OfferAuditLog(
            offer_id=offer.id,
            event_type="dispute_created",
            actor_id=actor_id,
            actor_role=initiator_role.value,
            old_status=old_status,
            new_status=offer.enhanced_status.value,
            meta_data={"dispute_id": str(dispute.id), "reason": reason},
        ))

        other_party_id = offer.seller_id if initiator_role == PartyRole.BUYER else offer.buyer_id
        await EmailService.queue_email_notification(
            db,
            other_party_id,
            EmailNotificationType.DISPUTE_CREATED,
            {"offer_id": str(offer.id), "reason": reason, "dashboard_url": dashboard_url(offer.id)},
            offer.id,
        )

        result = await db.execute(select(Profile.id).where(Profile.role == Role.ADMIN).limit(1))
        admin_id = result.scalar_one_or_none()
        if admin_id:
            await EmailService.queue_email_notification(
                db,
                admin_id,
                EmailNotificationType.DISPUTE_CREATED,
                {
                    "offer_id": str(offer.id),
                    "reason": reason,
                    "initiator_role": initiator_role.value,
                    "dashboard_url": f"{settings.SITE_URL}/admin/disputes/{dispute.id}",
                },
                offer.id,
            )

        await db.commit()
        await db.refresh(dispute)

        await AlertService.create_alert(
            db,
            AlertType.ESCROW_ISSUE,
            AlertSeverity.HIGH,
            "Ny tvist oprettet",
            f"En {initiator_role.value} har oprettet en tvist for offer {offer.id}",
            offer_id=offer.id,
            metadata={"dispute_id": str(dispute.id), "reason": reason, "initiator_role": initiator_role.value},
        )

        logger.info(f"Dispute {dispute.id} opened by {initiator_role.value} {actor_id} on offer {offer.id}")
        return dispute

    @staticmethod
    async def _status_after_dispute(db: AsyncSession, offer: Offer) -> EnhancedOfferStatus:
        approval = await EscrowService.get_escrow_approval(db, offer.id)
        if approval and approval.funds_released:
            return EnhancedOfferStatus.RELEASED
        if approval and approval.both_approved:
            return EnhancedOfferStatus.BOTH_APPROVED
        if approval and (approval.buyer_approved or approval.seller_approved):
            return EnhancedOfferStatus.AWAITING_APPROVALS
        if offer.stripe_payment_intent_id:
            return EnhancedOfferStatus.ESCROW_FUNDED
        if offer.payment_link_id:
            return EnhancedOfferStatus.PAYMENT_LINK_CREATED
        return EnhancedOfferStatus.OFFER_ACCEPTED

    @staticmethod
    async def resolve_dispute(
        db: AsyncSession,
        dispute_id: UUID,
        admin_id: UUID,
        resolution: str,
        admin_notes: Optional[str] = None,
    ) -> OfferDispute:
        dispute = await DisputeService.get_dispute(db, dispute_id)

        if dispute.status not in OPEN_STATUSES:
            raise ConflictException("Dispute is already resolved")

        dispute.status = DisputeStatus.RESOLVED
        dispute.resolution = resolution
        dispute.admin_notes = admin_notes
        dispute.resolved_by = admin_id
        dispute.resolved_at = datetime.utcnow()

        offer = await OfferService.require_offer(db, dispute.offer_id)
        if offer.enhanced_status == EnhancedOfferStatus.DISPUTED:
            old_status = offer.enhanced_status.value
            offer.enhanced_status = await DisputeService._status_after_dispute(db, offer)
            db.add(OfferAuditLog(
                offer_id=offer.id,
                event_type="dispute_resolved",
                actor_id=admin_id,
                actor_role="admin",
                old_status=old_status,
                new_status=offer.enhanced_status.value,
                meta_data={"dispute_id": str(dispute.id)},
            ))

        for recipient_id in (offer.buyer_id, offer.seller_id):
            await EmailService.queue_email_notification(
                db,
                recipient_id,
                EmailNotificationType.DISPUTE_RESOLVED,
                {"offer_id": str(offer.id), "resolution": resolution},
                offer.id,
            )

        await db.commit()
        await db.refresh(dispute)

        logger.info(f"Dispute {dispute.id} resolved by admin {admin_id}")
        return dispute

    @staticmethod
    async def add_attachment(
        db: AsyncSession,
        dispute_id: UUID,
        actor_id: UUID,
        file_name: str,
        file_data: bytes,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a file in Supabase Storage and reference it from the dispute"""
        dispute = await DisputeService.get_dispute(db, dispute_id)
        offer = await OfferService.require_offer(db, dispute.offer_id)
        DisputeService._party_role(offer, actor_id)

        extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
        if extension not in settings.ALLOWED_ATTACHMENT_TYPES:
            raise BadRequestException(f"File type not allowed. Allowed types: {settings.ALLOWED_ATTACHMENT_TYPES}")

        if len(file_data) > settings.MAX_ATTACHMENT_SIZE:
            raise BadRequestException(
                f"File size exceeds maximum allowed size of {settings.MAX_ATTACHMENT_SIZE} bytes"
            )

        file_path = f"{dispute.offer_id}/{dispute.id}/{uuid4().hex}.{extension}"
        try:
            stored_path = SupabaseClient.upload_file(
                bucket=settings.DISPUTE_ATTACHMENTS_BUCKET,
                file_path=file_path,
                file_data=file_data,
                content_type=content_type or "application/octet-stream",
            )
        except Exception:
            raise BadRequestException("Failed to upload attachment")

        attachment = {
            "path": stored_path,
            "file_name": file_name,
            "content_type": content_type,
            "size": len(file_data),
            "uploaded_by": str(actor_id),
            "uploaded_at": datetime.utcnow().isoformat(),
        }
        # reassign so the JSON column is flagged dirty
        dispute.attachments = [*(dispute.attachments or []), attachment]
        await db.commit()
        await db.refresh(dispute)

        logger.info(f"Attachment {stored_path} added to dispute {dispute.id}")
        return attachment
