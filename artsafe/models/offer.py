from sqlalchemy import Column, String, BigInteger, DateTime, ForeignKey, Text, Uuid, Enum as SQLEnum, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from artsafe.database import Base
from artsafe.models.types import JSONType
import uuid
from enum import Enum


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class EnhancedOfferStatus(str, Enum):
    PENDING_OFFER = "pending_offer"
    OFFER_ACCEPTED = "offer_accepted"
    PAYMENT_LINK_CREATED = "payment_link_created"
    AWAITING_PAYMENT = "awaiting_payment"
    ESCROW_FUNDED = "escrow_funded"
    AWAITING_APPROVALS = "awaiting_approvals"
    BOTH_APPROVED = "both_approved"
    RELEASED = "released"
    DISPUTED = "disputed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class DisputeStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    CLOSED = "closed"


class PartyRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


class Offer(Base):
    __tablename__ = "offers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    artwork_id = Column(Uuid(as_uuid=True), ForeignKey("artworks.id"), nullable=False, index=True)
    buyer_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    seller_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    list_price_cents = Column(BigInteger, nullable=False)
    offered_price_cents = Column(BigInteger, nullable=False)
    status = Column(SQLEnum(OfferStatus, name="offer_status"), default=OfferStatus.PENDING, nullable=False)
    enhanced_status = Column(
        SQLEnum(EnhancedOfferStatus, name="enhanced_offer_status"),
        default=EnhancedOfferStatus.PENDING_OFFER,
        nullable=False
    )
    message = Column(Text)
    payment_link_id = Column(String(255))
    payment_link_url = Column(String(500))
    stripe_payment_intent_id = Column(String(255), index=True)
    price_deviation_alert_sent = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime(timezone=True))
    payment_deadline = Column(DateTime(timezone=True))
    accepted_at = Column(DateTime(timezone=True))
    rejected_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    escrow_approval = relationship("EscrowApproval", back_populates="offer", uselist=False)


class EscrowApproval(Base):
    __tablename__ = "escrow_approvals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    offer_id = Column(Uuid(as_uuid=True), ForeignKey("offers.id"), nullable=False, unique=True)
    buyer_approved = Column(Boolean, default=False, nullable=False)
    buyer_approved_at = Column(DateTime(timezone=True))
    seller_approved = Column(Boolean, default=False, nullable=False)
    seller_approved_at = Column(DateTime(timezone=True))
    both_approved = Column(Boolean, default=False, nullable=False)
    funds_released = Column(Boolean, default=False, nullable=False)
    funds_released_at = Column(DateTime(timezone=True))
    stripe_transfer_id = Column(String(255))
    platform_fee_cents = Column(BigInteger)
    vat_cents = Column(BigInteger)
    seller_amount_cents = Column(BigInteger)
    approval_deadline = Column(DateTime(timezone=True))
    is_stalled = Column(Boolean, default=False, nullable=False)
    deadline_reminder_sent_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    offer = relationship("Offer", back_populates="escrow_approval")


class OfferAuditLog(Base):
    __tablename__ = "offer_audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    offer_id = Column(Uuid(as_uuid=True), ForeignKey("offers.id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    actor_id = Column(Uuid(as_uuid=True))
    actor_role = Column(String(20))
    old_status = Column(String(50))
    new_status = Column(String(50))
    meta_data = Column("metadata", JSONType, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class OfferDispute(Base):
    __tablename__ = "offer_disputes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    offer_id = Column(Uuid(as_uuid=True), ForeignKey("offers.id"), nullable=False, index=True)
    initiator_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False)
    initiator_role = Column(SQLEnum(PartyRole, name="party_role"), nullable=False)
    reason = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    attachments = Column(JSONType, default=list)
    status = Column(SQLEnum(DisputeStatus, name="dispute_status"), default=DisputeStatus.OPEN, nullable=False)
    resolution = Column(Text)
    resolved_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"))
    resolved_at = Column(DateTime(timezone=True))
    admin_notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    offer = relationship("Offer")
