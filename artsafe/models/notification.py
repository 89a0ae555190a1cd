from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Uuid, Enum as SQLEnum
from sqlalchemy.sql import func
from artsafe.database import Base
from artsafe.models.types import JSONType
import uuid
from enum import Enum


class EmailNotificationType(str, Enum):
    OFFER_CREATED = "offer_created"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_REJECTED = "offer_rejected"
    PAYMENT_LINK_READY = "payment_link_ready"
    PAYMENT_RECEIVED = "payment_received"
    SELLER_APPROVED = "seller_approved"
    BUYER_APPROVED = "buyer_approved"
    ESCROW_RELEASED = "escrow_released"
    PRICE_DEVIATION_ALERT = "price_deviation_alert"
    PAYMENT_FAILED = "payment_failed"
    OFFER_EXPIRED = "offer_expired"
    APPROVAL_DEADLINE_WARNING = "approval_deadline_warning"
    DISPUTE_CREATED = "dispute_created"
    DISPUTE_RESOLVED = "dispute_resolved"


class EmailStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class EmailNotification(Base):
    """Outbound email waiting for (or done with) delivery."""
    __tablename__ = "email_notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False)
    recipient_email = Column(String(255), nullable=False)
    notification_type = Column(SQLEnum(EmailNotificationType, name="email_notification_type"), nullable=False)
    subject = Column(String(255), nullable=False)
    template_data = Column(JSONType, default=dict)
    offer_id = Column(Uuid(as_uuid=True), ForeignKey("offers.id"))
    status = Column(SQLEnum(EmailStatus, name="email_status"), default=EmailStatus.PENDING, nullable=False, index=True)
    sent_at = Column(DateTime(timezone=True))
    error_message = Column(Text)
    retry_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
