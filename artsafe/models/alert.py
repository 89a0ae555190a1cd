from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid, Enum as SQLEnum, Boolean
from sqlalchemy.sql import func
from artsafe.database import Base
from artsafe.models.types import JSONType
import uuid
from enum import Enum


class AlertType(str, Enum):
    PRICE_DEVIATION = "price_deviation"
    ESCROW_ISSUE = "escrow_issue"
    PAYMENT_FAILED = "payment_failed"
    AI_BUDGET = "ai_budget"
    OTHER = "other"


class AlertSeverity(str, Enum):
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AdminAlert(Base):
    __tablename__ = "admin_alerts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    alert_type = Column(SQLEnum(AlertType, name="alert_type"), nullable=False, index=True)
    severity = Column(SQLEnum(AlertSeverity, name="alert_severity"), default=AlertSeverity.MEDIUM, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    offer_id = Column(Uuid(as_uuid=True), ForeignKey("offers.id"))
    meta_data = Column("metadata", JSONType, default=dict)
    is_read = Column(Boolean, default=False, nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
