from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.sql import func
from artsafe.database import Base
import uuid
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    artwork_id = Column(Uuid(as_uuid=True), ForeignKey("artworks.id"), nullable=False)
    offer_id = Column(Uuid(as_uuid=True), ForeignKey("offers.id"))
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(SQLEnum(OrderStatus, name="order_status"), default=OrderStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
