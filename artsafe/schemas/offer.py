from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict
from datetime import datetime
from uuid import UUID
from artsafe.models.offer import OfferStatus, EnhancedOfferStatus, DisputeStatus, PartyRole
from artsafe.models.alert import AlertType, AlertSeverity


class EscrowAmounts(BaseModel):
    platform_fee_cents: int
    vat_cents: int
    seller_amount_cents: int


class OfferCreate(BaseModel):
    artwork_id: UUID
    seller_id: UUID
    offered_price_cents: int
    message: Optional[str] = None


class PaymentLinkResponse(BaseModel):
    payment_link_id: str
    payment_link_url: str
    total_cents: int
    amounts: EscrowAmounts


class OfferResponse(BaseModel):
    id: UUID
    artwork_id: UUID
    buyer_id: UUID
    seller_id: UUID
    list_price_cents: int
    offered_price_cents: int
    status: OfferStatus
    enhanced_status: EnhancedOfferStatus
    message: Optional[str] = None
    payment_link_id: Optional[str] = None
    payment_link_url: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    price_deviation_alert_sent: bool = False
    expires_at: Optional[datetime] = None
    payment_deadline: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EscrowApprovalResponse(BaseModel):
    id: UUID
    offer_id: UUID
    buyer_approved: bool
    buyer_approved_at: Optional[datetime] = None
    seller_approved: bool
    seller_approved_at: Optional[datetime] = None
    both_approved: bool
    funds_released: bool
    funds_released_at: Optional[datetime] = None
    stripe_transfer_id: Optional[str] = None
    platform_fee_cents: Optional[int] = None
    vat_cents: Optional[int] = None
    seller_amount_cents: Optional[int] = None
    approval_deadline: Optional[datetime] = None
    is_stalled: bool = False

    class Config:
        from_attributes = True


class EscrowReleaseResponse(BaseModel):
    message: str
    transfer_id: str
    total_price_cents: int
    amounts: EscrowAmounts


class DisputeCreate(BaseModel):
    offer_id: UUID
    reason: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    attachments: List[Any] = []


class DisputeResolve(BaseModel):
    resolution: str = Field(..., min_length=1)
    admin_notes: Optional[str] = None


class DisputeResponse(BaseModel):
    id: UUID
    offer_id: UUID
    initiator_id: UUID
    initiator_role: PartyRole
    reason: str
    description: str
    attachments: Optional[List[Any]] = None
    status: DisputeStatus
    resolution: Optional[str] = None
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminAlertResponse(BaseModel):
    id: UUID
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    offer_id: Optional[UUID] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="meta_data")
    is_read: bool
    resolved: bool
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EscrowApprovalActionResponse(BaseModel):
    approval: EscrowApprovalResponse
    message: str
    both_approved: bool


class DisputeAttachmentResponse(BaseModel):
    path: str
    file_name: str
    content_type: Optional[str] = None
    size: int
    uploaded_by: UUID
    uploaded_at: datetime
