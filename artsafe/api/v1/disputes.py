from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID
from artsafe.database import get_db
from artsafe.api.deps import get_current_user, require_permission
from artsafe.models.profile import Profile
from artsafe.schemas.offer import DisputeCreate, DisputeResolve, DisputeResponse, DisputeAttachmentResponse
from artsafe.services.dispute_service import DisputeService
from artsafe.services.offer_service import OfferService
from artsafe.core.exceptions import ForbiddenException
from artsafe.core.permissions import Role, Permission

router = APIRouter()


@router.post("", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
async def create_dispute(
    dispute_data: DisputeCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Open a dispute on an offer (buyer or seller). Freezes the escrow until resolved."""
    return await DisputeService.create_dispute(
        db,
        dispute_data.offer_id,
        current_user.id,
        dispute_data.reason,
        dispute_data.description,
        dispute_data.attachments,
    )


@router.get("/offer/{offer_id}", response_model=List[DisputeResponse])
async def get_offer_disputes(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    offer = await OfferService.require_offer(db, offer_id)

    if current_user.id not in (offer.buyer_id, offer.seller_id) and current_user.role != Role.ADMIN:
        raise ForbiddenException("You are not a party to this offer")

    return await DisputeService.get_offer_disputes(db, offer_id)


@router.post("/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute(
    dispute_id: UUID,
    resolution_data: DisputeResolve,
    current_user: Profile = Depends(require_permission(Permission.RESOLVE_DISPUTES)),
    db: AsyncSession = Depends(get_db)
):
    return await DisputeService.resolve_dispute(
        db, dispute_id, current_user.id, resolution_data.resolution, resolution_data.admin_notes
    )


@router.post(
    "/{dispute_id}/attachments",
    response_model=DisputeAttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_dispute_attachment(
    dispute_id: UUID,
    file: UploadFile = File(...),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Attach evidence (photo or PDF) to a dispute"""
    file_data = await file.read()
    return await DisputeService.add_attachment(
        db, dispute_id, current_user.id, file.filename or "", file_data, file.content_type
    )
