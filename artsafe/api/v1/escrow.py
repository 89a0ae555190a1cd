from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
from artsafe.database import get_db
from artsafe.api.deps import get_current_user
from artsafe.models.profile import Profile
from artsafe.schemas.offer import (
    EscrowAmounts,
    EscrowApprovalResponse,
    EscrowApprovalActionResponse,
    EscrowReleaseResponse,
)
from artsafe.services.offer_service import OfferService
from artsafe.services.escrow_service import EscrowService
from artsafe.core.exceptions import BadRequestException, ForbiddenException
from artsafe.core.permissions import Role
from artsafe.utils.helpers import calculate_escrow_amounts

router = APIRouter()


@router.get("/amounts/{total_price_cents}", response_model=EscrowAmounts)
async def get_escrow_amounts(total_price_cents: int):
    """Fee breakdown for a total price: commission, VAT on commission, seller payout"""
    try:
        return calculate_escrow_amounts(total_price_cents)
    except ValueError as e:
        raise BadRequestException(str(e))


@router.get("/{offer_id}", response_model=EscrowApprovalResponse)
async def get_escrow_status(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    offer = await OfferService.require_offer(db, offer_id)

    if current_user.id not in (offer.buyer_id, offer.seller_id) and current_user.role != Role.ADMIN:
        raise ForbiddenException("You are not a party to this offer")

    return await EscrowService.require_escrow_approval(db, offer_id)


async def _check_can_approve(db: AsyncSession, offer_id: UUID, current_user: Profile, party: str) -> None:
    offer = await OfferService.require_offer(db, offer_id)

    party_id = offer.buyer_id if party == "buyer" else offer.seller_id
    if party_id != current_user.id:
        raise ForbiddenException(f"Only {party} can approve")

    if not offer.stripe_payment_intent_id:
        raise BadRequestException("Payment not completed yet")

    approval = await EscrowService.require_escrow_approval(db, offer_id)
    already_approved = approval.buyer_approved if party == "buyer" else approval.seller_approved
    if already_approved:
        raise BadRequestException(f"{party.capitalize()} has already approved")
    if approval.funds_released:
        raise BadRequestException("Funds have already been released")


@router.post("/{offer_id}/buyer-approve", response_model=EscrowApprovalActionResponse)
async def buyer_approve(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Buyer confirms the artwork was received"""
    await _check_can_approve(db, offer_id, current_user, "buyer")
    approval = await EscrowService.buyer_approve_escrow(db, offer_id, current_user.id)

    return EscrowApprovalActionResponse(
        approval=EscrowApprovalResponse.model_validate(approval),
        message="Buyer approval recorded",
        both_approved=approval.both_approved,
    )


@router.post("/{offer_id}/seller-approve", response_model=EscrowApprovalActionResponse)
async def seller_approve(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Seller confirms the artwork was delivered"""
    await _check_can_approve(db, offer_id, current_user, "seller")
    approval = await EscrowService.seller_approve_escrow(db, offer_id, current_user.id)

    return EscrowApprovalActionResponse(
        approval=EscrowApprovalResponse.model_validate(approval),
        message="Seller approval recorded",
        both_approved=approval.both_approved,
    )


@router.post("/{offer_id}/release", response_model=EscrowReleaseResponse)
async def release_escrow(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Transfer the seller's share once both parties have approved"""
    transfer_id, amounts, offer = await EscrowService.release_escrow_funds(db, offer_id, current_user.id)

    return EscrowReleaseResponse(
        message="Escrow funds released to seller",
        transfer_id=transfer_id,
        total_price_cents=offer.offered_price_cents,
        amounts=amounts,
    )
