import stripe
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List
from uuid import UUID
from artsafe.config import settings
from artsafe.database import get_db
from artsafe.api.deps import get_current_user
from artsafe.models.profile import Profile
from artsafe.models.artwork import Artwork
from artsafe.models.offer import OfferStatus
from artsafe.schemas.offer import OfferCreate, OfferResponse, PaymentLinkResponse
from artsafe.services.offer_service import OfferService
from artsafe.integrations.stripe_client import StripeClient
from artsafe.core.exceptions import NotFoundException, BadRequestException, ForbiddenException
from artsafe.core.permissions import Role, Permission, has_permission
from artsafe.utils.helpers import calculate_escrow_amounts
from artsafe.utils.logger import logger

router = APIRouter()


@router.post("", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer(
    offer_data: OfferCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Make a price offer on an artwork"""
    if not has_permission(current_user.role, Permission.MAKE_OFFERS):
        raise ForbiddenException("You are not allowed to make offers")

    return await OfferService.create_offer(db, current_user.id, offer_data)


@router.get("/buyer", response_model=List[OfferResponse])
async def get_my_offers_as_buyer(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await OfferService.get_buyer_offers(db, current_user.id)


@router.get("/seller", response_model=List[OfferResponse])
async def get_my_offers_as_seller(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await OfferService.get_seller_offers(db, current_user.id)


@router.get("/artwork/{artwork_id}", response_model=List[OfferResponse])
async def get_artwork_offers(
    artwork_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """All offers on an artwork (artist or admin)"""
    result = await db.execute(select(Artwork).where(Artwork.id == artwork_id))
    artwork = result.scalar_one_or_none()
    if not artwork:
        raise NotFoundException("Artwork", str(artwork_id))

    if artwork.artist_id != current_user.id and current_user.role != Role.ADMIN:
        raise ForbiddenException("You can only view offers on your own artworks")

    return await OfferService.get_artwork_offers(db, artwork_id)


@router.get("/{offer_id}", response_model=OfferResponse)
async def get_offer(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    offer = await OfferService.require_offer(db, offer_id)

    if current_user.id not in (offer.buyer_id, offer.seller_id) and current_user.role != Role.ADMIN:
        raise ForbiddenException("You are not a party to this offer")

    return offer


@router.post("/{offer_id}/accept", response_model=OfferResponse)
async def accept_offer(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await OfferService.accept_offer(db, offer_id, current_user.id)


@router.post("/{offer_id}/reject", response_model=OfferResponse)
async def reject_offer(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await OfferService.reject_offer(db, offer_id, current_user.id)


@router.post("/{offer_id}/payment-link", response_model=PaymentLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_link(
    offer_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create the escrow payment link for an accepted offer (seller only)"""
    offer = await OfferService.require_offer(db, offer_id)

    if offer.status != OfferStatus.ACCEPTED:
        raise BadRequestException("Offer must be accepted before creating payment link")

    if offer.seller_id != current_user.id:
        raise ForbiddenException("Only seller can create payment link")

    if offer.payment_link_id:
        raise BadRequestException("Payment link already exists for this offer")

    result = await db.execute(select(Artwork).where(Artwork.id == offer.artwork_id))
    artwork = result.scalar_one_or_none()
    if not artwork:
        raise NotFoundException("Artwork", str(offer.artwork_id))

    amounts = calculate_escrow_amounts(offer.offered_price_cents)
    metadata = {
        "offer_id": str(offer.id),
        "artwork_id": str(offer.artwork_id),
        "seller_id": str(offer.seller_id),
        "buyer_id": str(offer.buyer_id),
        "escrow_mode": "true",
        "platform_fee_cents": str(amounts.platform_fee_cents),
        "vat_cents": str(amounts.vat_cents),
        "seller_amount_cents": str(amounts.seller_amount_cents),
    }

    try:
        payment_link = StripeClient.create_payment_link(
            amount=offer.offered_price_cents,
            product_name=artwork.title,
            description=f"Artwork by {current_user.name}" if current_user.name else None,
            metadata=metadata,
            redirect_url=f"{settings.SITE_URL}/buyer/dashboard/orders?payment=success&offer_id={offer.id}",
        )
    except stripe.error.StripeError as e:
        logger.error(f"Stripe payment link creation failed for offer {offer.id}: {e}")
        raise BadRequestException("Failed to create payment link")

    offer = await OfferService.update_offer_payment_link(
        db, offer.id, payment_link["id"], payment_link["url"], current_user.id
    )

    return PaymentLinkResponse(
        payment_link_id=offer.payment_link_id,
        payment_link_url=offer.payment_link_url,
        total_cents=offer.offered_price_cents,
        amounts=amounts,
    )
