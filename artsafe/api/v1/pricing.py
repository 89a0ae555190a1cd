import time
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select
from uuid import UUID
from artsafe.database import get_db
from artsafe.api.deps import get_current_user, get_session_factory
from artsafe.models.profile import Profile
from artsafe.models.artwork import Artwork
from artsafe.schemas.pricing import (
    EvaluateRequest,
    EvaluationResult,
    BatchEvaluationResponse,
    PriceEvaluationResponse,
    PricingAdvisorRequest,
    PricingAdvisorResponse,
)
from artsafe.services.pricing_evaluation import PricingEvaluationService
from artsafe.services.pricing_advisor import PricingAdvisorService
from artsafe.core.exceptions import NotFoundException, BadRequestException, ForbiddenException
from artsafe.core.permissions import Role, Permission, has_permission
from artsafe.utils.logger import logger

router = APIRouter()


async def _require_own_artwork(db: AsyncSession, artwork_id: UUID, current_user: Profile, action: str) -> Artwork:
    result = await db.execute(select(Artwork).where(Artwork.id == artwork_id))
    artwork = result.scalar_one_or_none()
    if not artwork:
        raise NotFoundException("Artwork", str(artwork_id))

    if artwork.artist_id != current_user.id and current_user.role != Role.ADMIN:
        raise ForbiddenException(f"You can only {action} your own artworks")

    return artwork


@router.post("/evaluate")
async def evaluate_prices(
    request: EvaluateRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Evaluate one artwork's price against market sales, or every artwork (admins)"""
    if request.evaluate_all:
        if not has_permission(current_user.role, Permission.EVALUATE_ALL_PRICES):
            raise ForbiddenException("Only admins can evaluate all artworks")

        started = time.monotonic()
        result = await PricingEvaluationService.evaluate_all_artworks(session_factory)
        return BatchEvaluationResponse(
            message="Bulk evaluation completed",
            duration_ms=int((time.monotonic() - started) * 1000),
            **result,
        )

    if not request.artwork_id:
        raise BadRequestException("artwork_id is required")

    if not has_permission(current_user.role, Permission.EVALUATE_PRICES):
        raise ForbiddenException("You are not allowed to evaluate prices")

    await _require_own_artwork(db, request.artwork_id, current_user, "evaluate")
    evaluation = await PricingEvaluationService.evaluate_artwork_price(db, request.artwork_id)

    return EvaluationResult(
        message="Evaluation completed",
        evaluation=PriceEvaluationResponse.model_validate(evaluation),
    )


@router.get("/evaluate", response_model=PriceEvaluationResponse)
async def get_latest_evaluation(
    artwork_id: UUID = Query(...),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _require_own_artwork(db, artwork_id, current_user, "view evaluations for")

    evaluation = await PricingEvaluationService.get_latest_evaluation(db, artwork_id)
    if not evaluation:
        raise NotFoundException("Price evaluation for artwork", str(artwork_id))

    return evaluation


@router.post("/advisor", response_model=PricingAdvisorResponse)
async def pricing_advisor(
    request: PricingAdvisorRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Suggested list price for a new artwork, based on the artist's market sales"""
    if not has_permission(current_user.role, Permission.PRICING_ADVISOR):
        raise ForbiddenException("Only artists can get pricing recommendations")

    recommendation = await PricingAdvisorService.get_pricing_recommendation(
        db, current_user.name or "", request.medium, request.dimensions
    )

    if not recommendation:
        logger.info(f"No market data for pricing advice to artist {current_user.id}")
        return PricingAdvisorResponse(message="No market data available", recommendation=None)

    return PricingAdvisorResponse(message="Pricing recommendation generated", recommendation=recommendation)
