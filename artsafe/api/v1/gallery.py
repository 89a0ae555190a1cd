from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from artsafe.database import get_db
from artsafe.api.deps import require_permission
from artsafe.models.profile import Profile
from artsafe.schemas.pricing import ApplyPriceSuggestion
from artsafe.schemas.common import MessageResponse
from artsafe.services.gallery_service import GalleryService
from artsafe.core.permissions import Permission

router = APIRouter()


@router.post("/apply-price-suggestion", response_model=MessageResponse)
async def apply_price_suggestion(
    request: ApplyPriceSuggestion,
    current_user: Profile = Depends(require_permission(Permission.MANAGE_GALLERY)),
    db: AsyncSession = Depends(get_db)
):
    """Apply a suggested price to an artwork by one of the gallery's artists"""
    await GalleryService.apply_price_suggestion(
        db, current_user.id, request.artwork_id, request.suggested_price_cents
    )
    return MessageResponse(message="Price updated")
