from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from uuid import UUID
from artsafe.models.artwork import Artwork, Gallery, GalleryArtist
from artsafe.core.exceptions import NotFoundException, ForbiddenException, BadRequestException
from artsafe.utils.logger import logger


class GalleryService:
    @staticmethod
    async def apply_price_suggestion(
        db: AsyncSession,
        owner_id: UUID,
        artwork_id: UUID,
        suggested_price_cents: int,
    ) -> Artwork:
        """Set an artwork's price on behalf of an artist represented by the owner's gallery"""
        if suggested_price_cents <= 0:
            raise BadRequestException("Suggested price must be positive")

        result = await db.execute(select(Gallery).where(Gallery.owner_id == owner_id))
        gallery = result.scalar_one_or_none()
        if not gallery:
            raise NotFoundException("Gallery", str(owner_id))

        result = await db.execute(select(Artwork).where(Artwork.id == artwork_id))
        artwork = result.scalar_one_or_none()
        if not artwork:
            raise NotFoundException("Artwork", str(artwork_id))

        result = await db.execute(
            select(GalleryArtist.id).where(
                GalleryArtist.gallery_id == gallery.id,
                GalleryArtist.artist_id == artwork.artist_id,
                GalleryArtist.status == "active",
            )
        )
        if result.first() is None:
            raise ForbiddenException("Artwork does not belong to your gallery")

        old_price = artwork.price_cents
        artwork.price_cents = suggested_price_cents
        await db.commit()
        await db.refresh(artwork)

        logger.info(f"Gallery {gallery.id} changed price of artwork {artwork.id}: {old_price} -> {suggested_price_cents}")
        return artwork
