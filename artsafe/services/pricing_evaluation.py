import asyncio
import re
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import Optional, List, Dict, Sequence
from datetime import datetime, date
from uuid import UUID
from artsafe.config import settings
from artsafe.models.artwork import Artwork, ArtworkStatus
from artsafe.models.pricing import MarketSale, PriceEvaluation, PriceRecommendation
from artsafe.schemas.pricing import MarketStatistics, RecommendationResult
from artsafe.core.exceptions import NotFoundException
from artsafe.utils.helpers import round_cents
from artsafe.utils.logger import logger

AREA_RATIO_LIMIT = 1.5
INSUFFICIENT_DATA_CONFIDENCE = 0.2
MAX_CONFIDENCE = 0.95

_NUMBER = re.compile(r"\d+")


def years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year - years, day=28)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_dimensions(dimensions: Optional[str]) -> Optional[int]:
    """Approximate area from strings like "100x80 cm": product of the first two integers."""
    if not dimensions:
        return None
    numbers = _NUMBER.findall(dimensions)
    if len(numbers) < 2:
        return None
    return int(numbers[0]) * int(numbers[1])


def mediums_match(artwork_medium: str, sale_medium: str) -> bool:
    a = artwork_medium.lower()
    b = sale_medium.lower()
    return a in b or b in a


def is_comparable(
    sale: MarketSale,
    medium: Optional[str],
    dimensions: Optional[str],
    cutoff: date,
) -> bool:
    if sale.sale_date < cutoff:
        return False

    if medium and sale.medium and not mediums_match(medium, sale.medium):
        return False

    artwork_area = parse_dimensions(dimensions)
    sale_area = parse_dimensions(sale.dimensions)
    if artwork_area and sale_area:
        if max(artwork_area, sale_area) / min(artwork_area, sale_area) > AREA_RATIO_LIMIT:
            return False

    return True


def filter_comparable_sales(
    sales: Sequence[MarketSale],
    medium: Optional[str] = None,
    dimensions: Optional[str] = None,
    max_age_years: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[MarketSale]:
    now = now or datetime.utcnow()
    if max_age_years is None:
        max_age_years = settings.PRICE_EVALUATION_MAX_AGE_YEARS
    cutoff = years_before(now.date(), max_age_years)
    return [sale for sale in sales if is_comparable(sale, medium, dimensions, cutoff)]


def median_cents(prices: List[int]) -> int:
    """Median of already sorted prices; an even count averages the middle pair, rounded half up."""
    middle = len(prices) // 2
    if len(prices) % 2 == 0:
        return round_cents(Decimal(prices[middle - 1] + prices[middle]) / 2)
    return prices[middle]


def calculate_market_statistics(sales: Sequence[MarketSale]) -> MarketStatistics:
    if not sales:
        return MarketStatistics()

    prices = sorted(sale.sale_price_cents for sale in sales)
    return MarketStatistics(
        avg=round_cents(Decimal(sum(prices)) / len(prices)),
        median=median_cents(prices),
        min=prices[0],
        max=prices[-1],
    )


def determine_price_recommendation(current_price_cents: int, market_median_cents: int, comparable_count: int) -> RecommendationResult:
    if comparable_count < settings.PRICE_EVALUATION_MIN_COMPARABLES or market_median_cents <= 0:
        return RecommendationResult(
            recommendation=PriceRecommendation.INSUFFICIENT_DATA,
            confidence=INSUFFICIENT_DATA_CONFIDENCE,
            notes=(
                f"Only {comparable_count} comparable sales found. "
                "More market data needed for accurate evaluation."
            ),
        )

    deviation = ((current_price_cents - market_median_cents) / market_median_cents) * 100
    confidence = min(MAX_CONFIDENCE, 0.5 + (comparable_count / 20) * 0.45)

    if deviation < settings.PRICE_UNDERPRICED_THRESHOLD_PERCENT:
        recommendation = PriceRecommendation.UNDERPRICED
        notes = (
            f"Price is {abs(deviation):.1f}% below market median. "
            "Consider increasing price to match market value."
        )
    elif deviation > settings.PRICE_OVERPRICED_THRESHOLD_PERCENT:
        recommendation = PriceRecommendation.OVERPRICED
        notes = (
            f"Price is {deviation:.1f}% above market median. May reduce sales likelihood. "
            "Consider adjusting to market rate."
        )
    else:
        recommendation = PriceRecommendation.FAIRLY_PRICED
        notes = f"Price is within acceptable market range ({deviation:+.1f}% from median)."

    return RecommendationResult(recommendation=recommendation, confidence=confidence, notes=notes)


class PricingEvaluationService:
    @staticmethod
    async def fetch_market_data(db: AsyncSession, artist_name: str, limit: Optional[int] = None) -> List[MarketSale]:
        """Recorded sales whose artist name contains `artist_name`, newest first"""
        if not artist_name or not artist_name.strip():
            return []

        result = await db.execute(
            select(MarketSale)
            .where(MarketSale.artist_name.ilike(f"%{escape_like(artist_name.strip())}%", escape="\\"))
            .order_by(MarketSale.sale_date.desc())
            .limit(limit or settings.MARKET_SALES_FETCH_LIMIT)
        )
        return list(result.scalars().all())

    @staticmethod
    async def evaluate_artwork_price(db: AsyncSession, artwork_id: UUID, now: Optional[datetime] = None) -> PriceEvaluation:
        now = now or datetime.utcnow()

        result = await db.execute(
            select(Artwork).options(selectinload(Artwork.artist)).where(Artwork.id == artwork_id)
        )
        artwork = result.scalar_one_or_none()
        if not artwork:
            raise NotFoundException("Artwork", str(artwork_id))

        artist_name = artwork.artist.name if artwork.artist and artwork.artist.name else ""
        sales = await PricingEvaluationService.fetch_market_data(db, artist_name)
        comparables = filter_comparable_sales(sales, artwork.medium, artwork.dimensions, now=now)

        stats = calculate_market_statistics(comparables)
        verdict = determine_price_recommendation(artwork.price_cents, stats.median, len(comparables))
        deviation = (
            ((artwork.price_cents - stats.median) / stats.median) * 100 if stats.median > 0 else None
        )

        evaluation = PriceEvaluation(
            artwork_id=artwork.id,
            current_price_cents=artwork.price_cents,
            market_avg_price_cents=stats.avg or None,
            market_median_price_cents=stats.median or None,
            market_min_price_cents=stats.min or None,
            market_max_price_cents=stats.max or None,
            comparable_sales_count=len(comparables),
            price_deviation_percent=deviation,
            recommendation=verdict.recommendation,
            confidence_score=verdict.confidence,
            evaluation_notes=verdict.notes,
            evaluated_at=now,
        )
        db.add(evaluation)
        await db.commit()
        await db.refresh(evaluation)

        logger.info(
            f"Artwork {artwork.id} evaluated as {verdict.recommendation.value} "
            f"from {len(comparables)} comparable sales"
        )
        return evaluation

    @staticmethod
    async def get_latest_evaluation(db: AsyncSession, artwork_id: UUID) -> Optional[PriceEvaluation]:
        result = await db.execute(
            select(PriceEvaluation)
            .where(PriceEvaluation.artwork_id == artwork_id)
            .order_by(PriceEvaluation.evaluated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def evaluate_all_artworks(
        session_factory: async_sessionmaker,
        concurrency: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> Dict[str, int]:
        """
        Evaluate every available artwork with a bounded pool of workers.

        Each evaluation runs in its own session. A failing artwork is logged and
        counted, the rest of the batch continues.
        """
        concurrency = concurrency or settings.PRICE_EVALUATION_CONCURRENCY
        if delay is None:
            delay = settings.PRICE_EVALUATION_REQUEST_DELAY_SECONDS

        async with session_factory() as session:
            result = await session.execute(select(Artwork.id).where(Artwork.status == ArtworkStatus.AVAILABLE))
            artwork_ids = list(result.scalars().all())

        semaphore = asyncio.Semaphore(max(1, concurrency))
        counts = {"success": 0, "failed": 0}

        async def evaluate(artwork_id: UUID) -> None:
            async with semaphore:
                try:
                    async with session_factory() as session:
                        await PricingEvaluationService.evaluate_artwork_price(session, artwork_id)
                    counts["success"] += 1
                except Exception as e:
                    logger.error(f"Price evaluation failed for artwork {artwork_id}: {e}")
                    counts["failed"] += 1
                finally:
                    if delay:
                        await asyncio.sleep(delay)

        await asyncio.gather(*(evaluate(artwork_id) for artwork_id in artwork_ids))

        logger.info(
            f"Bulk price evaluation finished: {counts['success']} succeeded, "
            f"{counts['failed']} failed of {len(artwork_ids)}"
        )
        return {"success": counts["success"], "failed": counts["failed"], "total": len(artwork_ids)}
