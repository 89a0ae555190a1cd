from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List, Sequence
from datetime import datetime
from artsafe.models.pricing import MarketSale
from artsafe.schemas.pricing import PricingRecommendation
from artsafe.services.pricing_evaluation import (
    PricingEvaluationService,
    filter_comparable_sales,
    median_cents,
    escape_like,
    years_before,
)
from artsafe.utils.helpers import format_dkk
from artsafe.utils.logger import logger

SIMILAR_SALES_LIMIT = 50
FALLBACK_SALES_LIMIT = 20
NON_ARTIST_CONFIDENCE_FACTOR = 0.7
PRICE_TREND_THRESHOLD = 15


def _price_trend(sales: Sequence[MarketSale], now: datetime) -> Optional[float]:
    """Percent change between the older and newer half of the last two years of sales"""
    cutoff = years_before(now.date(), 2)
    recent = sorted((s for s in sales if s.sale_date >= cutoff), key=lambda s: s.sale_date)
    if len(recent) < 5:
        return None

    midpoint = len(recent) // 2
    first = sum(s.sale_price_cents for s in recent[:midpoint]) / midpoint
    second = sum(s.sale_price_cents for s in recent[midpoint:]) / (len(recent) - midpoint)
    if not first:
        return None
    return ((second - first) / first) * 100


def build_recommendation(
    sales: Sequence[MarketSale],
    medium: Optional[str],
    dimensions: Optional[str],
    artist_specific: bool,
    now: Optional[datetime] = None,
) -> PricingRecommendation:
    now = now or datetime.utcnow()

    comparables = filter_comparable_sales(sales, medium, dimensions, now=now)
    if len(comparables) < 3:
        comparables = list(sales[:FALLBACK_SALES_LIMIT])

    prices = sorted(s.sale_price_cents for s in comparables)
    if not prices:
        return PricingRecommendation(
            suggested_price_cents=0,
            price_range_min_cents=0,
            price_range_max_cents=0,
            confidence=0,
            comparable_sales_count=0,
            reasoning="Ingen markedsdata tilgængelig",
            market_insights=[],
        )

    median = median_cents(prices)
    range_min = prices[int(len(prices) * 0.25)]
    range_max = prices[int(len(prices) * 0.75)]

    one_year_ago = years_before(now.date(), 1)
    recent_count = sum(1 for s in comparables if s.sale_date >= one_year_ago)

    confidence = min(0.95, 0.4 + (len(comparables) / 20) * 0.3 + (recent_count / len(comparables)) * 0.25)
    if not artist_specific:
        confidence *= NON_ARTIST_CONFIDENCE_FACTOR

    insights: List[str] = []
    if artist_specific:
        insights.append(f"Baseret på {len(comparables)} salg af dine værker")
    else:
        insights.append(f"Baseret på {len(comparables)} salg af lignende værker")

    if recent_count > 0:
        insights.append(f"{recent_count} salg inden for det seneste år")

    if median > 0:
        variation = ((range_max - range_min) / median) * 100
        if variation < 30:
            insights.append("Stabil prisudvikling på markedet")
        elif variation > 70:
            insights.append("Høj prisvariabilitet - markedet er volatilt")

    trend = _price_trend(comparables, now)
    if trend is not None:
        if trend > PRICE_TREND_THRESHOLD:
            insights.append("Stigende pristendens på markedet")
        elif trend < -PRICE_TREND_THRESHOLD:
            insights.append("Faldende pristendens på markedet")

    if artist_specific:
        reasoning = (
            "Anbefalet pris baseret på dine tidligere salg. "
            f"Medianprisen for sammenlignelige værker er {format_dkk(median)}."
        )
    else:
        reasoning = f"Anbefalet pris baseret på lignende værker på markedet. Medianprisen er {format_dkk(median)}."

    if len(comparables) < 5:
        reasoning += " Bemærk: Begrænset markedsdata tilgængelig."

    return PricingRecommendation(
        suggested_price_cents=median,
        price_range_min_cents=range_min,
        price_range_max_cents=range_max,
        confidence=confidence,
        comparable_sales_count=len(comparables),
        reasoning=reasoning,
        market_insights=insights,
    )


class PricingAdvisorService:
    @staticmethod
    async def fetch_similar_medium_sales(db: AsyncSession, medium: str) -> List[MarketSale]:
        result = await db.execute(
            select(MarketSale)
            .where(MarketSale.medium.ilike(f"%{escape_like(medium.strip())}%", escape="\\"))
            .order_by(MarketSale.sale_date.desc())
            .limit(SIMILAR_SALES_LIMIT)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_pricing_recommendation(
        db: AsyncSession,
        artist_name: str,
        medium: Optional[str] = None,
        dimensions: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[PricingRecommendation]:
        """
        Suggest a list price for a new artwork.

        Uses the artist's own sales when there are any, otherwise sales in the
        same medium with reduced confidence. Returns None without market data.
        """
        sales = await PricingEvaluationService.fetch_market_data(db, artist_name)
        if sales:
            return build_recommendation(sales, medium, dimensions, artist_specific=True, now=now)

        if medium and medium.strip():
            similar = await PricingAdvisorService.fetch_similar_medium_sales(db, medium)
            if similar:
                logger.info(f"No sales for artist '{artist_name}', using {len(similar)} sales in medium '{medium}'")
                return build_recommendation(similar, medium, dimensions, artist_specific=False, now=now)

        return None
