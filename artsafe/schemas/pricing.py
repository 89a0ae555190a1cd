from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from artsafe.models.pricing import PriceRecommendation


class MarketStatistics(BaseModel):
    avg: int = 0
    median: int = 0
    min: int = 0
    max: int = 0


class RecommendationResult(BaseModel):
    recommendation: PriceRecommendation
    confidence: float
    notes: str


class PriceEvaluationResponse(BaseModel):
    id: Optional[UUID] = None
    artwork_id: UUID
    current_price_cents: int
    market_avg_price_cents: Optional[int] = None
    market_median_price_cents: Optional[int] = None
    market_min_price_cents: Optional[int] = None
    market_max_price_cents: Optional[int] = None
    comparable_sales_count: int
    price_deviation_percent: Optional[float] = None
    recommendation: PriceRecommendation
    confidence_score: float
    evaluation_notes: Optional[str] = None
    evaluated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BatchEvaluationResult(BaseModel):
    success: int
    failed: int
    total: int


class EvaluateRequest(BaseModel):
    artwork_id: Optional[UUID] = None
    evaluate_all: bool = False


class PricingAdvisorRequest(BaseModel):
    medium: Optional[str] = None
    dimensions: Optional[str] = None
    year_created: Optional[int] = None


class PricingRecommendation(BaseModel):
    suggested_price_cents: int
    price_range_min_cents: int
    price_range_max_cents: int
    confidence: float
    comparable_sales_count: int
    reasoning: str
    market_insights: List[str] = []


class ApplyPriceSuggestion(BaseModel):
    artwork_id: UUID
    suggested_price_cents: int = Field(..., gt=0)


class EvaluationResult(BaseModel):
    message: str
    evaluation: PriceEvaluationResponse


class BatchEvaluationResponse(BatchEvaluationResult):
    message: str
    duration_ms: Optional[int] = None


class PricingAdvisorResponse(BaseModel):
    message: str
    recommendation: Optional[PricingRecommendation] = None
